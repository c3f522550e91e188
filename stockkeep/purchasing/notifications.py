"""Supplier e-mail notifications for purchase orders"""
import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _format_date(value):
    return value.strftime('%B %d, %Y') if value else 'N/A'


def notify_supplier_of_status(purchase_order):
    """
    E-mail the supplier about the current status of a purchase order.

    Returns True when a message was handed to the mail backend. Suppliers
    without an e-mail address are skipped. Delivery failures are logged and
    never raised, so a status update is never undone by a mail problem.
    """
    if not getattr(settings, 'STOCKKEEP_PO_NOTIFICATIONS', True):
        return False

    supplier = purchase_order.supplier
    if not supplier.email:
        logger.info(f"Supplier {supplier.name} has no e-mail address; skipping notification for {purchase_order}")
        return False

    subject = f"Purchase Order {purchase_order.po_number} - {purchase_order.get_status_display()}"
    body = "\n".join([
        f"Dear {supplier.contact_person or supplier.name},",
        "",
        f"The status of purchase order {purchase_order.po_number} is now: {purchase_order.get_status_display()}.",
        "",
        f"Order date: {_format_date(purchase_order.order_date)}",
        f"Expected delivery: {_format_date(purchase_order.expected_delivery_date)}",
    ])

    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [supplier.email], fail_silently=False)
    except Exception as e:
        logger.warning(f"Failed to send status notification for {purchase_order.po_number} to {supplier.email}: {e}")
        return False

    logger.info(f"Sent status notification for {purchase_order.po_number} ({purchase_order.status}) to {supplier.email}")
    return True
