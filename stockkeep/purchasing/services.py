"""Purchase order status changes and goods receipt"""
import logging

from django.db import transaction

from stockkeep.inventory.services import receive_stock
from .exceptions import PurchaseOrderError
from .models import PurchaseOrder
from .notifications import notify_supplier_of_status

logger = logging.getLogger(__name__)

VALID_STATUSES = [choice[0] for choice in PurchaseOrder.STATUS_CHOICES]


def update_purchase_order_status(purchase_order, new_status):
    """Save a new status and notify the supplier. Returns (purchase_order, notified)."""
    if new_status not in VALID_STATUSES:
        raise PurchaseOrderError('Invalid status')

    old_status = purchase_order.status
    purchase_order.status = new_status
    purchase_order.save(update_fields=['status', 'updated_at'])
    logger.info(f"Purchase order {purchase_order.po_number} status {old_status} -> {new_status}")

    notified = notify_supplier_of_status(purchase_order)
    return purchase_order, notified


def _normalize_receipts(purchase_order, receipts):
    items = {item.id: item for item in purchase_order.items.select_for_update().select_related('product')}
    if receipts is None:
        return [(item, item.outstanding_quantity) for item in items.values() if item.outstanding_quantity > 0]

    normalized = []
    pending = {}
    for receipt in receipts:
        item_id = receipt.get('item')
        try:
            item_id = int(item_id)
            quantity = int(receipt.get('quantity', 0))
        except (TypeError, ValueError):
            raise PurchaseOrderError('Each receipt needs an item id and a whole-number quantity')
        item = items.get(item_id)
        if item is None:
            raise PurchaseOrderError(f"Item {item_id} does not belong to purchase order {purchase_order.po_number}")
        if quantity <= 0:
            raise PurchaseOrderError(f"Received quantity must be greater than 0. Got {quantity}.")
        outstanding = item.outstanding_quantity - pending.get(item_id, 0)
        if quantity > outstanding:
            raise PurchaseOrderError(
                f"Cannot receive {quantity} x {item.product.sku}: only {outstanding} outstanding"
            )
        pending[item_id] = pending.get(item_id, 0) + quantity
        normalized.append((item, quantity))
    return normalized


def receive_purchase_order(purchase_order, receipts=None, user=None):
    """
    Book goods received against a purchase order.

    `receipts` is a list of {'item': <item id>, 'quantity': n}. When omitted
    everything still outstanding is received. Stock is added for each line
    and the order moves to partially_received or completed. Returns the list
    of (item, quantity) pairs that were booked.
    """
    if purchase_order.status not in PurchaseOrder.RECEIVABLE_STATUSES:
        raise PurchaseOrderError(
            f"Cannot receive goods for a purchase order with status {purchase_order.status}"
        )

    with transaction.atomic():
        lines = _normalize_receipts(purchase_order, receipts)
        if not lines:
            raise PurchaseOrderError('Nothing left to receive on this purchase order')

        for item, quantity in lines:
            receive_stock(
                item.product, quantity,
                reference=purchase_order.po_number,
                notes=f"Received against {purchase_order.po_number}",
                user=user,
            )
            item.received_quantity += quantity
            item.save(update_fields=['received_quantity'])

        fully_received = all(item.outstanding_quantity == 0 for item in purchase_order.items.all())
        purchase_order.status = (
            PurchaseOrder.STATUS_COMPLETED if fully_received else PurchaseOrder.STATUS_PARTIALLY_RECEIVED
        )
        purchase_order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Received {sum(q for _, q in lines)} units against {purchase_order.po_number}, "
                f"status now {purchase_order.status}")
    return lines
