"""
Quote and sales order lifecycle.

Open sales orders (Pending, Processing) hold a reservation for every line.
Each operation here runs in one database transaction, so when reserving,
releasing or fulfilling fails for any line the order and every product are
left exactly as they were.
"""
import logging

from django.db import transaction
from django.utils import timezone

from stockkeep.inventory.services import (
    reserve_line_items, release_line_items, fulfill_line_items,
)
from .exceptions import OrderStateError
from .models import Quote, QuoteItem, SalesOrder, SalesOrderItem
from .utils import calculate_totals, generate_document_number, line_total

logger = logging.getLogger(__name__)


def build_lines(items_data):
    """
    Normalize validated line input into dicts with product, quantity,
    unit_price and total. A missing unit price falls back to the product price.
    """
    lines = []
    for item in items_data:
        product = item['product']
        unit_price = item.get('unit_price')
        if unit_price is None:
            unit_price = product.price
        lines.append({
            'product': product,
            'quantity': item['quantity'],
            'unit_price': unit_price,
            'total': line_total(item['quantity'], unit_price),
        })
    return lines


def _totals(lines):
    return calculate_totals((line['quantity'], line['unit_price']) for line in lines)


def _lock_order(order):
    return SalesOrder.objects.select_for_update().get(pk=order.pk)


# Quotes

def create_quote(data, items_data, user=None):
    lines = build_lines(items_data)
    with transaction.atomic():
        quote = Quote.objects.create(
            quote_number=generate_document_number('QT', Quote, 'quote_number'),
            created_by=user if user is not None and user.is_authenticated else None,
            **data,
            **_totals(lines),
        )
        QuoteItem.objects.bulk_create([QuoteItem(quote=quote, **line) for line in lines])
    logger.info(f"Created quote {quote.quote_number} for {quote.customer_name} ({quote.total})")
    return quote


def update_quote(quote, data, items_data=None):
    if quote.status == Quote.STATUS_CONVERTED:
        raise OrderStateError('Cannot edit a quote that has been converted to a sales order')

    with transaction.atomic():
        for field, value in data.items():
            setattr(quote, field, value)
        if items_data is not None:
            lines = build_lines(items_data)
            quote.items.all().delete()
            QuoteItem.objects.bulk_create([QuoteItem(quote=quote, **line) for line in lines])
            for field, value in _totals(lines).items():
                setattr(quote, field, value)
        quote.save()
    return quote


def update_quote_status(quote, new_status):
    valid = [choice[0] for choice in Quote.STATUS_CHOICES]
    if new_status not in valid:
        raise OrderStateError('Invalid status')
    if new_status == Quote.STATUS_CONVERTED:
        raise OrderStateError('Quotes are marked Converted by converting them to a sales order')
    if quote.status == Quote.STATUS_CONVERTED:
        raise OrderStateError('Cannot change the status of a converted quote')

    quote.status = new_status
    quote.save(update_fields=['status', 'updated_at'])
    logger.info(f"Quote {quote.quote_number} status -> {new_status}")
    return quote


# Sales orders

def _create_order_lines(order, lines):
    SalesOrderItem.objects.bulk_create([SalesOrderItem(sales_order=order, **line) for line in lines])


def create_sales_order(data, items_data, user=None, quote=None):
    """Create a Pending order and reserve stock for all of its lines"""
    lines = build_lines(items_data)
    with transaction.atomic():
        order = SalesOrder.objects.create(
            order_number=generate_document_number('SO', SalesOrder, 'order_number'),
            status=SalesOrder.STATUS_PENDING,
            quote=quote,
            created_by=user if user is not None and user.is_authenticated else None,
            **data,
            **_totals(lines),
        )
        _create_order_lines(order, lines)
        reserve_line_items(
            [(line['product'], line['quantity']) for line in lines],
            reference=order.order_number,
        )
    logger.info(f"Created sales order {order.order_number} for {order.customer_name} with {len(lines)} lines")
    return order


def update_sales_order(order, data, items_data=None):
    """
    Update an order. New line items replace the old ones: the old
    reservations are released and the new lines reserved, all or nothing.
    """
    with transaction.atomic():
        order = _lock_order(order)
        if items_data is not None:
            if not order.is_open:
                raise OrderStateError(f"Cannot edit line items of a {order.status.lower()} order")
            lines = build_lines(items_data)
            release_line_items(order.items.all(), reference=order.order_number)
            order.items.all().delete()
            _create_order_lines(order, lines)
            reserve_line_items(
                [(line['product'], line['quantity']) for line in lines],
                reference=order.order_number,
            )
            for field, value in _totals(lines).items():
                setattr(order, field, value)
        for field, value in data.items():
            setattr(order, field, value)
        order.save()
    return order


def delete_sales_order(order):
    """Delete an order, giving back the reservations of an open one"""
    with transaction.atomic():
        order = _lock_order(order)
        if order.is_open:
            release_line_items(order.items.all(), reference=order.order_number)
        order_number = order.order_number
        order.delete()
    logger.info(f"Deleted sales order {order_number}")


def fulfill_sales_order(order, user=None):
    """Ship every line: on-hand stock and reservations drop together"""
    with transaction.atomic():
        order = _lock_order(order)
        if order.status == SalesOrder.STATUS_FULFILLED:
            raise OrderStateError('Order already fulfilled')
        if order.status == SalesOrder.STATUS_CANCELLED:
            raise OrderStateError('Cannot fulfill cancelled order')

        fulfill_line_items(order.items.all(), reference=order.order_number, user=user)
        order.status = SalesOrder.STATUS_FULFILLED
        order.fulfilled_at = timezone.now()
        order.save(update_fields=['status', 'fulfilled_at', 'updated_at'])
    logger.info(f"Fulfilled sales order {order.order_number}")
    return order


def cancel_sales_order(order):
    with transaction.atomic():
        order = _lock_order(order)
        if not order.is_open:
            raise OrderStateError(f"Cannot cancel a {order.status.lower()} order")
        release_line_items(order.items.all(), reference=order.order_number)
        order.status = SalesOrder.STATUS_CANCELLED
        order.save(update_fields=['status', 'updated_at'])
    logger.info(f"Cancelled sales order {order.order_number}")
    return order


def update_sales_order_status(order, new_status, user=None):
    valid = [choice[0] for choice in SalesOrder.STATUS_CHOICES]
    if new_status not in valid:
        raise OrderStateError('Invalid status')

    if new_status == SalesOrder.STATUS_FULFILLED:
        return fulfill_sales_order(order, user=user)
    if new_status == SalesOrder.STATUS_CANCELLED:
        return cancel_sales_order(order)

    with transaction.atomic():
        order = _lock_order(order)
        if not order.is_open:
            raise OrderStateError(f"Cannot change status of a {order.status.lower()} order")
        order.status = new_status
        order.save(update_fields=['status', 'updated_at'])
    logger.info(f"Sales order {order.order_number} status -> {new_status}")
    return order


def create_order_from_quote(quote, user=None):
    """Turn an Accepted quote into a Pending sales order and mark the quote Converted"""
    with transaction.atomic():
        quote = Quote.objects.select_for_update().get(pk=quote.pk)
        if quote.status == Quote.STATUS_CONVERTED:
            raise OrderStateError('Quote has already been converted')
        if quote.status != Quote.STATUS_ACCEPTED:
            raise OrderStateError('Only accepted quotes can be converted to sales orders')

        items_data = [
            {'product': item.product, 'quantity': item.quantity, 'unit_price': item.unit_price}
            for item in quote.items.select_related('product')
        ]
        order = create_sales_order(
            {
                'customer_name': quote.customer_name,
                'customer_email': quote.customer_email,
                'customer_phone': quote.customer_phone,
                'billing_address': quote.billing_address,
                'shipping_address': quote.shipping_address,
                'notes': quote.notes,
            },
            items_data,
            user=user,
            quote=quote,
        )
        quote.status = Quote.STATUS_CONVERTED
        quote.save(update_fields=['status', 'updated_at'])
    logger.info(f"Converted quote {quote.quote_number} into sales order {order.order_number}")
    return order
