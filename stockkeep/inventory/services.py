"""
Stock bookkeeping for products.

All changes to Product.quantity and Product.reserved_quantity go through this
module. Each function locks the product row, applies the change and returns
the refreshed product; record_movement returns the ledger row it wrote. The
*_line_items helpers apply a change to every line of an order inside one
transaction, so a failure on any line leaves all products as they were.

Invariant kept by every function: 0 <= reserved_quantity <= quantity.
"""
import logging

from django.db import transaction

from stockkeep.catalog.models import Product
from .exceptions import InsufficientStockError, InvalidQuantityError, StockError
from .models import StockTransaction

logger = logging.getLogger(__name__)


def _coerce_quantity(quantity):
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise InvalidQuantityError(f"Quantity must be a whole number. Got {quantity!r}.")
    if value <= 0:
        raise InvalidQuantityError(f"Quantity must be greater than 0. Got {value}.")
    return value


def _lock_product(product):
    product_id = product.pk if isinstance(product, Product) else product
    try:
        return Product.objects.select_for_update().get(pk=product_id)
    except Product.DoesNotExist:
        raise StockError(f"Product with id {product_id} does not exist")


def _record(product, txn_type, change, reference='', notes='', user=None):
    return StockTransaction.objects.create(
        product=product,
        type=txn_type,
        quantity=change,
        balance_after=product.quantity,
        reference=reference or '',
        notes=notes or '',
        created_by=user if user is not None and user.is_authenticated else None,
    )


def reserve_stock(product, quantity, reference=''):
    """Hold `quantity` units of a product for a pending order"""
    quantity = _coerce_quantity(quantity)
    with transaction.atomic():
        locked = _lock_product(product)
        available = locked.available_quantity
        if quantity > available:
            raise InsufficientStockError(locked, quantity, available)
        locked.reserved_quantity += quantity
        locked.save(update_fields=['reserved_quantity', 'updated_at'])
    logger.info(f"Reserved {quantity} x {locked.sku} for {reference or 'unreferenced order'} "
                f"(reserved={locked.reserved_quantity}, on hand={locked.quantity})")
    return locked


def release_stock(product, quantity, reference=''):
    """Give back a reservation; never drives reserved_quantity below 0"""
    quantity = _coerce_quantity(quantity)
    with transaction.atomic():
        locked = _lock_product(product)
        released = min(quantity, locked.reserved_quantity)
        if released < quantity:
            logger.warning(f"Releasing {quantity} x {locked.sku} for {reference or 'unreferenced order'} "
                           f"but only {locked.reserved_quantity} reserved")
        locked.reserved_quantity -= released
        locked.save(update_fields=['reserved_quantity', 'updated_at'])
    logger.info(f"Released {released} x {locked.sku} for {reference or 'unreferenced order'} "
                f"(reserved={locked.reserved_quantity})")
    return locked


def fulfill_stock(product, quantity, reference='', user=None):
    """Ship `quantity` units: on-hand stock drops and the matching reservation is consumed"""
    quantity = _coerce_quantity(quantity)
    with transaction.atomic():
        locked = _lock_product(product)
        if quantity > locked.quantity:
            raise InsufficientStockError(locked, quantity, locked.quantity)
        locked.quantity -= quantity
        locked.reserved_quantity -= min(quantity, locked.reserved_quantity)
        locked.save(update_fields=['quantity', 'reserved_quantity', 'updated_at'])
        _record(locked, StockTransaction.TYPE_STOCK_OUT, -quantity, reference=reference,
                notes='Sales order fulfillment', user=user)
    logger.info(f"Fulfilled {quantity} x {locked.sku} for {reference or 'unreferenced order'} "
                f"(on hand={locked.quantity}, reserved={locked.reserved_quantity})")
    return locked


def receive_stock(product, quantity, reference='', notes='', user=None):
    """Add received goods to on-hand stock"""
    quantity = _coerce_quantity(quantity)
    with transaction.atomic():
        locked = _lock_product(product)
        locked.quantity += quantity
        locked.save(update_fields=['quantity', 'updated_at'])
        _record(locked, StockTransaction.TYPE_STOCK_IN, quantity, reference=reference,
                notes=notes or 'Stock received', user=user)
    logger.info(f"Received {quantity} x {locked.sku} ({reference or 'no reference'}), on hand={locked.quantity}")
    return locked


def adjust_stock(product, quantity, adjustment_type='adjustment', notes='', reference='', user=None):
    """
    Manual stock update.

    `add` adds `quantity` (which may be negative) to the current level, any
    other type sets the level to `quantity`. The result is clamped at 0 and
    may not fall below what is currently reserved.
    """
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise InvalidQuantityError(f"Quantity must be a whole number. Got {quantity!r}.")

    with transaction.atomic():
        locked = _lock_product(product)
        old_quantity = locked.quantity
        if adjustment_type == 'add':
            new_quantity = old_quantity + quantity
        else:
            new_quantity = quantity
        new_quantity = max(0, new_quantity)

        if new_quantity < locked.reserved_quantity:
            raise InsufficientStockError(
                locked, old_quantity - new_quantity, old_quantity - locked.reserved_quantity,
                message=(f"Cannot reduce stock of {locked.name} to {new_quantity}: "
                         f"{locked.reserved_quantity} units are reserved by open orders")
            )

        change = new_quantity - old_quantity
        if change == 0:
            return locked

        locked.quantity = new_quantity
        locked.save(update_fields=['quantity', 'updated_at'])
        if adjustment_type == 'add':
            txn_type = StockTransaction.TYPE_STOCK_IN if change > 0 else StockTransaction.TYPE_STOCK_OUT
        else:
            txn_type = StockTransaction.TYPE_ADJUSTMENT
        _record(locked, txn_type, change, reference=reference, notes=notes, user=user)

    logger.info(f"Adjusted {locked.sku} stock {old_quantity} -> {new_quantity} ({adjustment_type})")
    return locked


def record_movement(product, txn_type, quantity, reference='', notes='', user=None):
    """
    Book a manual stock_in or stock_out and return the StockTransaction written.

    A stock_out larger than on-hand stock, or one that would eat into
    reserved units, is refused rather than clamped.
    """
    quantity = _coerce_quantity(quantity)
    if txn_type not in (StockTransaction.TYPE_STOCK_IN, StockTransaction.TYPE_STOCK_OUT):
        raise StockError(f"Unsupported movement type: {txn_type}")

    with transaction.atomic():
        locked = _lock_product(product)
        if txn_type == StockTransaction.TYPE_STOCK_IN:
            change = quantity
        else:
            if quantity > locked.quantity:
                raise InsufficientStockError(locked, quantity, locked.quantity)
            if quantity > locked.available_quantity:
                raise InsufficientStockError(
                    locked, quantity, locked.available_quantity,
                    message=(f"Cannot reduce stock of {locked.name} to {locked.quantity - quantity}: "
                             f"{locked.reserved_quantity} units are reserved by open orders")
                )
            change = -quantity
        locked.quantity += change
        locked.save(update_fields=['quantity', 'updated_at'])
        row = _record(locked, txn_type, change, reference=reference, notes=notes, user=user)

    logger.info(f"Recorded {txn_type} of {quantity} x {locked.sku} ({reference or 'no reference'}), "
                f"on hand={locked.quantity}")
    return row


def _iter_lines(lines):
    for line in lines:
        if isinstance(line, (tuple, list)):
            product, quantity = line
        else:
            product, quantity = line.product_id, line.quantity
        yield product, quantity


def reserve_line_items(lines, reference=''):
    """Reserve every line or none of them"""
    with transaction.atomic():
        for product, quantity in _iter_lines(lines):
            reserve_stock(product, quantity, reference=reference)


def release_line_items(lines, reference=''):
    with transaction.atomic():
        for product, quantity in _iter_lines(lines):
            release_stock(product, quantity, reference=reference)


def fulfill_line_items(lines, reference='', user=None):
    """Fulfill every line or none of them"""
    with transaction.atomic():
        for product, quantity in _iter_lines(lines):
            fulfill_stock(product, quantity, reference=reference, user=user)
