"""
Test suite for Inventory module
Tests: Reservation bookkeeping, line-item rollback, stock transactions, reservation check command
"""
from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.db import transaction
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from stockkeep.catalog.models import Product
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.inventory.exceptions import InsufficientStockError, InvalidQuantityError, StockError
from stockkeep.inventory.models import StockTransaction
from stockkeep.inventory.services import (
    reserve_stock, release_stock, fulfill_stock, receive_stock, adjust_stock, record_movement,
    reserve_line_items, release_line_items, fulfill_line_items,
)


class ReserveStockTests(TestCase):
    """Test reserving stock for orders"""

    def setUp(self):
        self.product = TestDataFactory.create_product(quantity=10)

    def test_reserve_increases_reserved(self):
        product = reserve_stock(self.product, 4, reference='SO-1')
        self.assertEqual(product.reserved_quantity, 4)
        self.assertEqual(product.quantity, 10)
        self.assertEqual(product.available_quantity, 6)

    def test_reserve_all_available(self):
        product = reserve_stock(self.product, 10)
        self.assertEqual(product.available_quantity, 0)

    def test_reserve_more_than_available(self):
        reserve_stock(self.product, 7)
        with self.assertRaises(InsufficientStockError) as ctx:
            reserve_stock(self.product, 4)
        self.assertEqual(ctx.exception.available, 3)
        self.assertEqual(ctx.exception.requested, 4)
        self.assertIn('Available: 3, requested: 4', str(ctx.exception))
        self.product.refresh_from_db()
        self.assertEqual(self.product.reserved_quantity, 7)

    def test_reserve_invalid_quantity(self):
        for bad in (0, -3, 'abc', None):
            with self.assertRaises(InvalidQuantityError):
                reserve_stock(self.product, bad)

    def test_reserve_does_not_record_transaction(self):
        reserve_stock(self.product, 2)
        self.assertFalse(StockTransaction.objects.exists())

    def test_reserve_missing_product(self):
        with self.assertRaises(StockError) as ctx:
            reserve_stock(999999, 1)
        self.assertNotIsInstance(ctx.exception, InvalidQuantityError)
        self.assertIn('does not exist', str(ctx.exception))


class ReleaseStockTests(TestCase):
    """Test releasing reservations"""

    def setUp(self):
        self.product = TestDataFactory.create_product(quantity=10, reserved_quantity=5)

    def test_release_decreases_reserved(self):
        product = release_stock(self.product, 3)
        self.assertEqual(product.reserved_quantity, 2)
        self.assertEqual(product.quantity, 10)

    def test_release_never_goes_negative(self):
        """Test that releasing more than reserved clamps at zero"""
        product = release_stock(self.product, 50)
        self.assertEqual(product.reserved_quantity, 0)

    def test_release_invalid_quantity(self):
        with self.assertRaises(InvalidQuantityError):
            release_stock(self.product, 0)


class FulfillStockTests(TestCase):
    """Test fulfilling reserved stock"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(quantity=10, reserved_quantity=4)

    def test_fulfill_consumes_stock_and_reservation(self):
        product = fulfill_stock(self.product, 4, reference='SO-9', user=self.user)
        self.assertEqual(product.quantity, 6)
        self.assertEqual(product.reserved_quantity, 0)

        transaction_row = product.transactions.get()
        self.assertEqual(transaction_row.type, 'stock_out')
        self.assertEqual(transaction_row.quantity, -4)
        self.assertEqual(transaction_row.balance_after, 6)
        self.assertEqual(transaction_row.reference, 'SO-9')
        self.assertEqual(transaction_row.created_by, self.user)

    def test_fulfill_more_than_reserved(self):
        """Test that only the reserved part of the shipment is released"""
        product = fulfill_stock(self.product, 6)
        self.assertEqual(product.quantity, 4)
        self.assertEqual(product.reserved_quantity, 0)

    def test_fulfill_more_than_on_hand(self):
        with self.assertRaises(InsufficientStockError):
            fulfill_stock(self.product, 11)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)
        self.assertEqual(self.product.reserved_quantity, 4)


class ReceiveAndAdjustStockTests(TestCase):
    """Test receiving and manually adjusting stock"""

    def setUp(self):
        self.product = TestDataFactory.create_product(quantity=10, reserved_quantity=3)

    def test_receive_adds_stock(self):
        product = receive_stock(self.product, 5, reference='PO-2024-0001')
        self.assertEqual(product.quantity, 15)
        self.assertEqual(product.reserved_quantity, 3)
        transaction_row = product.transactions.get()
        self.assertEqual(transaction_row.type, 'stock_in')
        self.assertEqual(transaction_row.quantity, 5)

    def test_adjust_add(self):
        product = adjust_stock(self.product, 5, adjustment_type='add')
        self.assertEqual(product.quantity, 15)
        self.assertEqual(product.transactions.get().type, 'stock_in')

    def test_adjust_set(self):
        product = adjust_stock(self.product, 7)
        self.assertEqual(product.quantity, 7)
        transaction_row = product.transactions.get()
        self.assertEqual(transaction_row.type, 'adjustment')
        self.assertEqual(transaction_row.quantity, -3)

    def test_adjust_without_change_records_nothing(self):
        adjust_stock(self.product, 10)
        self.assertFalse(self.product.transactions.exists())

    def test_adjust_below_reserved_refused(self):
        with self.assertRaises(InsufficientStockError):
            adjust_stock(self.product, 2)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

    def test_adjust_clamps_at_zero(self):
        product = TestDataFactory.create_product(quantity=4)
        product = adjust_stock(product, -10, adjustment_type='add')
        self.assertEqual(product.quantity, 0)


class RecordMovementTests(TestCase):
    """Test manual stock_in / stock_out movements"""

    def setUp(self):
        self.product = TestDataFactory.create_product(quantity=10, reserved_quantity=3)

    def test_stock_in_returns_ledger_row(self):
        row = record_movement(self.product, 'stock_in', 5, reference='DEL-7')
        self.assertEqual(row.type, 'stock_in')
        self.assertEqual(row.quantity, 5)
        self.assertEqual(row.balance_after, 15)
        self.assertEqual(row.reference, 'DEL-7')

    def test_stock_out_returns_ledger_row(self):
        row = record_movement(self.product, 'stock_out', 7)
        self.assertEqual(row.quantity, -7)
        self.assertEqual(row.balance_after, 3)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 3)

    def test_stock_out_checked_against_current_stock(self):
        """Test that a stock_out is checked under the lock, not against a stale copy"""
        stale = Product.objects.get(pk=self.product.pk)
        release_stock(self.product, 3)
        fulfill_stock(self.product, 10)

        self.assertEqual(stale.quantity, 10)
        with self.assertRaises(InsufficientStockError):
            record_movement(stale, 'stock_out', 5)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 0)
        self.assertEqual(StockTransaction.objects.filter(product=self.product).count(), 1)

    def test_stock_out_into_reserved_refused(self):
        with self.assertRaises(InsufficientStockError):
            record_movement(self.product, 'stock_out', 8)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)
        self.assertFalse(self.product.transactions.exists())

    def test_unsupported_type(self):
        with self.assertRaises(StockError):
            record_movement(self.product, 'adjustment', 1)


class LineItemRollbackTests(TestCase):
    """Test that multi-line operations are all or nothing"""

    def setUp(self):
        self.plenty = TestDataFactory.create_product(quantity=20)
        self.scarce = TestDataFactory.create_product(quantity=2)

    def test_reserve_lines(self):
        reserve_line_items([(self.plenty, 5), (self.scarce, 2)], reference='SO-1')
        self.plenty.refresh_from_db()
        self.scarce.refresh_from_db()
        self.assertEqual(self.plenty.reserved_quantity, 5)
        self.assertEqual(self.scarce.reserved_quantity, 2)

    def test_failed_line_rolls_back_earlier_lines(self):
        """Test that a shortage on a later line leaves earlier products untouched"""
        with self.assertRaises(InsufficientStockError):
            reserve_line_items([(self.plenty, 5), (self.scarce, 3)], reference='SO-2')
        self.plenty.refresh_from_db()
        self.scarce.refresh_from_db()
        self.assertEqual(self.plenty.reserved_quantity, 0)
        self.assertEqual(self.scarce.reserved_quantity, 0)

    def test_same_product_on_two_lines(self):
        with self.assertRaises(InsufficientStockError):
            reserve_line_items([(self.scarce, 2), (self.scarce, 1)])
        self.scarce.refresh_from_db()
        self.assertEqual(self.scarce.reserved_quantity, 0)

    def test_rollback_inside_outer_transaction(self):
        with transaction.atomic():
            reserve_stock(self.plenty, 1)
            with self.assertRaises(InsufficientStockError):
                reserve_line_items([(self.plenty, 5), (self.scarce, 5)])
        self.plenty.refresh_from_db()
        self.assertEqual(self.plenty.reserved_quantity, 1)

    def test_release_lines(self):
        reserve_line_items([(self.plenty, 5), (self.scarce, 2)])
        release_line_items([(self.plenty, 5), (self.scarce, 2)])
        self.assertEqual(Product.objects.filter(reserved_quantity__gt=0).count(), 0)

    def test_failed_fulfillment_rolls_back(self):
        reserve_line_items([(self.plenty, 5)])
        with self.assertRaises(InsufficientStockError):
            fulfill_line_items([(self.plenty, 5), (self.scarce, 3)], reference='SO-3')
        self.plenty.refresh_from_db()
        self.assertEqual(self.plenty.quantity, 20)
        self.assertEqual(self.plenty.reserved_quantity, 5)
        self.assertFalse(StockTransaction.objects.exists())

    def test_lines_from_order_items(self):
        order = TestDataFactory.create_sales_order([(self.plenty, 4), (self.scarce, 1)])
        self.plenty.refresh_from_db()
        self.assertEqual(self.plenty.reserved_quantity, 4)
        release_line_items(order.items.all())
        self.plenty.refresh_from_db()
        self.scarce.refresh_from_db()
        self.assertEqual(self.plenty.reserved_quantity, 0)
        self.assertEqual(self.scarce.reserved_quantity, 0)


class StockTransactionAPITests(TestCase):
    """Test stock transaction endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(quantity=10)

    def test_record_stock_in(self):
        response = self.client.post('/api/v1/transactions/', {
            'product': self.product.id,
            'type': 'stock_in',
            'quantity': 6,
            'reference': 'DELIVERY-1',
            'notes': 'Manual receipt'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity'], 6)
        self.assertEqual(response.data['balance_after'], 16)
        self.assertEqual(response.data['created_by_username'], self.user.username)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 16)

    def test_record_stock_out(self):
        response = self.client.post('/api/v1/transactions/', {
            'product': self.product.id,
            'type': 'stock_out',
            'quantity': 4
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity'], -4)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 6)

    def test_stock_out_more_than_on_hand(self):
        response = self.client.post('/api/v1/transactions/', {
            'product': self.product.id,
            'type': 'stock_out',
            'quantity': 11
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_stock_out_into_reserved_refused(self):
        TestDataFactory.create_sales_order([(self.product, 8)])
        response = self.client.post('/api/v1/transactions/', {
            'product': self.product.id,
            'type': 'stock_out',
            'quantity': 3
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_payload(self):
        response = self.client.post('/api/v1/transactions/', {
            'product': self.product.id,
            'type': 'lost',
            'quantity': 0
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('type', response.data)
        self.assertIn('quantity', response.data)

    def test_list_newest_first_and_filters(self):
        other = TestDataFactory.create_product(quantity=0)
        receive_stock(self.product, 1)
        receive_stock(other, 2)
        adjust_stock(self.product, 3)

        response = self.client.get('/api/v1/transactions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['quantity'] for row in response.data], [-8, 2, 1])

        response = self.client.get(f'/api/v1/transactions/?product={other.id}')
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/transactions/?type=adjustment')
        self.assertEqual(len(response.data), 1)

    def test_date_range_is_inclusive(self):
        receive_stock(self.product, 1)
        old = receive_stock(self.product, 2).transactions.order_by('-id').first()
        old.date = timezone.now() - timedelta(days=10)
        old.save()

        today = timezone.localdate().isoformat()
        response = self.client.get(f'/api/v1/transactions/?date_from={today}&date_to={today}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/transactions/?date_from=not-a-date')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_recent_limit(self):
        for _ in range(12):
            receive_stock(self.product, 1)
        response = self.client.get('/api/v1/transactions/recent/')
        self.assertEqual(len(response.data), 10)
        response = self.client.get('/api/v1/transactions/recent/?limit=3')
        self.assertEqual(len(response.data), 3)

    def test_detail_and_product_history(self):
        transaction_row = receive_stock(self.product, 1).transactions.get()
        response = self.client.get(f'/api/v1/transactions/{transaction_row.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['product_sku'], self.product.sku)

        response = self.client.get(f'/api/v1/products/{self.product.id}/transactions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)


class CheckReservationsCommandTests(TestCase):
    """Test the check_reservations management command"""

    def setUp(self):
        self.product = TestDataFactory.create_product(quantity=10)
        TestDataFactory.create_sales_order([(self.product, 3)])

    def test_in_sync(self):
        out = StringIO()
        call_command('check_reservations', stdout=out)
        self.assertIn('in sync', out.getvalue())

    def test_reports_drift_without_fixing(self):
        Product.objects.filter(pk=self.product.pk).update(reserved_quantity=7)
        out = StringIO()
        call_command('check_reservations', stdout=out)
        self.assertIn('out of sync', out.getvalue())
        self.product.refresh_from_db()
        self.assertEqual(self.product.reserved_quantity, 7)

    def test_fix_repairs_drift(self):
        Product.objects.filter(pk=self.product.pk).update(reserved_quantity=0)
        out = StringIO()
        call_command('check_reservations', '--fix', stdout=out)
        self.product.refresh_from_db()
        self.assertEqual(self.product.reserved_quantity, 3)
        self.assertIn('Repaired 1 products', out.getvalue())
