"""
Test suite for Sales module
Tests: Totals and numbering, Quote lifecycle and conversion, Sales order reservations,
fulfillment, cancellation and rollback
"""
import re
from decimal import Decimal
from django.test import TestCase, override_settings
from rest_framework import status
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.inventory.models import StockTransaction
from .models import Quote, SalesOrder
from .utils import calculate_totals, generate_document_number


class SalesUtilsTests(TestCase):
    """Test totals and document numbers"""

    @override_settings(STOCKKEEP_TAX_RATE=Decimal('0.09'))
    def test_calculate_totals(self):
        totals = calculate_totals([(2, Decimal('10.00')), (1, Decimal('5.55'))])
        self.assertEqual(totals['subtotal'], Decimal('25.55'))
        self.assertEqual(totals['tax'], Decimal('2.30'))
        self.assertEqual(totals['total'], Decimal('27.85'))

    def test_calculate_totals_explicit_rate(self):
        totals = calculate_totals([(3, Decimal('1.00'))], tax_rate=Decimal('0'))
        self.assertEqual(totals, {'subtotal': Decimal('3.00'), 'tax': Decimal('0.00'), 'total': Decimal('3.00')})

    def test_calculate_totals_empty(self):
        totals = calculate_totals([])
        self.assertEqual(totals['total'], Decimal('0.00'))

    def test_document_number_format(self):
        number = generate_document_number('SO', SalesOrder, 'order_number')
        self.assertRegex(number, r'^SO-\d{6}-\d{3}$')


@override_settings(STOCKKEEP_TAX_RATE=Decimal('0.09'))
class QuoteTests(TestCase):
    """Test quote endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(quantity=10, price=Decimal('20.00'))

    def test_create_quote(self):
        response = self.client.post('/api/v1/quotes/', {
            'customer_name': 'Jordan Lee',
            'customer_email': 'jordan@example.test',
            'items': [
                {'product': self.product.id, 'quantity': 2},
                {'product': self.product.id, 'quantity': 1, 'unit_price': '5.00'},
            ]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(re.match(r'^QT-\d{6}-\d{3}$', response.data['quote_number']))
        self.assertEqual(response.data['status'], Quote.STATUS_DRAFT)
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('45.00'))
        self.assertEqual(Decimal(response.data['tax']), Decimal('4.05'))
        self.assertEqual(Decimal(response.data['total']), Decimal('49.05'))
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(Decimal(response.data['items'][0]['unit_price']), Decimal('20.00'))
        # Quotes never touch stock
        self.product.refresh_from_db()
        self.assertEqual(self.product.reserved_quantity, 0)

    def test_create_quote_requires_items(self):
        response = self.client.post('/api/v1/quotes/', {'customer_name': 'Jordan'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/quotes/', {'customer_name': 'Jordan', 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_quote_rejects_bad_quantity(self):
        response = self.client.post('/api/v1/quotes/', {
            'customer_name': 'Jordan',
            'items': [{'product': self.product.id, 'quantity': 0}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_quote_items_recomputes_totals(self):
        quote = TestDataFactory.create_quote([(self.product, 1)])
        response = self.client.patch(f'/api/v1/quotes/{quote.id}/', {
            'items': [{'product': self.product.id, 'quantity': 3}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('60.00'))
        self.assertEqual(len(response.data['items']), 1)

    def test_status_change(self):
        quote = TestDataFactory.create_quote([(self.product, 1)])
        response = self.client.post(f'/api/v1/quotes/{quote.id}/status/', {'status': 'Sent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'Sent')

    def test_invalid_status(self):
        quote = TestDataFactory.create_quote([(self.product, 1)])
        response = self.client.post(f'/api/v1/quotes/{quote.id}/status/', {'status': 'Shipped'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid status')

    def test_cannot_set_converted_directly(self):
        quote = TestDataFactory.create_quote([(self.product, 1)], status=Quote.STATUS_ACCEPTED)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/status/', {'status': 'Converted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_ACCEPTED)

    def test_filter_by_status_and_customer(self):
        TestDataFactory.create_quote([(self.product, 1)], customer_name='Jordan Lee', status=Quote.STATUS_SENT)
        TestDataFactory.create_quote([(self.product, 1)], customer_name='Sam Park')
        response = self.client.get('/api/v1/quotes/?status=Sent')
        self.assertEqual([row['customer_name'] for row in response.data], ['Jordan Lee'])
        response = self.client.get('/api/v1/quotes/?customer=park')
        self.assertEqual([row['customer_name'] for row in response.data], ['Sam Park'])


@override_settings(STOCKKEEP_TAX_RATE=Decimal('0.09'))
class QuoteConversionTests(TestCase):
    """Test converting quotes into sales orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(quantity=10, price=Decimal('20.00'))

    def test_convert_accepted_quote(self):
        quote = TestDataFactory.create_quote(
            [(self.product, 4, Decimal('15.00'))], customer_name='Jordan Lee', status=Quote.STATUS_ACCEPTED
        )
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], SalesOrder.STATUS_PENDING)
        self.assertEqual(response.data['customer_name'], 'Jordan Lee')
        self.assertEqual(response.data['quote'], quote.id)
        self.assertEqual(Decimal(response.data['items'][0]['unit_price']), Decimal('15.00'))
        self.assertEqual(Decimal(response.data['total']), quote.total)

        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_CONVERTED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.reserved_quantity, 4)

    def test_convert_twice_refused(self):
        quote = TestDataFactory.create_quote([(self.product, 1)], status=Quote.STATUS_ACCEPTED)
        self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Quote has already been converted')
        self.assertEqual(SalesOrder.objects.count(), 1)

    def test_convert_draft_refused(self):
        quote = TestDataFactory.create_quote([(self.product, 1)])
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Only accepted quotes can be converted to sales orders')

    def test_convert_without_stock_rolls_back(self):
        quote = TestDataFactory.create_quote([(self.product, 11)], status=Quote.STATUS_ACCEPTED)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        quote.refresh_from_db()
        self.assertEqual(quote.status, Quote.STATUS_ACCEPTED)
        self.assertEqual(SalesOrder.objects.count(), 0)

    def test_converted_quote_is_read_only(self):
        quote = TestDataFactory.create_quote([(self.product, 1)], status=Quote.STATUS_ACCEPTED)
        self.client.post(f'/api/v1/quotes/{quote.id}/convert/')
        response = self.client.patch(f'/api/v1/quotes/{quote.id}/', {'notes': 'late change'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/quotes/{quote.id}/status/', {'status': 'Draft'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SalesOrderTests(TestCase):
    """Test sales order creation, editing and deletion"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.widget = TestDataFactory.create_product(quantity=10, price=Decimal('20.00'))
        self.gadget = TestDataFactory.create_product(quantity=3, price=Decimal('50.00'))

    def test_create_reserves_stock(self):
        response = self.client.post('/api/v1/sales-orders/', {
            'customer_name': 'Jordan Lee',
            'items': [
                {'product': self.widget.id, 'quantity': 4},
                {'product': self.gadget.id, 'quantity': 3},
            ]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], SalesOrder.STATUS_PENDING)
        self.assertTrue(response.data['order_number'].startswith('SO-'))

        self.widget.refresh_from_db()
        self.gadget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 4)
        self.assertEqual(self.widget.quantity, 10)
        self.assertEqual(self.gadget.available_quantity, 0)

    def test_insufficient_stock_creates_nothing(self):
        response = self.client.post('/api/v1/sales-orders/', {
            'customer_name': 'Jordan Lee',
            'items': [
                {'product': self.widget.id, 'quantity': 4},
                {'product': self.gadget.id, 'quantity': 4},
            ]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])
        self.assertEqual(SalesOrder.objects.count(), 0)
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 0)

    def test_reservations_across_orders(self):
        TestDataFactory.create_sales_order([(self.gadget, 2)])
        response = self.client.post('/api/v1/sales-orders/', {
            'customer_name': 'Sam Park',
            'items': [{'product': self.gadget.id, 'quantity': 2}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.gadget.refresh_from_db()
        self.assertEqual(self.gadget.reserved_quantity, 2)

    def test_status_is_read_only_on_create(self):
        response = self.client.post('/api/v1/sales-orders/', {
            'customer_name': 'Jordan Lee',
            'status': 'Fulfilled',
            'items': [{'product': self.widget.id, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], SalesOrder.STATUS_PENDING)

    def test_update_items_moves_reservations(self):
        order = TestDataFactory.create_sales_order([(self.widget, 4)])
        response = self.client.patch(f'/api/v1/sales-orders/{order.id}/', {
            'items': [{'product': self.gadget.id, 'quantity': 2}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.widget.refresh_from_db()
        self.gadget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 0)
        self.assertEqual(self.gadget.reserved_quantity, 2)

    def test_failed_update_keeps_old_reservations(self):
        order = TestDataFactory.create_sales_order([(self.widget, 4)])
        response = self.client.patch(f'/api/v1/sales-orders/{order.id}/', {
            'items': [{'product': self.gadget.id, 'quantity': 5}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.widget.refresh_from_db()
        self.gadget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 4)
        self.assertEqual(self.gadget.reserved_quantity, 0)
        self.assertEqual(order.items.get().product_id, self.widget.id)

    def test_update_header_keeps_lines(self):
        order = TestDataFactory.create_sales_order([(self.widget, 2)])
        response = self.client.patch(f'/api/v1/sales-orders/{order.id}/', {'notes': 'Leave at door'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['notes'], 'Leave at door')
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 2)

    def test_closed_order_items_refused(self):
        order = TestDataFactory.create_sales_order([(self.widget, 2)])
        self.client.post(f'/api/v1/sales-orders/{order.id}/status/', {'status': 'Cancelled'}, format='json')
        response = self.client.patch(f'/api/v1/sales-orders/{order.id}/', {
            'items': [{'product': self.widget.id, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot edit line items of a cancelled order')

    def test_delete_open_order_releases(self):
        order = TestDataFactory.create_sales_order([(self.widget, 4)])
        response = self.client.delete(f'/api/v1/sales-orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 0)
        self.assertFalse(SalesOrder.objects.filter(id=order.id).exists())

    def test_delete_fulfilled_order_keeps_stock(self):
        order = TestDataFactory.create_sales_order([(self.widget, 4)])
        self.client.post(f'/api/v1/sales-orders/{order.id}/fulfill/')
        response = self.client.delete(f'/api/v1/sales-orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.quantity, 6)
        self.assertEqual(self.widget.reserved_quantity, 0)

    def test_filter_by_status(self):
        TestDataFactory.create_sales_order([(self.widget, 1)], customer_name='Jordan Lee')
        cancelled = TestDataFactory.create_sales_order([(self.widget, 1)], customer_name='Sam Park')
        self.client.post(f'/api/v1/sales-orders/{cancelled.id}/status/', {'status': 'Cancelled'}, format='json')
        response = self.client.get('/api/v1/sales-orders/?status=Pending')
        self.assertEqual([row['customer_name'] for row in response.data], ['Jordan Lee'])


class SalesOrderLifecycleTests(TestCase):
    """Test fulfilling and cancelling sales orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.widget = TestDataFactory.create_product(quantity=10)
        self.gadget = TestDataFactory.create_product(quantity=5)
        self.order = TestDataFactory.create_sales_order([(self.widget, 4), (self.gadget, 5)])

    def test_fulfill(self):
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/fulfill/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], SalesOrder.STATUS_FULFILLED)
        self.assertIsNotNone(response.data['fulfilled_at'])

        self.widget.refresh_from_db()
        self.gadget.refresh_from_db()
        self.assertEqual((self.widget.quantity, self.widget.reserved_quantity), (6, 0))
        self.assertEqual((self.gadget.quantity, self.gadget.reserved_quantity), (0, 0))
        out = StockTransaction.objects.filter(reference=self.order.order_number)
        self.assertEqual(out.count(), 2)
        self.assertTrue(all(row.type == StockTransaction.TYPE_STOCK_OUT for row in out))

    def test_fulfill_twice(self):
        self.client.post(f'/api/v1/sales-orders/{self.order.id}/fulfill/')
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/fulfill/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Order already fulfilled')
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.quantity, 6)

    def test_fulfill_cancelled(self):
        self.client.post(f'/api/v1/sales-orders/{self.order.id}/status/', {'status': 'Cancelled'}, format='json')
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/fulfill/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot fulfill cancelled order')

    def test_cancel_releases(self):
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/status/', {'status': 'Cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.widget.refresh_from_db()
        self.gadget.refresh_from_db()
        self.assertEqual((self.widget.quantity, self.widget.reserved_quantity), (10, 0))
        self.assertEqual(self.gadget.available_quantity, 5)

    def test_status_fulfilled_ships(self):
        response = self.client.patch(f'/api/v1/sales-orders/{self.order.id}/status/', {'status': 'Fulfilled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.quantity, 6)

    def test_processing_keeps_reservation(self):
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/status/', {'status': 'Processing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.reserved_quantity, 4)

    def test_closed_order_status_is_final(self):
        self.client.post(f'/api/v1/sales-orders/{self.order.id}/fulfill/')
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/status/', {'status': 'Pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_fulfill_rolls_back_when_stock_was_removed(self):
        # Stock removed behind the reservation's back
        self.gadget.quantity = 2
        self.gadget.reserved_quantity = 2
        self.gadget.save()
        response = self.client.post(f'/api/v1/sales-orders/{self.order.id}/fulfill/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.widget.refresh_from_db()
        self.assertEqual((self.widget.quantity, self.widget.reserved_quantity), (10, 4))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, SalesOrder.STATUS_PENDING)
        self.assertFalse(StockTransaction.objects.filter(reference=self.order.order_number).exists())
