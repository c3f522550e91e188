"""
Test suite for Purchasing module
Tests: Purchase order creation, numbering, pagination, status notifications, goods receipt
"""
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from stockkeep.core.models import AuditLog
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.purchasing.exceptions import PurchaseOrderError
from stockkeep.purchasing.models import PurchaseOrder, PurchaseOrderItem
from stockkeep.purchasing.services import receive_purchase_order


class PurchaseOrderModelTests(TestCase):
    """Test PurchaseOrder and PurchaseOrderItem model methods"""

    def setUp(self):
        self.product = TestDataFactory.create_product()

    def test_str_without_number(self):
        purchase_order = PurchaseOrder.objects.create(supplier=TestDataFactory.create_supplier())
        self.assertEqual(str(purchase_order), f"PO-{purchase_order.id}")

    def test_subtotal_and_total(self):
        purchase_order = TestDataFactory.create_purchase_order(items=[
            (self.product, 10, Decimal('100.00')),
            (self.product, 5, Decimal('50.00')),
        ])
        self.assertEqual(purchase_order.get_subtotal(), Decimal('1250.00'))
        self.assertEqual(purchase_order.get_total(), Decimal('1250.00'))

    def test_outstanding_quantity(self):
        purchase_order = TestDataFactory.create_purchase_order(items=[(self.product, 10, Decimal('1.00'))])
        item = purchase_order.items.get()
        item.received_quantity = 4
        self.assertEqual(item.outstanding_quantity, 6)


class PurchaseOrderAPITests(TestCase):
    """Test purchase order CRUD endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(name='Acme')
        self.product = TestDataFactory.create_product(supplier=self.supplier, quantity=0)

    def test_create_purchase_order(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'supplier': self.supplier.id,
            'expected_delivery_date': (timezone.localdate() + timedelta(days=7)).isoformat(),
            'notes': 'Rush order',
            'items': [
                {'product': self.product.id, 'quantity': 12, 'unit_price': '4.25'},
            ]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        purchase_order = PurchaseOrder.objects.get(id=response.data['id'])
        self.assertEqual(response.data['po_number'], f"PO-{timezone.now().year}-{purchase_order.id:04d}")
        self.assertEqual(response.data['status'], 'draft')
        self.assertEqual(response.data['supplier_name'], 'Acme')
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertEqual(Decimal(response.data['total']), Decimal('51.00'))
        self.assertEqual(len(response.data['items']), 1)

        # Ordering goods does not change stock
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 0)

    def test_create_rejects_bad_items(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'supplier': self.supplier.id,
            'items': [{'product': self.product.id, 'quantity': 0, 'unit_price': '1.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delivery_before_order_date_rejected(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'supplier': self.supplier.id,
            'order_date': '2024-05-10',
            'expected_delivery_date': '2024-05-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('expected_delivery_date', response.data)

    def test_update_keeps_number_and_replaces_items(self):
        purchase_order = TestDataFactory.create_purchase_order(
            user=self.user, supplier=self.supplier, items=[(self.product, 5, Decimal('2.00'))]
        )
        response = self.client.patch(f'/api/v1/purchase-orders/{purchase_order.id}/', {
            'po_number': 'PO-HACKED',
            'notes': 'Updated',
            'items': [{'product': self.product.id, 'quantity': 8, 'unit_price': '3.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['po_number'], purchase_order.po_number)
        self.assertEqual(response.data['notes'], 'Updated')
        self.assertEqual([item['quantity'] for item in response.data['items']], [8])
        self.assertEqual(Decimal(response.data['total']), Decimal('24.00'))

    def test_cannot_replace_items_after_receiving(self):
        purchase_order = TestDataFactory.create_purchase_order(
            supplier=self.supplier, items=[(self.product, 5, Decimal('2.00'))], status='submitted'
        )
        receive_purchase_order(purchase_order, [{'item': purchase_order.items.get().id, 'quantity': 2}])
        response = self.client.patch(f'/api/v1/purchase-orders/{purchase_order.id}/', {
            'items': [{'product': self.product.id, 'quantity': 1, 'unit_price': '3.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete(self):
        purchase_order = TestDataFactory.create_purchase_order(items=[(self.product, 1, Decimal('1.00'))])
        response = self.client.delete(f'/api/v1/purchase-orders/{purchase_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PurchaseOrder.objects.filter(id=purchase_order.id).exists())
        self.assertFalse(PurchaseOrderItem.objects.exists())

    def test_list_is_paginated(self):
        for _ in range(3):
            TestDataFactory.create_purchase_order(supplier=self.supplier)
        response = self.client.get('/api/v1/purchase-orders/?limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['next'], 2)
        self.assertIsNone(response.data['previous'])

    def test_list_filters(self):
        other_supplier = TestDataFactory.create_supplier()
        submitted = TestDataFactory.create_purchase_order(supplier=self.supplier, status='submitted')
        TestDataFactory.create_purchase_order(supplier=self.supplier)
        TestDataFactory.create_purchase_order(
            supplier=other_supplier, order_date=timezone.localdate() - timedelta(days=30)
        )

        response = self.client.get('/api/v1/purchase-orders/?status=submitted')
        self.assertEqual([row['id'] for row in response.data['results']], [submitted.id])

        response = self.client.get(f'/api/v1/purchase-orders/?supplier={other_supplier.id}')
        self.assertEqual(response.data['count'], 1)

        since = (timezone.localdate() - timedelta(days=1)).isoformat()
        response = self.client.get(f'/api/v1/purchase-orders/?date_from={since}')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/purchase-orders/?date_to=2024-13-45')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_recent(self):
        created = [TestDataFactory.create_purchase_order(supplier=self.supplier) for _ in range(7)]
        response = self.client.get('/api/v1/purchase-orders/recent/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 5)
        self.assertEqual(response.data[0]['id'], created[-1].id)


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend', STOCKKEEP_PO_NOTIFICATIONS=True)
class PurchaseOrderStatusTests(TestCase):
    """Test status changes and supplier notifications"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(name='Acme', email='orders@acme.test')
        self.purchase_order = TestDataFactory.create_purchase_order(supplier=self.supplier)

    def test_status_change_notifies_supplier(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/status/',
                                    {'status': 'submitted'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'submitted')
        self.assertTrue(response.data['supplier_notified'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['orders@acme.test'])
        self.assertIn(self.purchase_order.po_number, mail.outbox[0].subject)
        self.assertTrue(AuditLog.objects.filter(action='status_change', object_reference=self.purchase_order.po_number).exists())

    def test_invalid_status(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/status/',
                                    {'status': 'shipped'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid status')
        self.assertEqual(len(mail.outbox), 0)

    def test_supplier_without_email_is_skipped(self):
        supplier = TestDataFactory.create_supplier(email='')
        purchase_order = TestDataFactory.create_purchase_order(supplier=supplier)
        response = self.client.post(f'/api/v1/purchase-orders/{purchase_order.id}/status/',
                                    {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['supplier_notified'])
        self.assertEqual(len(mail.outbox), 0)

    def test_notification_failure_does_not_fail_update(self):
        with mock.patch('stockkeep.purchasing.notifications.send_mail', side_effect=OSError('SMTP down')):
            response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/status/',
                                        {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['supplier_notified'])
        self.purchase_order.refresh_from_db()
        self.assertEqual(self.purchase_order.status, 'approved')

    @override_settings(STOCKKEEP_PO_NOTIFICATIONS=False)
    def test_notifications_disabled(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/status/',
                                    {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)


class PurchaseOrderReceiveTests(TestCase):
    """Test receiving goods into stock"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.hammer = TestDataFactory.create_product(quantity=2)
        self.saw = TestDataFactory.create_product(quantity=0)
        self.purchase_order = TestDataFactory.create_purchase_order(
            items=[(self.hammer, 10, Decimal('5.00')), (self.saw, 4, Decimal('20.00'))],
            status='approved'
        )
        self.hammer_line = self.purchase_order.items.get(product=self.hammer)
        self.saw_line = self.purchase_order.items.get(product=self.saw)

    def test_receive_everything(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')
        self.hammer.refresh_from_db()
        self.saw.refresh_from_db()
        self.assertEqual(self.hammer.quantity, 12)
        self.assertEqual(self.saw.quantity, 4)
        self.assertEqual(self.hammer.transactions.get().reference, self.purchase_order.po_number)
        self.assertTrue(AuditLog.objects.filter(action='stock_receive').exists())

    def test_partial_receipt(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'items': [{'item': self.hammer_line.id, 'quantity': 6}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'partially_received')
        self.hammer_line.refresh_from_db()
        self.assertEqual(self.hammer_line.received_quantity, 6)

        # The rest arrives later
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {}, format='json')
        self.assertEqual(response.data['status'], 'completed')
        self.hammer.refresh_from_db()
        self.assertEqual(self.hammer.quantity, 12)

    def test_over_receiving_rejected(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'items': [{'item': self.saw_line.id, 'quantity': 5}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.saw.refresh_from_db()
        self.assertEqual(self.saw.quantity, 0)

    def test_duplicate_lines_cannot_over_receive(self):
        with self.assertRaises(PurchaseOrderError):
            receive_purchase_order(self.purchase_order, [
                {'item': self.saw_line.id, 'quantity': 3},
                {'item': self.saw_line.id, 'quantity': 3},
            ])
        self.saw.refresh_from_db()
        self.assertEqual(self.saw.quantity, 0)

    def test_receive_refused_for_draft(self):
        draft = TestDataFactory.create_purchase_order(items=[(self.hammer, 1, Decimal('1.00'))])
        response = self.client.post(f'/api/v1/purchase-orders/{draft.id}/receive/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receive_refused_when_complete(self):
        receive_purchase_order(self.purchase_order)
        self.purchase_order.refresh_from_db()
        with self.assertRaises(PurchaseOrderError):
            receive_purchase_order(self.purchase_order)

    def test_unknown_item(self):
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'items': [{'item': 99999, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_after_receiving(self):
        receive_purchase_order(self.purchase_order, [{'item': self.hammer_line.id, 'quantity': 1}])
        response = self.client.delete(f'/api/v1/purchase-orders/{self.purchase_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
