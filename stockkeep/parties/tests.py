"""
Test suite for Parties module
Tests: Supplier CRUD, search, defaults, delete refusal, supplier products
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.parties.models import Supplier


class SupplierTests(TestCase):
    """Test supplier endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier_defaults(self):
        response = self.client.post('/api/v1/suppliers/', {
            'name': 'Acme Tools',
            'email': 'sales@acme.test'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['payment_terms'], 'Net 30')
        self.assertEqual(response.data['lead_time_days'], 14)
        self.assertEqual(Decimal(response.data['performance_rating']), Decimal('0'))
        self.assertEqual(response.data['minimum_order_quantity'], 0)
        self.assertEqual(response.data['notes'], '')
        self.assertEqual(response.data['product_count'], 0)

    def test_create_supplier_requires_name(self):
        response = self.client.post('/api/v1/suppliers/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rating_out_of_range(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'Acme', 'performance_rating': '7.5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search(self):
        TestDataFactory.create_supplier(name='Acme Tools', contact_person='Jordan Lee')
        TestDataFactory.create_supplier(name='Bolt Brothers')
        response = self.client.get('/api/v1/suppliers/?search=jordan')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data], ['Acme Tools'])

    def test_update_keeps_omitted_fields(self):
        """Test that PUT with a subset of fields keeps the rest"""
        supplier = TestDataFactory.create_supplier(name='Acme', email='a@acme.test')
        supplier.lead_time_days = 21
        supplier.save()
        response = self.client.put(f'/api/v1/suppliers/{supplier.id}/', {'payment_terms': 'Net 60'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        supplier.refresh_from_db()
        self.assertEqual(supplier.payment_terms, 'Net 60')
        self.assertEqual(supplier.lead_time_days, 21)
        self.assertEqual(supplier.email, 'a@acme.test')

    def test_delete_supplier(self):
        supplier = TestDataFactory.create_supplier()
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Supplier.objects.filter(id=supplier.id).exists())

    def test_delete_supplier_with_products_refused(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_product(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete supplier that has associated products')

    def test_delete_supplier_with_purchase_orders_refused(self):
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase_order(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Supplier.objects.filter(id=supplier.id).exists())

    def test_supplier_products(self):
        supplier = TestDataFactory.create_supplier()
        product = TestDataFactory.create_product(supplier=supplier)
        TestDataFactory.create_product()
        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [product.id])

        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.data['product_count'], 1)
