"""
Test suite for Catalog module
Tests: Categories, products, filters, low stock, manual stock updates
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from stockkeep.catalog.models import Category, Product
from stockkeep.catalog.serializers import ProductSerializer
from stockkeep.core.models import AuditLog
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.inventory.models import StockTransaction
from stockkeep.inventory.services import reserve_stock


class ProductModelTests(TestCase):
    """Test Product derived values"""

    def test_available_quantity(self):
        product = TestDataFactory.create_product(quantity=10, reserved_quantity=4)
        self.assertEqual(product.available_quantity, 6)

    def test_stock_status(self):
        self.assertEqual(TestDataFactory.create_product(quantity=0, min_stock_level=5).stock_status, 'out_of_stock')
        self.assertEqual(TestDataFactory.create_product(quantity=5, min_stock_level=5).stock_status, 'low_stock')
        self.assertEqual(TestDataFactory.create_product(quantity=6, min_stock_level=5).stock_status, 'in_stock')

    def test_stock_value(self):
        product = TestDataFactory.create_product(quantity=3, price=Decimal('19.99'))
        self.assertEqual(product.get_stock_value(), Decimal('59.97'))


class CategoryTests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_category(self):
        response = self.client.post('/api/v1/categories/', {
            'name': 'Fasteners',
            'description': 'Screws and bolts'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_count'], 0)
        self.assertTrue(AuditLog.objects.filter(model_name='Category', action='create').exists())

    def test_duplicate_category_name(self):
        TestDataFactory.create_category(name='Fasteners')
        response = self.client.post('/api/v1/categories/', {'name': 'Fasteners'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_includes_product_count(self):
        category = TestDataFactory.create_category(name='Tools')
        TestDataFactory.create_product(category=category)
        TestDataFactory.create_product(category=category)
        TestDataFactory.create_category(name='Empty')

        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        counts = {row['name']: row['product_count'] for row in response.data}
        self.assertEqual(counts, {'Empty': 0, 'Tools': 2})

    def test_update_category(self):
        category = TestDataFactory.create_category(name='Tools')
        response = self.client.patch(f'/api/v1/categories/{category.id}/', {'description': 'Hand tools'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        category.refresh_from_db()
        self.assertEqual(category.description, 'Hand tools')

    def test_delete_empty_category(self):
        category = TestDataFactory.create_category()
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Category.objects.filter(id=category.id).exists())

    def test_delete_category_with_products_refused(self):
        category = TestDataFactory.create_category()
        TestDataFactory.create_product(category=category)
        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete category that contains products')
        self.assertTrue(Category.objects.filter(id=category.id).exists())

    def test_category_products(self):
        category = TestDataFactory.create_category()
        product = TestDataFactory.create_product(category=category)
        TestDataFactory.create_product()
        response = self.client.get(f'/api/v1/categories/{category.id}/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [product.id])

    def test_missing_category(self):
        response = self.client.get('/api/v1/categories/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductTests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.category = TestDataFactory.create_category(name='Tools')
        self.supplier = TestDataFactory.create_supplier(name='Acme')

    def test_create_product_records_opening_stock(self):
        """Test that opening quantity is booked as a stock_in transaction"""
        response = self.client.post('/api/v1/products/', {
            'sku': 'HAM-001',
            'name': 'Claw Hammer',
            'category': self.category.id,
            'supplier': self.supplier.id,
            'quantity': 25,
            'min_stock_level': 5,
            'price': '24.50',
            'cost': '12.00'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity'], 25)
        self.assertEqual(response.data['reserved_quantity'], 0)
        self.assertEqual(response.data['available_quantity'], 25)
        self.assertEqual(response.data['supplier_name'], 'Acme')

        transaction = StockTransaction.objects.get(product_id=response.data['id'])
        self.assertEqual(transaction.type, 'stock_in')
        self.assertEqual(transaction.quantity, 25)
        self.assertEqual(transaction.balance_after, 25)

    def test_create_product_without_stock(self):
        response = self.client.post('/api/v1/products/', {
            'sku': 'HAM-002',
            'name': 'Mallet',
            'category': self.category.id,
            'price': '9.99'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(StockTransaction.objects.filter(product_id=response.data['id']).exists())

    def test_create_product_validation(self):
        response = self.client.post('/api/v1/products/', {
            'sku': 'HAM-003',
            'name': 'Broken',
            'category': self.category.id,
            'price': '0'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('price', response.data)

    def test_duplicate_sku(self):
        TestDataFactory.create_product(sku='DUP-1', category=self.category)
        response = self.client.post('/api/v1/products/', {
            'sku': 'DUP-1',
            'name': 'Another',
            'category': self.category.id,
            'price': '5.00'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reserved_quantity_is_read_only(self):
        product = TestDataFactory.create_product(category=self.category, quantity=10)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'reserved_quantity': 7}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.reserved_quantity, 0)

    def test_update_quantity_records_adjustment(self):
        product = TestDataFactory.create_product(category=self.category, quantity=10)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'quantity': 14, 'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.quantity, 14)
        self.assertEqual(product.name, 'Renamed')
        transaction = product.transactions.get()
        self.assertEqual(transaction.type, 'adjustment')
        self.assertEqual(transaction.quantity, 4)

    def test_edit_keeps_reservation_made_after_load(self):
        """Test that saving a product edit never writes stale stock levels back"""
        product = TestDataFactory.create_product(category=self.category, quantity=10)
        loaded = Product.objects.get(pk=product.pk)
        reserve_stock(product.pk, 3)

        serializer = ProductSerializer(loaded, data={'name': 'Renamed'}, partial=True)
        self.assertTrue(serializer.is_valid(), serializer.errors)
        serializer.save()

        product.refresh_from_db()
        self.assertEqual(product.name, 'Renamed')
        self.assertEqual(product.quantity, 10)
        self.assertEqual(product.reserved_quantity, 3)

    def test_edit_via_api_keeps_open_order_reservation(self):
        product = TestDataFactory.create_product(category=self.category, quantity=10)
        TestDataFactory.create_sales_order([(product, 4)])
        response = self.client.put(f'/api/v1/products/{product.id}/', {
            'sku': product.sku,
            'name': 'Renamed',
            'category': self.category.id,
            'price': '19.99'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reserved_quantity'], 4)
        self.assertEqual(response.data['available_quantity'], 6)
        product.refresh_from_db()
        self.assertEqual(product.reserved_quantity, 4)

    def test_quantity_edit_is_audited(self):
        product = TestDataFactory.create_product(category=self.category, quantity=10)
        self.client.patch(f'/api/v1/products/{product.id}/', {'quantity': 14}, format='json')
        log = AuditLog.objects.get(action='update', model_name='Product', object_id=str(product.id))
        self.assertEqual(log.changes['quantity'], '14')
        self.assertEqual(log.changes['old_stock_quantity'], 10)
        self.assertEqual(log.changes['new_stock_quantity'], 14)

    def test_update_quantity_below_reserved_refused(self):
        product = TestDataFactory.create_product(category=self.category, quantity=10, reserved_quantity=6)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'quantity': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        product.refresh_from_db()
        self.assertEqual(product.quantity, 10)

    def test_delete_product(self):
        product = TestDataFactory.create_product(category=self.category)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(id=product.id).exists())

    def test_delete_product_on_order_refused(self):
        product = TestDataFactory.create_product(category=self.category, quantity=10)
        TestDataFactory.create_sales_order([(product, 2)])
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(id=product.id).exists())

    def test_filter_by_category_and_search(self):
        other = TestDataFactory.create_category(name='Paint')
        hammer = TestDataFactory.create_product(name='Claw Hammer', sku='HAM-1', category=self.category)
        TestDataFactory.create_product(name='Wall Paint', sku='PNT-1', category=other)

        response = self.client.get(f'/api/v1/products/?category={self.category.id}')
        self.assertEqual([row['id'] for row in response.data], [hammer.id])

        response = self.client.get('/api/v1/products/?search=pnt')
        self.assertEqual([row['sku'] for row in response.data], ['PNT-1'])

    def test_filter_by_supplier(self):
        supplied = TestDataFactory.create_product(category=self.category, supplier=self.supplier)
        TestDataFactory.create_product(category=self.category)
        response = self.client.get(f'/api/v1/products/?supplier={self.supplier.id}')
        self.assertEqual([row['id'] for row in response.data], [supplied.id])

    def test_filter_by_stock_status(self):
        empty = TestDataFactory.create_product(category=self.category, quantity=0, min_stock_level=5)
        low = TestDataFactory.create_product(category=self.category, quantity=3, min_stock_level=5)
        full = TestDataFactory.create_product(category=self.category, quantity=50, min_stock_level=5)

        for value, expected in (('out_of_stock', empty), ('low_stock', low), ('in_stock', full)):
            response = self.client.get(f'/api/v1/products/?stock_status={value}')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual([row['id'] for row in response.data], [expected.id])

    def test_low_stock_uses_own_minimum(self):
        low = TestDataFactory.create_product(category=self.category, quantity=3, min_stock_level=5)
        TestDataFactory.create_product(category=self.category, quantity=30, min_stock_level=5)
        response = self.client.get('/api/v1/products/low-stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [low.id])

    def test_low_stock_with_threshold(self):
        TestDataFactory.create_product(category=self.category, quantity=3, min_stock_level=0)
        TestDataFactory.create_product(category=self.category, quantity=30, min_stock_level=0)
        response = self.client.get('/api/v1/products/low-stock/?threshold=10')
        self.assertEqual(len(response.data), 1)

        response = self.client.get('/api/v1/products/low-stock/?threshold=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductStockUpdateTests(TestCase):
    """Test the manual stock update endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(quantity=10)

    def test_add_stock(self):
        response = self.client.post(f'/api/v1/products/{self.product.id}/stock/', {
            'quantity': 5,
            'type': 'add',
            'notes': 'Found in back room'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity'], 15)
        transaction = self.product.transactions.get()
        self.assertEqual(transaction.type, 'stock_in')
        self.assertEqual(transaction.notes, 'Found in back room')
        self.assertTrue(AuditLog.objects.filter(action='stock_adjust', object_reference=self.product.sku).exists())

    def test_set_stock(self):
        response = self.client.post(f'/api/v1/products/{self.product.id}/stock/', {'quantity': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity'], 4)
        self.assertEqual(self.product.transactions.get().type, 'adjustment')

    def test_add_negative_clamps_at_zero(self):
        response = self.client.post(f'/api/v1/products/{self.product.id}/stock/', {
            'quantity': -50,
            'type': 'add'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quantity'], 0)

    def test_set_negative_rejected(self):
        response = self.client.post(f'/api/v1/products/{self.product.id}/stock/', {'quantity': -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_drop_below_reserved(self):
        TestDataFactory.create_sales_order([(self.product, 8)])
        response = self.client.post(f'/api/v1/products/{self.product.id}/stock/', {'quantity': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)
        self.assertEqual(self.product.reserved_quantity, 8)
