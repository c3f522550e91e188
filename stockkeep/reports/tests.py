"""
Test suite for Reports module
Tests: Dashboard figures and inventory summary
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.inventory.services import receive_stock


class DashboardTests(TestCase):
    """Test dashboard endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_empty_dashboard(self):
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total_products'], 0)
        self.assertEqual(Decimal(summary['total_inventory_value']), Decimal('0'))
        self.assertEqual(summary['total_reserved_units'], 0)
        self.assertEqual(response.data['purchase_orders_by_status']['draft'], 0)

    def test_dashboard_figures(self):
        category = TestDataFactory.create_category()
        full = TestDataFactory.create_product(category=category, quantity=10, min_stock_level=2, price=Decimal('5.00'))
        low = TestDataFactory.create_product(category=category, quantity=2, min_stock_level=5, price=Decimal('2.50'))
        TestDataFactory.create_product(category=category, quantity=0, min_stock_level=5, price=Decimal('99.00'))
        TestDataFactory.create_sales_order([(full, 3)])
        TestDataFactory.create_purchase_order(status='submitted')
        receive_stock(full, 1)

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['total_products'], 3)
        # 11 x 5.00 + 2 x 2.50
        self.assertEqual(Decimal(summary['total_inventory_value']), Decimal('60.00'))
        self.assertEqual(summary['total_reserved_units'], 3)
        self.assertEqual(summary['low_stock_count'], 1)
        self.assertEqual(summary['out_of_stock_count'], 1)
        self.assertEqual(summary['open_sales_orders'], 1)
        self.assertEqual([row['id'] for row in response.data['low_stock_products']], [low.id])
        self.assertEqual(response.data['recent_products'][0]['id'], full.id)
        self.assertEqual(len(response.data['recent_transactions']), 1)
        self.assertEqual(response.data['purchase_orders_by_status']['submitted'], 1)

    def test_recent_products_limited_to_five(self):
        category = TestDataFactory.create_category()
        for _ in range(7):
            TestDataFactory.create_product(category=category)
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(len(response.data['recent_products']), 5)

    def test_inventory_summary(self):
        tools = TestDataFactory.create_category(name='Tools')
        TestDataFactory.create_category(name='Empty')
        TestDataFactory.create_product(category=tools, quantity=4, price=Decimal('10.00'))
        response = self.client.get('/api/v1/reports/inventory-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = {row['category_name']: row for row in response.data['categories']}
        self.assertEqual(rows['Tools']['total_quantity'], 4)
        self.assertEqual(Decimal(rows['Tools']['total_value']), Decimal('40.00'))
        self.assertEqual(rows['Empty']['product_count'], 0)
        self.assertEqual(Decimal(response.data['total_value']), Decimal('40.00'))
