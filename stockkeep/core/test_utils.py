"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from stockkeep.catalog.models import Category, Product
from stockkeep.parties.models import Supplier
from stockkeep.purchasing.models import PurchaseOrder, PurchaseOrderItem
from stockkeep.sales.models import Quote
from stockkeep.sales import services as sales_services
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        return user

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test description for {name}'
        )

    @staticmethod
    def create_supplier(name=None, phone=None, email=None, contact_person=''):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'9{random.randint(100000000, 999999999)}'
        if email is None:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(
            name=name,
            phone=phone,
            email=email,
            contact_person=contact_person
        )

    @staticmethod
    def create_product(name=None, sku=None, category=None, supplier=None, quantity=0,
                       reserved_quantity=0, min_stock_level=5, price=None, cost=None):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        if not category:
            category = TestDataFactory.create_category()
        if price is None:
            price = Decimal('100.00')
        if cost is None:
            cost = Decimal('60.00')

        return Product.objects.create(
            name=name,
            sku=sku,
            category=category,
            supplier=supplier,
            quantity=quantity,
            reserved_quantity=reserved_quantity,
            min_stock_level=min_stock_level,
            price=price,
            cost=cost
        )

    @staticmethod
    def create_purchase_order(user=None, supplier=None, items=None, status='draft', order_date=None):
        """
        Create a test purchase order.
        `items` is a list of (product, quantity, unit_price) tuples.
        """
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        if not order_date:
            order_date = timezone.localdate()
        purchase_order = PurchaseOrder.objects.create(
            supplier=supplier,
            status=status,
            order_date=order_date,
            created_by=user
        )
        purchase_order.po_number = f"PO-{timezone.now().year}-{purchase_order.id:04d}"
        purchase_order.save(update_fields=['po_number'])
        for product, quantity, unit_price in items or []:
            PurchaseOrderItem.objects.create(
                purchase_order=purchase_order,
                product=product,
                quantity=quantity,
                unit_price=unit_price
            )
        return purchase_order

    @staticmethod
    def create_quote(items, user=None, customer_name=None, status=Quote.STATUS_DRAFT):
        """
        Create a test quote with totals computed.
        `items` is a list of (product, quantity) or (product, quantity, unit_price) tuples.
        """
        quote = sales_services.create_quote(
            {'customer_name': customer_name or f'Customer_{TestDataFactory.random_string(6)}'},
            TestDataFactory._line_items(items),
            user=user
        )
        if status != quote.status:
            quote.status = status
            quote.save(update_fields=['status'])
        return quote

    @staticmethod
    def create_sales_order(items, user=None, customer_name=None):
        """Create a Pending sales order, reserving stock for its lines"""
        return sales_services.create_sales_order(
            {'customer_name': customer_name or f'Customer_{TestDataFactory.random_string(6)}'},
            TestDataFactory._line_items(items),
            user=user
        )

    @staticmethod
    def _line_items(items):
        lines = []
        for item in items:
            product, quantity = item[0], item[1]
            unit_price = item[2] if len(item) > 2 else None
            lines.append({'product': product, 'quantity': quantity, 'unit_price': unit_price})
        return lines


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
