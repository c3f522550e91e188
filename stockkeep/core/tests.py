"""
Test suite for Core module
Tests: JWT login/refresh, current user, audit log endpoints and helper, sample data command
"""
from io import StringIO
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from stockkeep.core.models import AuditLog
from stockkeep.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockkeep.core.utils import create_audit_log
from stockkeep.catalog.models import Category, Product
from stockkeep.inventory.models import StockTransaction
from stockkeep.parties.models import Supplier


class AuthTests(TestCase):
    """Test JWT authentication endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='warehouse', password='secret123')
        self.client = APIClient()

    def test_login_returns_tokens(self):
        """Test login with valid credentials"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'warehouse',
            'password': 'secret123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        """Test login with an invalid password"""
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'warehouse',
            'password': 'wrong'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_returns_new_access_token(self):
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'warehouse',
            'password': 'secret123'
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_endpoints_require_authentication(self):
        """Test that business endpoints reject anonymous requests"""
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_current_user(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'warehouse')

    def test_update_current_user(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.patch('/api/v1/auth/me/', {'phone': '5551234'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.phone, '5551234')


class AuditLogTests(TestCase):
    """Test audit log helper and admin endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.client = AuthenticatedAPIClient()

    def test_create_audit_log_with_user(self):
        log = create_audit_log(
            user=self.user,
            action='create',
            model_name='Category',
            object_id='1',
            object_name='Tools'
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.changes, {})

    def test_create_audit_log_skips_missing_fields(self):
        """Test that incomplete audit entries are skipped, not raised"""
        log = create_audit_log(user=self.user, action='create', model_name='Category', object_id=None)
        self.assertIsNone(log)
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_audit_log_list_requires_admin(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_log_list_filters(self):
        create_audit_log(user=self.user, action='create', model_name='Category', object_id='1')
        create_audit_log(user=self.user, action='delete', model_name='Product', object_id='2')
        self.client.authenticate_user(self.admin)

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['model_name'], 'Product')

        response = self.client.get('/api/v1/audit-logs/?model_name=Category')
        self.assertEqual(len(response.data), 1)

    def test_audit_log_detail(self):
        log = create_audit_log(user=self.user, action='update', model_name='Supplier', object_id='7')
        self.client.authenticate_user(self.admin)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['object_id'], '7')


class SeedSampleDataCommandTests(TestCase):
    """Test the seed_sample_data management command"""

    def test_seed_loads_catalogue_with_opening_stock(self):
        out = StringIO()
        call_command('seed_sample_data', stdout=out)
        self.assertEqual(Category.objects.count(), 4)
        self.assertEqual(Supplier.objects.count(), 2)
        self.assertEqual(Product.objects.count(), 6)
        drill = Product.objects.get(sku='PT-DRL-18V')
        self.assertEqual(drill.quantity, 6)
        self.assertEqual(drill.reserved_quantity, 0)
        self.assertEqual(drill.transactions.count(), 1)
        self.assertIn('Products created: 6', out.getvalue())

    def test_seed_is_idempotent(self):
        call_command('seed_sample_data', stdout=StringIO())
        out = StringIO()
        call_command('seed_sample_data', stdout=out)
        self.assertEqual(Product.objects.count(), 6)
        self.assertEqual(StockTransaction.objects.count(), 5)
        self.assertIn('Products skipped: 6', out.getvalue())
