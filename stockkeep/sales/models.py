from django.db import models
from decimal import Decimal
from stockkeep.catalog.models import Product


class CustomerDocument(models.Model):
    """Customer and money fields shared by quotes and sales orders"""
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    billing_address = models.TextField(blank=True)
    shipping_address = models.TextField(blank=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Quote(CustomerDocument):
    """Price quote for a customer; never touches stock"""
    STATUS_DRAFT = 'Draft'
    STATUS_SENT = 'Sent'
    STATUS_ACCEPTED = 'Accepted'
    STATUS_REJECTED = 'Rejected'
    STATUS_CONVERTED = 'Converted'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CONVERTED, 'Converted'),
    ]

    quote_number = models.CharField(max_length=50, unique=True)
    valid_until = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')

    def __str__(self):
        return self.quote_number

    class Meta:
        db_table = 'quotes'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='idx_quote_status'),
            models.Index(fields=['customer_name'], name='idx_quote_customer'),
        ]


class QuoteItem(models.Model):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='quote_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        return f"{self.quote} - {self.product.sku} x {self.quantity}"

    class Meta:
        db_table = 'quote_items'
        ordering = ['id']


class SalesOrder(CustomerDocument):
    """Customer order; open orders hold stock reservations for their lines"""
    STATUS_PENDING = 'Pending'
    STATUS_PROCESSING = 'Processing'
    STATUS_FULFILLED = 'Fulfilled'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_FULFILLED, 'Fulfilled'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    OPEN_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)

    order_number = models.CharField(max_length=50, unique=True)
    quote = models.ForeignKey(Quote, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales_orders')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    fulfilled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='sales_orders')

    def __str__(self):
        return self.order_number

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES

    class Meta:
        db_table = 'sales_orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='idx_so_status'),
            models.Index(fields=['customer_name'], name='idx_so_customer'),
        ]


class SalesOrderItem(models.Model):
    sales_order = models.ForeignKey(SalesOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='sales_order_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        return f"{self.sales_order} - {self.product.sku} x {self.quantity}"

    class Meta:
        db_table = 'sales_order_items'
        ordering = ['id']
