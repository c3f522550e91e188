from django.db import models
from django.utils import timezone
from decimal import Decimal
from stockkeep.catalog.models import Product
from stockkeep.parties.models import Supplier


class PurchaseOrder(models.Model):
    """Purchase order placed with a supplier"""
    STATUS_DRAFT = 'draft'
    STATUS_SUBMITTED = 'submitted'
    STATUS_APPROVED = 'approved'
    STATUS_PARTIALLY_RECEIVED = 'partially_received'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_PARTIALLY_RECEIVED, 'Partially Received'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    RECEIVABLE_STATUSES = (STATUS_SUBMITTED, STATUS_APPROVED, STATUS_PARTIALLY_RECEIVED)

    po_number = models.CharField(max_length=50, unique=True, blank=True, null=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    order_date = models.DateField(default=timezone.localdate)
    expected_delivery_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.po_number or f"PO-{self.id}"

    def get_subtotal(self):
        """Calculate subtotal from all items"""
        return sum((item.get_line_total() for item in self.items.all()), Decimal('0.00'))

    def get_total(self):
        return self.get_subtotal()

    def has_received_goods(self):
        return self.items.filter(received_quantity__gt=0).exists()

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
            models.Index(fields=['-order_date'], name='idx_po_order_date'),
        ]


class PurchaseOrderItem(models.Model):
    """Purchase order line items"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='purchase_order_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    received_quantity = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.purchase_order} - {self.product.sku} x {self.quantity}"

    def get_line_total(self):
        return self.quantity * self.unit_price

    @property
    def outstanding_quantity(self):
        return max(0, self.quantity - self.received_quantity)

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['purchase_order', 'product'], name='idx_poitem_po_product'),
        ]
