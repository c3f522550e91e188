from django.db import models
from django.utils import timezone
from stockkeep.catalog.models import Product


class StockTransaction(models.Model):
    """Stock movement history per product"""
    TYPE_STOCK_IN = 'stock_in'
    TYPE_STOCK_OUT = 'stock_out'
    TYPE_ADJUSTMENT = 'adjustment'
    TYPE_CHOICES = [
        (TYPE_STOCK_IN, 'Stock In'),
        (TYPE_STOCK_OUT, 'Stock Out'),
        (TYPE_ADJUSTMENT, 'Adjustment'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='transactions')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    # Signed change in on-hand quantity
    quantity = models.IntegerField()
    balance_after = models.PositiveIntegerField()
    reference = models.CharField(max_length=100, blank=True, help_text='PO number, order number or other source document')
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_transactions')
    date = models.DateTimeField(default=timezone.now, db_index=True)

    def __str__(self):
        return f"{self.get_type_display()} {self.quantity:+d} {self.product.sku}"

    class Meta:
        db_table = 'stock_transactions'
        ordering = ['-date', '-id']
        indexes = [
            models.Index(fields=['product', '-date'], name='idx_txn_product_date'),
            models.Index(fields=['type'], name='idx_txn_type'),
        ]
