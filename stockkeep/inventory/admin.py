from django.contrib import admin
from .models import StockTransaction


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    list_display = ['product', 'type', 'quantity', 'balance_after', 'reference', 'created_by', 'date']
    list_filter = ['type', 'date']
    search_fields = ['product__name', 'product__sku', 'reference', 'notes']
    ordering = ['-date']
    readonly_fields = ['product', 'type', 'quantity', 'balance_after', 'reference', 'notes', 'created_by', 'date']
