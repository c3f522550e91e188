from django.contrib import admin
from .models import Quote, QuoteItem, SalesOrder, SalesOrderItem


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0


class SalesOrderItemInline(admin.TabularInline):
    model = SalesOrderItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'unit_price', 'total']


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'customer_name', 'status', 'total', 'valid_until', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['quote_number', 'customer_name', 'customer_email']
    readonly_fields = ['quote_number', 'subtotal', 'tax', 'total', 'created_at', 'updated_at']
    inlines = [QuoteItemInline]


@admin.register(SalesOrder)
class SalesOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_name', 'status', 'total', 'fulfilled_at', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['order_number', 'customer_name', 'customer_email']
    # Line items and status drive stock reservations, so they are edited through the API only
    readonly_fields = ['order_number', 'status', 'quote', 'subtotal', 'tax', 'total', 'fulfilled_at', 'created_at', 'updated_at']
    inlines = [SalesOrderItemInline]

    def has_delete_permission(self, request, obj=None):
        return False
