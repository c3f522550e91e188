from django.contrib import admin
from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'category', 'supplier', 'quantity', 'reserved_quantity', 'min_stock_level', 'price', 'updated_at']
    list_filter = ['category', 'supplier', 'created_at']
    search_fields = ['name', 'sku', 'description']
    ordering = ['name']
    # Stock levels change through the inventory services only
    readonly_fields = ['quantity', 'reserved_quantity', 'created_at', 'updated_at']
