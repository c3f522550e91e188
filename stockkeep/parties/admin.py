from django.contrib import admin
from .models import Supplier


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_person', 'email', 'phone', 'payment_terms', 'lead_time_days', 'created_at']
    list_filter = ['payment_terms', 'created_at']
    search_fields = ['name', 'contact_person', 'email']
    ordering = ['name']
