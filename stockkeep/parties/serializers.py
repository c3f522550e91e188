from decimal import Decimal
from rest_framework import serializers
from .models import Supplier


class SupplierSerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'contact_person', 'email', 'phone', 'address',
            'payment_terms', 'lead_time_days', 'performance_rating',
            'minimum_order_quantity', 'notes', 'product_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def get_product_count(self, obj):
        if hasattr(obj, 'product_count'):
            return obj.product_count
        return obj.products.count()

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Supplier name is required")
        return value.strip()

    def validate_performance_rating(self, value):
        if value < Decimal('0') or value > Decimal('5'):
            raise serializers.ValidationError("Performance rating must be between 0 and 5")
        return value
