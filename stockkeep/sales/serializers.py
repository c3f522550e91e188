from rest_framework import serializers

from .models import Quote, QuoteItem, SalesOrder, SalesOrderItem
from . import services


class LineItemSerializer(serializers.ModelSerializer):
    """Line item of a quote or sales order; unit_price defaults to the product price"""
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)

    class Meta:
        fields = ['id', 'product', 'product_name', 'product_sku', 'quantity', 'unit_price', 'total']
        read_only_fields = ['total']
        extra_kwargs = {
            'unit_price': {'required': False, 'allow_null': True},
        }

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError(f'Quantity must be greater than 0. Got {value}.')
        return value

    def validate_unit_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Unit price cannot be negative')
        return value


class QuoteItemSerializer(LineItemSerializer):
    class Meta(LineItemSerializer.Meta):
        model = QuoteItem


class SalesOrderItemSerializer(LineItemSerializer):
    class Meta(LineItemSerializer.Meta):
        model = SalesOrderItem


class CustomerDocumentSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)

    def validate_customer_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Customer name is required')
        return value.strip()

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one line item is required')
        return value

    def validate(self, attrs):
        if self.instance is None and 'items' not in attrs:
            raise serializers.ValidationError({'items': 'At least one line item is required'})
        return attrs


class QuoteSerializer(CustomerDocumentSerializer):
    items = QuoteItemSerializer(many=True, required=False)

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'customer_name', 'customer_email', 'customer_phone',
            'billing_address', 'shipping_address', 'valid_until', 'status', 'notes',
            'items', 'subtotal', 'tax', 'total',
            'created_by', 'created_by_username', 'created_at', 'updated_at'
        ]
        read_only_fields = ['quote_number', 'status', 'subtotal', 'tax', 'total', 'created_by', 'created_at', 'updated_at']

    def create(self, validated_data):
        items_data = validated_data.pop('items')
        user = validated_data.pop('created_by', None)
        return services.create_quote(validated_data, items_data, user=user)

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        return services.update_quote(instance, validated_data, items_data)


class SalesOrderSerializer(CustomerDocumentSerializer):
    items = SalesOrderItemSerializer(many=True, required=False)
    quote_number = serializers.CharField(source='quote.quote_number', read_only=True)

    class Meta:
        model = SalesOrder
        fields = [
            'id', 'order_number', 'customer_name', 'customer_email', 'customer_phone',
            'billing_address', 'shipping_address', 'status', 'notes', 'quote', 'quote_number',
            'items', 'subtotal', 'tax', 'total', 'fulfilled_at',
            'created_by', 'created_by_username', 'created_at', 'updated_at'
        ]
        # Status changes go through the status/fulfill endpoints so stock stays in step
        read_only_fields = [
            'order_number', 'status', 'quote', 'subtotal', 'tax', 'total', 'fulfilled_at',
            'created_by', 'created_at', 'updated_at'
        ]

    def create(self, validated_data):
        items_data = validated_data.pop('items')
        user = validated_data.pop('created_by', None)
        return services.create_sales_order(validated_data, items_data, user=user)

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        return services.update_sales_order(instance, validated_data, items_data)


class StatusSerializer(serializers.Serializer):
    status = serializers.CharField()
