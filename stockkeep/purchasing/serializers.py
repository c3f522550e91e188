from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from .models import PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    line_total = serializers.SerializerMethodField()
    outstanding_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = [
            'id', 'product', 'product_name', 'product_sku', 'quantity', 'unit_price',
            'received_quantity', 'outstanding_quantity', 'line_total'
        ]
        read_only_fields = ['received_quantity']

    def get_line_total(self, obj):
        return str(obj.get_line_total())

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError(f'Quantity must be greater than 0. Got {value}.')
        return value

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Unit price cannot be negative')
        return value


class PurchaseOrderSerializer(serializers.ModelSerializer):
    items = PurchaseOrderItemSerializer(many=True, required=False)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    supplier_email = serializers.CharField(source='supplier.email', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)
    subtotal = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'supplier', 'supplier_name', 'supplier_email',
            'order_date', 'expected_delivery_date', 'status', 'notes',
            'created_by', 'created_by_username', 'created_at', 'updated_at',
            'items', 'subtotal', 'total'
        ]
        # Status changes go through the status endpoint so the supplier is notified
        read_only_fields = ['po_number', 'status', 'created_by', 'created_at', 'updated_at']

    def get_subtotal(self, obj):
        return str(obj.get_subtotal())

    def get_total(self, obj):
        return str(obj.get_total())

    def validate(self, attrs):
        order_date = attrs.get('order_date', getattr(self.instance, 'order_date', None))
        expected = attrs.get('expected_delivery_date', getattr(self.instance, 'expected_delivery_date', None))
        if order_date and expected and expected < order_date:
            raise serializers.ValidationError({
                'expected_delivery_date': 'Expected delivery date cannot be before the order date'
            })
        return attrs

    def _create_items(self, purchase_order, items_data):
        PurchaseOrderItem.objects.bulk_create([
            PurchaseOrderItem(purchase_order=purchase_order, **item_data) for item_data in items_data
        ])

    def create(self, validated_data):
        items_data = validated_data.pop('items', [])
        with transaction.atomic():
            purchase_order = PurchaseOrder.objects.create(**validated_data)
            # Number depends on the primary key, so it is assigned after the first save
            purchase_order.po_number = f"PO-{timezone.now().year}-{purchase_order.id:04d}"
            purchase_order.save(update_fields=['po_number'])
            self._create_items(purchase_order, items_data)
        return purchase_order

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        if items_data is not None and instance.has_received_goods():
            raise serializers.ValidationError({
                'items': 'Cannot change items of a purchase order that has received goods'
            })
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if items_data is not None:
                instance.items.all().delete()
                self._create_items(instance, items_data)
        return instance


class PurchaseOrderStatusSerializer(serializers.Serializer):
    status = serializers.CharField()


class ReceiptLineSerializer(serializers.Serializer):
    item = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class PurchaseOrderReceiveSerializer(serializers.Serializer):
    items = ReceiptLineSerializer(many=True, required=False)
