from rest_framework import serializers
from .models import StockTransaction


class StockTransactionSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = StockTransaction
        fields = [
            'id', 'product', 'product_name', 'product_sku', 'type', 'quantity', 'balance_after',
            'reference', 'notes', 'created_by', 'created_by_username', 'date'
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.Serializer):
    """Payload for recording a manual stock movement"""
    MOVEMENT_CHOICES = [
        (StockTransaction.TYPE_STOCK_IN, 'Stock In'),
        (StockTransaction.TYPE_STOCK_OUT, 'Stock Out'),
    ]

    product = serializers.IntegerField()
    type = serializers.ChoiceField(choices=MOVEMENT_CHOICES)
    quantity = serializers.IntegerField(min_value=1)
    reference = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
