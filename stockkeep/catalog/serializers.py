from decimal import Decimal
from rest_framework import serializers
from .models import Category, Product

STOCK_FIELDS = ('quantity', 'reserved_quantity')


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_product_count(self, obj):
        # Prefer the annotated value from the list view
        count = getattr(obj, 'product_count', None)
        if count is not None:
            return count
        return obj.products.count()


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    available_quantity = serializers.IntegerField(read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'category', 'category_name', 'supplier', 'supplier_name',
            'description', 'quantity', 'reserved_quantity', 'available_quantity',
            'min_stock_level', 'stock_status', 'price', 'cost', 'created_at', 'updated_at'
        ]
        read_only_fields = ['reserved_quantity', 'created_at', 'updated_at']

    def update(self, instance, validated_data):
        """
        Save only the edited columns. Stock levels are owned by the inventory
        services, so a stale instance never writes quantity or reserved_quantity back.
        """
        for field in STOCK_FIELDS:
            validated_data.pop(field, None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save(update_fields=[*validated_data, 'updated_at'])
        return instance

    def validate_sku(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('SKU is required')
        return value

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value

    def validate_price(self, value):
        if value <= Decimal('0'):
            raise serializers.ValidationError('Price must be greater than 0')
        return value

    def validate_cost(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError('Cost cannot be negative')
        return value

    def validate_quantity(self, value):
        # Stock cannot drop below what open sales orders have reserved
        if self.instance is not None and value < self.instance.reserved_quantity:
            raise serializers.ValidationError(
                f'Quantity cannot be lower than the reserved quantity ({self.instance.reserved_quantity})'
            )
        return value


class StockUpdateSerializer(serializers.Serializer):
    """Payload for manual stock updates"""
    TYPE_CHOICES = [
        ('add', 'Add to current stock'),
        ('adjustment', 'Set stock level'),
    ]

    quantity = serializers.IntegerField()
    type = serializers.ChoiceField(choices=TYPE_CHOICES, default='adjustment')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['type'] == 'adjustment' and attrs['quantity'] < 0:
            raise serializers.ValidationError({'quantity': 'Stock level cannot be negative'})
        return attrs
