import django_filters
from django.db.models import F, Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filters for the product list endpoint"""
    category = django_filters.NumberFilter(field_name='category_id')
    supplier = django_filters.NumberFilter(field_name='supplier_id')
    search = django_filters.CharFilter(method='filter_search')
    stock_status = django_filters.ChoiceFilter(choices=Product.STOCK_STATUS_CHOICES, method='filter_stock_status')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['category', 'supplier', 'search', 'stock_status', 'min_price', 'max_price']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(sku__icontains=value) |
            Q(description__icontains=value)
        )

    def filter_stock_status(self, queryset, name, value):
        if value == 'out_of_stock':
            return queryset.filter(quantity=0)
        if value == 'low_stock':
            return queryset.filter(quantity__gt=0, quantity__lte=F('min_stock_level'))
        if value == 'in_stock':
            return queryset.filter(quantity__gt=F('min_stock_level')).exclude(quantity=0)
        return queryset
