import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import Sum, Count, F, DecimalField, ExpressionWrapper
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockkeep.catalog.models import Product, Category
from stockkeep.catalog.serializers import ProductSerializer
from stockkeep.inventory.models import StockTransaction
from stockkeep.inventory.serializers import StockTransactionSerializer
from stockkeep.purchasing.models import PurchaseOrder
from stockkeep.sales.models import SalesOrder

logger = logging.getLogger(__name__)

STOCK_VALUE = ExpressionWrapper(F('price') * F('quantity'), output_field=DecimalField(max_digits=14, decimal_places=2))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Headline stock and order figures for the dashboard"""
    products = Product.objects.all()

    totals = products.aggregate(
        total_value=Sum(STOCK_VALUE),
        total_reserved=Sum('reserved_quantity'),
    )
    low_stock = products.filter(quantity__gt=0, quantity__lte=F('min_stock_level'))
    out_of_stock = products.filter(quantity=0)

    recent_products = products.select_related('category', 'supplier').order_by('-updated_at', '-id')[:5]
    recent_transactions = StockTransaction.objects.select_related('product', 'created_by')[
        :settings.STOCKKEEP_RECENT_TRANSACTIONS_LIMIT
    ]

    purchase_orders_by_status = {value: 0 for value, _ in PurchaseOrder.STATUS_CHOICES}
    for row in PurchaseOrder.objects.values('status').annotate(count=Count('id')):
        purchase_orders_by_status[row['status']] = row['count']

    return Response({
        'summary': {
            'total_products': products.count(),
            'total_inventory_value': str(totals['total_value'] or Decimal('0.00')),
            'total_reserved_units': totals['total_reserved'] or 0,
            'low_stock_count': low_stock.count(),
            'out_of_stock_count': out_of_stock.count(),
            'open_sales_orders': SalesOrder.objects.filter(status__in=SalesOrder.OPEN_STATUSES).count(),
        },
        'low_stock_products': ProductSerializer(low_stock.select_related('category', 'supplier'), many=True).data,
        'recent_products': ProductSerializer(recent_products, many=True).data,
        'recent_transactions': StockTransactionSerializer(recent_transactions, many=True).data,
        'purchase_orders_by_status': purchase_orders_by_status,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def inventory_summary(request):
    """Stock units, reservations and value per category"""
    categories = Category.objects.annotate(
        product_count=Count('products'),
        total_quantity=Sum('products__quantity'),
        total_reserved=Sum('products__reserved_quantity'),
        total_value=Sum(
            ExpressionWrapper(F('products__price') * F('products__quantity'),
                              output_field=DecimalField(max_digits=14, decimal_places=2))
        ),
    ).order_by('name')

    rows = [
        {
            'category_id': category.id,
            'category_name': category.name,
            'product_count': category.product_count,
            'total_quantity': category.total_quantity or 0,
            'total_reserved': category.total_reserved or 0,
            'total_value': str(category.total_value or Decimal('0.00')),
        }
        for category in categories
    ]
    return Response({
        'categories': rows,
        'total_value': str(sum((Decimal(row['total_value']) for row in rows), Decimal('0.00'))),
    })
