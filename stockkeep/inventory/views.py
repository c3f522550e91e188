import logging
from datetime import datetime, time

from django.conf import settings
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockkeep.catalog.models import Product
from stockkeep.core.utils import create_audit_log
from .exceptions import StockError
from .models import StockTransaction
from .serializers import StockTransactionSerializer, StockMovementSerializer
from .services import record_movement

logger = logging.getLogger(__name__)


def parse_date_bound(value, end_of_day=False):
    """
    Parse a date or datetime query parameter into an aware datetime.
    Plain dates cover the whole day, so an end bound of 2024-01-31 includes
    everything recorded on the 31st.
    """
    if not value:
        return None
    try:
        day = parse_date(value)
        parsed = parse_datetime(value) if day is None else None
    except ValueError:
        raise ValueError(f"Invalid date: {value}")
    if day is not None:
        parsed = datetime.combine(day, time.max if end_of_day else time.min)
    elif parsed is None:
        raise ValueError(f"Invalid date: {value}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def filter_transactions(queryset, params):
    """Apply product/type/date range filters shared by the transaction endpoints"""
    product_id = params.get('product', None)
    txn_type = params.get('type', None)
    date_from = parse_date_bound(params.get('date_from', None))
    date_to = parse_date_bound(params.get('date_to', None), end_of_day=True)

    if product_id:
        queryset = queryset.filter(product_id=product_id)
    if txn_type:
        queryset = queryset.filter(type=txn_type)
    if date_from:
        queryset = queryset.filter(date__gte=date_from)
    if date_to:
        queryset = queryset.filter(date__lte=date_to)
    return queryset


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def transaction_list_create(request):
    """List stock transactions (newest first) or record a manual stock movement"""
    if request.method == 'GET':
        queryset = StockTransaction.objects.select_related('product', 'created_by')
        try:
            queryset = filter_transactions(queryset, request.query_params)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        serializer = StockTransactionSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = StockMovementSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    product = get_object_or_404(Product, pk=data['product'])

    try:
        transaction_row = record_movement(
            product, data['type'], data['quantity'],
            reference=data['reference'], notes=data['notes'], user=request.user
        )
    except StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='Product',
        object_id=str(product.id),
        object_name=product.name,
        object_reference=product.sku,
        changes={
            'type': data['type'],
            'quantity': data['quantity'],
            'reference': data['reference'],
            'new_stock_quantity': transaction_row.balance_after,
        }
    )
    return Response(StockTransactionSerializer(transaction_row).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_detail(request, pk):
    """Retrieve a stock transaction"""
    transaction_row = get_object_or_404(StockTransaction.objects.select_related('product', 'created_by'), pk=pk)
    serializer = StockTransactionSerializer(transaction_row)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transaction_recent(request):
    """Most recent stock transactions"""
    try:
        limit = int(request.query_params.get('limit', settings.STOCKKEEP_RECENT_TRANSACTIONS_LIMIT))
    except (ValueError, TypeError):
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    queryset = StockTransaction.objects.select_related('product', 'created_by')[:max(limit, 0)]
    serializer = StockTransactionSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_transactions(request, pk):
    """Stock history of a single product, newest first"""
    product = get_object_or_404(Product, pk=pk)
    queryset = StockTransaction.objects.filter(product=product).select_related('product', 'created_by')
    serializer = StockTransactionSerializer(queryset, many=True)
    return Response(serializer.data)
