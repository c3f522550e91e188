import logging

from django.conf import settings
from django.core.paginator import Paginator
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockkeep.core.utils import create_audit_log
from stockkeep.inventory.exceptions import StockError
from .exceptions import PurchaseOrderError
from .models import PurchaseOrder
from .serializers import (
    PurchaseOrderSerializer, PurchaseOrderStatusSerializer, PurchaseOrderReceiveSerializer,
)
from .services import update_purchase_order_status, receive_purchase_order

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15


def _parse_day(value):
    try:
        day = parse_date(value)
    except ValueError:
        day = None
    if day is None:
        raise ValueError(f"Invalid date: {value}")
    return day


def _purchase_order_queryset():
    return PurchaseOrder.objects.select_related('supplier', 'created_by').prefetch_related('items', 'items__product')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_list_create(request):
    """List purchase orders (paginated) or create a new purchase order"""
    if request.method == 'GET':
        queryset = _purchase_order_queryset()

        # Filters
        supplier = request.query_params.get('supplier', None)
        date_from = request.query_params.get('date_from', None)
        date_to = request.query_params.get('date_to', None)
        status_filter = request.query_params.get('status', None)

        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        try:
            if date_from:
                queryset = queryset.filter(order_date__gte=_parse_day(date_from))
            if date_to:
                queryset = queryset.filter(order_date__lte=_parse_day(date_to))
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        try:
            page = int(request.query_params.get('page', 1))
            limit = int(request.query_params.get('limit', DEFAULT_PAGE_SIZE))
        except (ValueError, TypeError):
            return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)
        limit = max(limit, 1)

        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)

        serializer = PurchaseOrderSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    serializer = PurchaseOrderSerializer(data=request.data)
    if serializer.is_valid():
        purchase_order = serializer.save(created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='PurchaseOrder',
            object_id=str(purchase_order.id),
            object_name=purchase_order.supplier.name,
            object_reference=purchase_order.po_number,
            changes={'total': str(purchase_order.get_total()), 'items': purchase_order.items.count()}
        )
        return Response(PurchaseOrderSerializer(purchase_order).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_order_detail(request, pk):
    """Retrieve, update or delete a purchase order"""
    purchase_order = get_object_or_404(_purchase_order_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = PurchaseOrderSerializer(purchase_order)
        return Response(serializer.data)

    elif request.method in ('PUT', 'PATCH'):
        serializer = PurchaseOrderSerializer(purchase_order, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            # Reload so the prefetched items reflect any replaced lines
            purchase_order = get_object_or_404(_purchase_order_queryset(), pk=pk)
            create_audit_log(
                request=request,
                action='update',
                model_name='PurchaseOrder',
                object_id=str(purchase_order.id),
                object_name=purchase_order.supplier.name,
                object_reference=purchase_order.po_number,
                changes={'total': str(purchase_order.get_total())}
            )
            return Response(PurchaseOrderSerializer(purchase_order).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    else:  # DELETE
        if purchase_order.has_received_goods():
            return Response(
                {'error': 'Cannot delete purchase order that has received goods'},
                status=status.HTTP_400_BAD_REQUEST
            )
        po_number = purchase_order.po_number
        supplier_name = purchase_order.supplier.name
        purchase_order.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='PurchaseOrder',
            object_id=str(pk),
            object_name=supplier_name,
            object_reference=po_number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def purchase_order_update_status(request, pk):
    """Change the status of a purchase order and notify the supplier"""
    purchase_order = get_object_or_404(PurchaseOrder.objects.select_related('supplier'), pk=pk)
    serializer = PurchaseOrderStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = purchase_order.status
    try:
        purchase_order, notified = update_purchase_order_status(purchase_order, serializer.validated_data['status'])
    except PurchaseOrderError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='status_change',
        model_name='PurchaseOrder',
        object_id=str(purchase_order.id),
        object_name=purchase_order.supplier.name,
        object_reference=purchase_order.po_number,
        changes={'old_status': old_status, 'new_status': purchase_order.status, 'supplier_notified': notified}
    )
    data = PurchaseOrderSerializer(get_object_or_404(_purchase_order_queryset(), pk=pk)).data
    data['supplier_notified'] = notified
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_receive(request, pk):
    """Receive goods against a purchase order and add them to stock"""
    purchase_order = get_object_or_404(PurchaseOrder.objects.select_related('supplier'), pk=pk)
    serializer = PurchaseOrderReceiveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    receipts = serializer.validated_data.get('items', None)
    try:
        lines = receive_purchase_order(purchase_order, receipts=receipts, user=request.user)
    except (PurchaseOrderError, StockError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='stock_receive',
        model_name='PurchaseOrder',
        object_id=str(purchase_order.id),
        object_name=purchase_order.supplier.name,
        object_reference=purchase_order.po_number,
        changes={
            'received': [
                {'product_sku': item.product.sku, 'quantity': quantity} for item, quantity in lines
            ],
            'new_status': purchase_order.status,
        }
    )
    return Response(PurchaseOrderSerializer(get_object_or_404(_purchase_order_queryset(), pk=pk)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_order_recent(request):
    """Most recently created purchase orders"""
    try:
        limit = int(request.query_params.get('limit', settings.STOCKKEEP_RECENT_PURCHASE_ORDERS_LIMIT))
    except (ValueError, TypeError):
        return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    queryset = _purchase_order_queryset().order_by('-created_at', '-id')[:max(limit, 0)]
    serializer = PurchaseOrderSerializer(queryset, many=True)
    return Response(serializer.data)
