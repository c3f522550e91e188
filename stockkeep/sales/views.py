import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockkeep.core.utils import create_audit_log
from stockkeep.inventory.exceptions import StockError
from .exceptions import OrderStateError
from .models import Quote, SalesOrder
from .serializers import QuoteSerializer, SalesOrderSerializer, StatusSerializer
from . import services

logger = logging.getLogger(__name__)


def _filter_documents(queryset, params):
    status_filter = params.get('status', None)
    customer = params.get('customer', None)
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    if customer:
        queryset = queryset.filter(customer_name__icontains=customer)
    return queryset


def _quote_queryset():
    return Quote.objects.select_related('created_by').prefetch_related('items', 'items__product')


def _order_queryset():
    return SalesOrder.objects.select_related('quote', 'created_by').prefetch_related('items', 'items__product')


def _order_lines(order):
    return [{'product_sku': item.product.sku, 'quantity': item.quantity} for item in order.items.all()]


# Quote views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def quote_list_create(request):
    """List quotes (filter by status, customer) or create a new quote"""
    if request.method == 'GET':
        queryset = _filter_documents(_quote_queryset(), request.query_params)
        serializer = QuoteSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = QuoteSerializer(data=request.data)
    if serializer.is_valid():
        quote = serializer.save(created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Quote',
            object_id=str(quote.id),
            object_name=quote.customer_name,
            object_reference=quote.quote_number,
            changes={'total': str(quote.total)}
        )
        return Response(QuoteSerializer(get_object_or_404(_quote_queryset(), pk=quote.pk)).data,
                        status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def quote_detail(request, pk):
    """Retrieve, update or delete a quote"""
    quote = get_object_or_404(_quote_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = QuoteSerializer(quote)
        return Response(serializer.data)

    elif request.method in ('PUT', 'PATCH'):
        serializer = QuoteSerializer(quote, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            quote = serializer.save()
        except OrderStateError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(
            request=request,
            action='update',
            model_name='Quote',
            object_id=str(quote.id),
            object_name=quote.customer_name,
            object_reference=quote.quote_number,
            changes={'total': str(quote.total)}
        )
        return Response(QuoteSerializer(get_object_or_404(_quote_queryset(), pk=pk)).data)

    else:  # DELETE
        quote_number = quote.quote_number
        customer_name = quote.customer_name
        quote.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Quote',
            object_id=str(pk),
            object_name=customer_name,
            object_reference=quote_number,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def quote_update_status(request, pk):
    """Move a quote to Draft, Sent, Accepted or Rejected"""
    quote = get_object_or_404(Quote, pk=pk)
    serializer = StatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = quote.status
    try:
        quote = services.update_quote_status(quote, serializer.validated_data['status'])
    except OrderStateError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='status_change',
        model_name='Quote',
        object_id=str(quote.id),
        object_name=quote.customer_name,
        object_reference=quote.quote_number,
        changes={'old_status': old_status, 'new_status': quote.status}
    )
    return Response(QuoteSerializer(get_object_or_404(_quote_queryset(), pk=pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_convert(request, pk):
    """Create a sales order from an accepted quote"""
    quote = get_object_or_404(Quote, pk=pk)
    try:
        order = services.create_order_from_quote(quote, user=request.user)
    except (OrderStateError, StockError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    order = get_object_or_404(_order_queryset(), pk=order.pk)
    create_audit_log(
        request=request,
        action='quote_convert',
        model_name='Quote',
        object_id=str(quote.id),
        object_name=quote.customer_name,
        object_reference=quote.quote_number,
        changes={'order_number': order.order_number, 'lines': _order_lines(order)}
    )
    return Response(SalesOrderSerializer(order).data, status=status.HTTP_201_CREATED)


# Sales order views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def sales_order_list_create(request):
    """List sales orders (filter by status, customer) or create one, reserving its stock"""
    if request.method == 'GET':
        queryset = _filter_documents(_order_queryset(), request.query_params)
        serializer = SalesOrderSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = SalesOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        order = serializer.save(created_by=request.user)
    except StockError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    order = get_object_or_404(_order_queryset(), pk=order.pk)
    create_audit_log(
        request=request,
        action='stock_reserve',
        model_name='SalesOrder',
        object_id=str(order.id),
        object_name=order.customer_name,
        object_reference=order.order_number,
        changes={'total': str(order.total), 'lines': _order_lines(order)}
    )
    return Response(SalesOrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def sales_order_detail(request, pk):
    """Retrieve, update or delete a sales order"""
    order = get_object_or_404(_order_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = SalesOrderSerializer(order)
        return Response(serializer.data)

    elif request.method in ('PUT', 'PATCH'):
        serializer = SalesOrderSerializer(order, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            serializer.save()
        except (OrderStateError, StockError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        order = get_object_or_404(_order_queryset(), pk=pk)
        create_audit_log(
            request=request,
            action='update',
            model_name='SalesOrder',
            object_id=str(order.id),
            object_name=order.customer_name,
            object_reference=order.order_number,
            changes={'total': str(order.total), 'lines': _order_lines(order)}
        )
        return Response(SalesOrderSerializer(order).data)

    else:  # DELETE
        order_number = order.order_number
        customer_name = order.customer_name
        was_open = order.is_open
        services.delete_sales_order(order)
        create_audit_log(
            request=request,
            action='stock_release' if was_open else 'delete',
            model_name='SalesOrder',
            object_id=str(pk),
            object_name=customer_name,
            object_reference=order_number,
            changes={'deleted': True, 'reservations_released': was_open}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def sales_order_update_status(request, pk):
    """Change order status; Cancelled releases reservations, Fulfilled ships the order"""
    order = get_object_or_404(SalesOrder, pk=pk)
    serializer = StatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.status
    try:
        order = services.update_sales_order_status(order, serializer.validated_data['status'], user=request.user)
    except (OrderStateError, StockError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    if order.status == SalesOrder.STATUS_FULFILLED:
        action = 'stock_fulfill'
    elif order.status == SalesOrder.STATUS_CANCELLED:
        action = 'stock_release'
    else:
        action = 'status_change'
    create_audit_log(
        request=request,
        action=action,
        model_name='SalesOrder',
        object_id=str(order.id),
        object_name=order.customer_name,
        object_reference=order.order_number,
        changes={'old_status': old_status, 'new_status': order.status}
    )
    return Response(SalesOrderSerializer(get_object_or_404(_order_queryset(), pk=pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def sales_order_fulfill(request, pk):
    """Ship a sales order: stock and reservations drop for every line"""
    order = get_object_or_404(SalesOrder, pk=pk)
    try:
        order = services.fulfill_sales_order(order, user=request.user)
    except (OrderStateError, StockError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    order = get_object_or_404(_order_queryset(), pk=pk)
    create_audit_log(
        request=request,
        action='stock_fulfill',
        model_name='SalesOrder',
        object_id=str(order.id),
        object_name=order.customer_name,
        object_reference=order.order_number,
        changes={'lines': _order_lines(order), 'fulfilled_at': order.fulfilled_at.isoformat()}
    )
    return Response(SalesOrderSerializer(order).data)
