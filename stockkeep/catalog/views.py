import logging

from django.db import transaction
from django.db.models import Count, F, ProtectedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockkeep.core.utils import create_audit_log
from stockkeep.inventory.exceptions import StockError
from stockkeep.inventory.services import adjust_stock, receive_stock
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer, StockUpdateSerializer

logger = logging.getLogger(__name__)


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def category_list_create(request):
    """List all categories with their product counts or create a new category"""
    if request.method == 'GET':
        categories = Category.objects.annotate(product_count=Count('products'))
        serializer = CategorySerializer(categories, many=True)
        return Response(serializer.data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Category',
                object_id=str(category.id),
                object_name=category.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if category.products.exists():
            return Response(
                {'error': 'Cannot delete category that contains products'},
                status=status.HTTP_400_BAD_REQUEST
            )
        category_name = category.name
        category.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Category',
            object_id=str(pk),
            object_name=category_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def category_products(request, pk):
    """Products in a category"""
    category = get_object_or_404(Category, pk=pk)
    products = category.products.select_related('category', 'supplier')
    serializer = ProductSerializer(products, many=True)
    return Response(serializer.data)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """List products (filterable by category, supplier, search, stock_status) or create one"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('category', 'supplier')
        product_filter = ProductFilter(request.query_params, queryset=queryset)
        if not product_filter.is_valid():
            return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ProductSerializer(product_filter.qs, many=True)
        return Response(serializer.data)

    serializer = ProductSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    opening_quantity = serializer.validated_data.pop('quantity', 0)
    with transaction.atomic():
        product = serializer.save(quantity=0)
        if opening_quantity:
            product = receive_stock(product, opening_quantity, notes='Opening stock', user=request.user)

    create_audit_log(
        request=request,
        action='create',
        model_name='Product',
        object_id=str(product.id),
        object_name=product.name,
        object_reference=product.sku,
        changes={'quantity': product.quantity, 'price': str(product.price)}
    )
    return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.select_related('category', 'supplier'), pk=pk)

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)

    elif request.method in ('PUT', 'PATCH'):
        try:
            with transaction.atomic():
                product = Product.objects.select_for_update().get(pk=product.pk)
                serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
                if not serializer.is_valid():
                    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

                changes = {key: str(value) for key, value in serializer.validated_data.items()}
                # Quantity edits are recorded as stock adjustments
                new_quantity = serializer.validated_data.pop('quantity', None)
                old_quantity = product.quantity
                product = serializer.save()
                if new_quantity is not None and new_quantity != old_quantity:
                    product = adjust_stock(product, new_quantity, notes='Product edit', user=request.user)
                    changes['old_stock_quantity'] = old_quantity
                    changes['new_stock_quantity'] = product.quantity
        except StockError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        create_audit_log(
            request=request,
            action='update',
            model_name='Product',
            object_id=str(product.id),
            object_name=product.name,
            object_reference=product.sku,
            changes=changes
        )
        product = Product.objects.select_related('category', 'supplier').get(pk=product.pk)
        return Response(ProductSerializer(product).data)

    else:  # DELETE
        product_name = product.name
        product_sku = product.sku
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {'error': 'Cannot delete product that is referenced by purchase orders, quotes or sales orders'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=str(pk),
            object_name=product_name,
            object_reference=product_sku,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_low_stock(request):
    """
    Products at or below a stock threshold.

    With ?threshold=N every product with quantity <= N is returned, otherwise
    each product is compared against its own min_stock_level.
    """
    queryset = Product.objects.select_related('category', 'supplier')
    threshold = request.query_params.get('threshold', None)
    if threshold not in (None, ''):
        try:
            threshold = int(threshold)
        except (ValueError, TypeError):
            return Response({'error': 'threshold must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(quantity__lte=threshold)
    else:
        queryset = queryset.filter(quantity__lte=F('min_stock_level'))

    serializer = ProductSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def product_update_stock(request, pk):
    """Add to or set the on-hand quantity of a product"""
    product = get_object_or_404(Product, pk=pk)
    serializer = StockUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    old_quantity = product.quantity
    try:
        product = adjust_stock(product, data['quantity'], adjustment_type=data['type'],
                               notes=data['notes'], user=request.user)
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
            'notes': data['notes'],
            'old_stock_quantity': old_quantity,
            'new_stock_quantity': product.quantity,
        }
    )
    return Response(ProductSerializer(product).data)
