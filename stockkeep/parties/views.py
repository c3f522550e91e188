from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockkeep.catalog.serializers import ProductSerializer
from stockkeep.core.utils import create_audit_log
from .models import Supplier
from .serializers import SupplierSerializer


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def supplier_list_create(request):
    """List all suppliers or create a new supplier"""
    if request.method == 'GET':
        queryset = Supplier.objects.annotate(product_count=Count('products')).order_by('name')
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(phone__icontains=search) |
                Q(email__icontains=search)
            )
        serializer = SupplierSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = SupplierSerializer(data=request.data)
        if serializer.is_valid():
            supplier = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Supplier',
                object_id=str(supplier.id),
                object_name=supplier.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)

    if request.method == 'GET':
        serializer = SupplierSerializer(supplier)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        # Omitted fields keep their current values for both verbs
        serializer = SupplierSerializer(supplier, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Supplier',
                object_id=str(supplier.id),
                object_name=supplier.name,
                changes={key: str(value) for key, value in serializer.validated_data.items()}
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if supplier.products.exists():
            return Response(
                {'error': 'Cannot delete supplier that has associated products'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if supplier.purchase_orders.exists():
            return Response(
                {'error': 'Cannot delete supplier that has purchase orders'},
                status=status.HTTP_400_BAD_REQUEST
            )
        supplier_name = supplier.name
        supplier.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Supplier',
            object_id=str(pk),
            object_name=supplier_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def supplier_products(request, pk):
    """Products supplied by a supplier"""
    supplier = get_object_or_404(Supplier, pk=pk)
    products = supplier.products.select_related('category', 'supplier')
    serializer = ProductSerializer(products, many=True)
    return Response(serializer.data)
