from django.urls import path
from .views import (
    category_list_create, category_detail, category_products,
    product_list_create, product_detail, product_low_stock, product_update_stock,
)

urlpatterns = [
    # Category endpoints
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),
    path('categories/<int:pk>/products/', category_products, name='category-products'),

    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/low-stock/', product_low_stock, name='product-low-stock'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/stock/', product_update_stock, name='product-update-stock'),
]
