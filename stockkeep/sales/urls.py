from django.urls import path
from .views import (
    quote_list_create, quote_detail, quote_update_status, quote_convert,
    sales_order_list_create, sales_order_detail, sales_order_update_status, sales_order_fulfill,
)

urlpatterns = [
    # Quote endpoints
    path('quotes/', quote_list_create, name='quote-list-create'),
    path('quotes/<int:pk>/', quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/status/', quote_update_status, name='quote-update-status'),
    path('quotes/<int:pk>/convert/', quote_convert, name='quote-convert'),

    # Sales order endpoints
    path('sales-orders/', sales_order_list_create, name='sales-order-list-create'),
    path('sales-orders/<int:pk>/', sales_order_detail, name='sales-order-detail'),
    path('sales-orders/<int:pk>/status/', sales_order_update_status, name='sales-order-update-status'),
    path('sales-orders/<int:pk>/fulfill/', sales_order_fulfill, name='sales-order-fulfill'),
]
