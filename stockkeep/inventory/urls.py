from django.urls import path
from .views import (
    transaction_list_create, transaction_detail, transaction_recent,
    product_transactions,
)

urlpatterns = [
    # StockTransaction endpoints
    path('transactions/', transaction_list_create, name='transaction-list-create'),
    path('transactions/recent/', transaction_recent, name='transaction-recent'),
    path('transactions/<int:pk>/', transaction_detail, name='transaction-detail'),
    path('products/<int:pk>/transactions/', product_transactions, name='product-transactions'),
]
