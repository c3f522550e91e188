from django.urls import path
from .views import supplier_list_create, supplier_detail, supplier_products

urlpatterns = [
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),
    path('suppliers/<int:pk>/products/', supplier_products, name='supplier-products'),
]
