"""
URL configuration for the StockKeep backend.

All business endpoints live under /api/v1/ and are provided by the
individual apps.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "StockKeep Admin Panel"
admin.site.site_title = "StockKeep Admin Portal"
admin.site.index_title = "Inventory & Order Management"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('stockkeep.core.urls')),
    path('api/v1/', include('stockkeep.catalog.urls')),
    path('api/v1/', include('stockkeep.parties.urls')),
    path('api/v1/', include('stockkeep.inventory.urls')),
    path('api/v1/', include('stockkeep.purchasing.urls')),
    path('api/v1/', include('stockkeep.sales.urls')),
    path('api/v1/', include('stockkeep.reports.urls')),
]
