from django.urls import path
from .views import (
    stock_list, stock_low, stock_bulk_adjust,
    item_stock, item_stock_history,
)

urlpatterns = [
    # Stock endpoints
    path('stock/', stock_list, name='stock-list'),
    path('stock/low/', stock_low, name='stock-low'),
    path('stock/bulk-adjust/', stock_bulk_adjust, name='stock-bulk-adjust'),

    # Per-item stock endpoints
    path('items/<int:pk>/stock/', item_stock, name='item-stock'),
    path('items/<int:pk>/stock/history/', item_stock_history, name='item-stock-history'),
]
