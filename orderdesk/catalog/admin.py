from django.contrib import admin
from .models import Item


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'price', 'track_stock', 'stock_quantity', 'low_stock_threshold', 'deleted_at', 'created_at']
    list_filter = ['track_stock', 'deleted_at', 'created_at']
    search_fields = ['name', 'color', 'fabric', 'supplier_name', 'supplier_sku']
    ordering = ['name']
    # Stock moves only through the ledger
    readonly_fields = ['stock_quantity', 'created_at', 'updated_at']
