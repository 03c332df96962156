from django.contrib import admin
from .models import StockTransaction


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    list_display = ['item', 'transaction_type', 'quantity', 'previous_stock', 'new_stock', 'reference_type', 'reference_id', 'created_at']
    list_filter = ['transaction_type', 'reference_type', 'created_at']
    search_fields = ['item__name', 'reference_id', 'user_email']
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False
