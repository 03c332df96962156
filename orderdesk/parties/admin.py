from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['customer_id', 'name', 'phone', 'email', 'source', 'total_orders', 'total_spent', 'last_order_date']
    list_filter = ['source', 'created_at']
    search_fields = ['customer_id', 'name', 'phone', 'email']
    ordering = ['-created_at']
    readonly_fields = ['total_orders', 'total_spent', 'first_order_date', 'last_order_date', 'created_at', 'updated_at']
