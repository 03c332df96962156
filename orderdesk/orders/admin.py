from django.contrib import admin
from .models import Order, OrderItem, OrderNote


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    # Lines are fixed once the order is placed
    readonly_fields = ['item', 'name', 'price', 'cost_price', 'quantity', 'customization_request']
    can_delete = False


class OrderNoteInline(admin.TabularInline):
    model = OrderNote
    extra = 0
    fields = ['note_type', 'note_text', 'is_pinned', 'user_name', 'created_at']
    readonly_fields = ['user_name', 'created_at']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_id', 'customer_name', 'customer_id', 'order_from', 'status', 'payment_status', 'total_price', 'priority', 'expected_delivery_date', 'created_at']
    list_filter = ['status', 'payment_status', 'delivery_status', 'order_from', 'created_at']
    search_fields = ['order_id', 'customer_name', 'customer_id']
    ordering = ['-created_at']
    readonly_fields = ['order_id', 'total_price', 'created_by', 'created_at', 'updated_at']
    inlines = [OrderItemInline, OrderNoteInline]


@admin.register(OrderNote)
class OrderNoteAdmin(admin.ModelAdmin):
    list_display = ['order', 'note_type', 'is_pinned', 'user_name', 'created_at']
    list_filter = ['note_type', 'is_pinned']
    search_fields = ['order__order_id', 'note_text']
    readonly_fields = ['user', 'user_email', 'user_name', 'created_at', 'updated_at']
