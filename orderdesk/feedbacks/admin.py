from django.contrib import admin
from .models import Feedback


@admin.register(Feedback)
class FeedbackAdmin(admin.ModelAdmin):
    list_display = ['order', 'rating', 'product_quality', 'delivery_experience', 'is_public', 'responded_at', 'created_at']
    list_filter = ['rating', 'is_public', 'created_at']
    search_fields = ['order__order_id', 'order__customer_name', 'comment']
    ordering = ['-created_at']
    readonly_fields = ['responded_at', 'created_at', 'updated_at']
