from django.urls import path
from .views import (
    order_list_create, order_detail, order_bulk_update,
    order_priority, order_audit,
    order_notes, order_note_detail,
)

urlpatterns = [
    # Order endpoints
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/bulk-update/', order_bulk_update, name='order-bulk-update'),
    path('orders/priority/', order_priority, name='order-priority'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/audit/', order_audit, name='order-audit'),

    # Order note endpoints
    path('orders/<int:pk>/notes/', order_notes, name='order-notes'),
    path('orders/<int:pk>/notes/<int:note_pk>/', order_note_detail, name='order-note-detail'),
]
