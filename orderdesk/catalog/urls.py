from django.urls import path
from .views import (
    item_list_create, item_detail, item_restore,
    item_permanent_delete, item_deleted_list,
)

urlpatterns = [
    # Item endpoints
    path('items/', item_list_create, name='item-list-create'),
    path('items/deleted/', item_deleted_list, name='item-deleted-list'),
    path('items/<int:pk>/', item_detail, name='item-detail'),
    path('items/<int:pk>/restore/', item_restore, name='item-restore'),
    path('items/<int:pk>/permanent/', item_permanent_delete, name='item-permanent-delete'),
]
