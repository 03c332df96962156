import logging

from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from orderdesk.core.cache_utils import ITEMS, cached_listing, cached_response, invalidate_item_cache
from orderdesk.core.pagination import paginate_queryset, parse_pagination_params
from orderdesk.core.utils import create_audit_log, snapshot
from .filters import ItemFilter
from .models import Item
from .serializers import ItemSerializer, ItemWriteSerializer

logger = logging.getLogger(__name__)


def _get_item(pk, include_deleted=False):
    queryset = Item.objects.all() if include_deleted else Item.objects.active()
    try:
        return queryset.get(pk=pk)
    except Item.DoesNotExist:
        raise NotFound('Item not found')


def _filtered_page(request, queryset):
    filterset = ItemFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        raise ValidationError(filterset.errors)
    page, limit = parse_pagination_params(request.query_params)
    rows, pagination = paginate_queryset(filterset.qs.order_by('-created_at', '-id'), page, limit)
    return {
        'items': ItemSerializer(rows, many=True).data,
        'pagination': pagination,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def item_list_create(request):
    """List active items or create a new item"""
    if request.method == 'GET':
        page = cached_listing(
            ITEMS, request,
            lambda: _filtered_page(request, Item.objects.active()),
            settings.ITEMS_CACHE_TTL,
        )
        return cached_response(page)

    serializer = ItemWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = serializer.save()

    create_audit_log(
        request=request,
        entity_type='item',
        entity_id=item.pk,
        action='create',
        new_data=snapshot(item),
    )
    invalidate_item_cache()
    logger.info(f"Item created: {item.pk} ({item.name})")
    return Response(ItemSerializer(item).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def item_detail(request, pk):
    """Retrieve, update or soft delete an item"""
    item = _get_item(pk)

    if request.method == 'GET':
        return Response(ItemSerializer(item).data)

    if request.method in ('PUT', 'PATCH'):
        previous_data = snapshot(item)
        serializer = ItemWriteSerializer(item, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        item = serializer.save()

        create_audit_log(
            request=request,
            entity_type='item',
            entity_id=item.pk,
            action='update',
            previous_data=previous_data,
            new_data=snapshot(item),
        )
        invalidate_item_cache()
        logger.info(f"Item updated: {item.pk}")
        return Response(ItemSerializer(item).data)

    # DELETE
    previous_data = snapshot(item)
    item.soft_delete()
    create_audit_log(
        request=request,
        entity_type='item',
        entity_id=item.pk,
        action='delete',
        previous_data=previous_data,
        new_data=snapshot(item),
    )
    invalidate_item_cache()
    logger.info(f"Item soft deleted: {item.pk}")
    return Response({'message': 'Item deleted'})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def item_restore(request, pk):
    """Bring a soft-deleted item back into the catalog"""
    item = _get_item(pk, include_deleted=True)
    if not item.is_deleted:
        raise ValidationError('Item is not deleted')

    item.restore()
    create_audit_log(
        request=request,
        entity_type='item',
        entity_id=item.pk,
        action='restore',
        new_data=snapshot(item),
    )
    invalidate_item_cache()
    logger.info(f"Item restored: {item.pk}")
    return Response(ItemSerializer(item).data)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def item_permanent_delete(request, pk):
    """
    Permanently remove a soft-deleted item.

    Items still referenced by order lines or ledger rows are kept for
    history; only their image reference is dropped.
    """
    item = _get_item(pk, include_deleted=True)
    if not item.is_deleted:
        raise ValidationError('Item must be soft-deleted before permanent removal')

    previous_data = snapshot(item)
    with transaction.atomic():
        if item.order_lines.exists() or item.stock_transactions.exists():
            item.image_url = None
            item.save(update_fields=['image_url', 'updated_at'])
            message = 'Item image permanently removed'
            removed = False
        else:
            item.delete()
            message = 'Item permanently deleted'
            removed = True

    create_audit_log(
        request=request,
        entity_type='item',
        entity_id=pk,
        action='delete',
        previous_data=previous_data,
        metadata={'permanent': True, 'removed': removed},
    )
    invalidate_item_cache()
    logger.info(f"Item {pk} permanent delete: removed={removed}")
    return Response({'message': message, 'removed': removed})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_deleted_list(request):
    """List soft-deleted items"""
    return Response(_filtered_page(request, Item.objects.deleted()))
