"""
Order views

The order listing uses keyset (cursor) pagination and is cached under
the "orders" version family. Every order mutation bumps that family before
its response is returned, so the next listing request computes a fresh
page.
"""
import logging

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from orderdesk.core.cache_utils import ORDERS, cached_listing, cached_response
from orderdesk.core.models import AuditLog
from orderdesk.core.pagination import cursor_paginate, parse_limit
from orderdesk.core.serializers import AuditLogSerializer
from orderdesk.core.utils import create_audit_log, snapshot
from . import services
from .filters import OrderFilter
from .models import Order, OrderNote
from .serializers import (
    BulkUpdateSerializer, OrderCreateSerializer, OrderNoteCreateSerializer, OrderNoteSerializer,
    OrderNoteUpdateSerializer, OrderSerializer, OrderUpdateSerializer,
)

logger = logging.getLogger(__name__)

ORDER_SNAPSHOT_FIELDS = [
    'order_id', 'customer_name', 'customer_id', 'address', 'customer_notes', 'status',
    'payment_status', 'paid_amount', 'confirmation_status', 'delivery_status', 'priority',
    'expected_delivery_date', 'actual_delivery_date', 'tracking_id', 'delivery_partner',
]


def _get_order(pk):
    try:
        return Order.objects.prefetch_related('items').get(pk=pk)
    except Order.DoesNotExist:
        raise NotFound('Order not found')


def _get_note(order, note_pk):
    try:
        note = OrderNote.objects.get(pk=note_pk)
    except OrderNote.DoesNotExist:
        raise NotFound('Note not found')
    if note.order_id != order.pk:
        raise NotFound('Note does not belong to this order')
    return note


def _stock_failure_response(error):
    return Response(
        {'message': error.message, 'stock': error.stock_result.as_dict()},
        status=status.HTTP_400_BAD_REQUEST,
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List orders newest first (cursor paginated) or place a new order"""
    if request.method == 'GET':
        def compute():
            filterset = OrderFilter(request.query_params, queryset=Order.objects.prefetch_related('items'))
            if not filterset.is_valid():
                raise ValidationError(filterset.errors)
            limit = parse_limit(request.query_params.get('limit'))
            rows, pagination = cursor_paginate(filterset.qs, request.query_params.get('cursor'), limit)
            return {
                'items': OrderSerializer(rows, many=True).data,
                'pagination': pagination,
            }

        page = cached_listing(ORDERS, request, compute, settings.ORDERS_CACHE_TTL)
        return cached_response(page)

    serializer = OrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    command = serializer.to_command()

    try:
        order, stock = services.place_order(command, user=request.user)
    except services.StockUpdateFailed as e:
        logger.info(f"Order rejected for customer {command.customer_id}: {e.message}")
        return _stock_failure_response(e)

    create_audit_log(
        request=request,
        entity_type='order',
        entity_id=order.pk,
        action='create',
        new_data=snapshot(order, fields=ORDER_SNAPSHOT_FIELDS),
        metadata={'stock': stock.summary()},
    )
    data = OrderSerializer(_get_order(order.pk)).data
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve or update an order"""
    order = _get_order(pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    serializer = OrderUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    changes = serializer.validated_data

    previous_data = snapshot(order, fields=ORDER_SNAPSHOT_FIELDS)
    try:
        order, restore = services.update_order(order.pk, changes, user=request.user)
    except services.StockUpdateFailed as e:
        return _stock_failure_response(e)

    new_data = snapshot(order, fields=ORDER_SNAPSHOT_FIELDS)
    status_changed = previous_data['status'] != new_data['status']
    create_audit_log(
        request=request,
        entity_type='order',
        entity_id=order.pk,
        action='status_change' if status_changed else 'update',
        previous_data=previous_data,
        new_data=new_data,
        metadata={'stock_restored': restore.summary()} if restore is not None else None,
    )
    return Response(OrderSerializer(_get_order(order.pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_bulk_update(request):
    """Apply one status and/or payment status change to many orders"""
    serializer = BulkUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order_ids = serializer.validated_data['order_ids']
    changes = dict(serializer.validated_data['updates'])

    try:
        updated, skipped = services.bulk_update_orders(order_ids, changes, user=request.user)
    except services.StockUpdateFailed as e:
        return _stock_failure_response(e)

    if updated:
        create_audit_log(
            request=request,
            entity_type='order',
            entity_id=updated[0].pk,
            action='bulk_update',
            new_data=changes,
            fields_changed=sorted(changes),
            metadata={
                'order_ids': [order.pk for order in updated],
                'skipped_order_ids': skipped,
                'requested_order_ids': order_ids,
            },
        )
    return Response({
        'success': True,
        'updatedCount': len(updated),
        'skipped': skipped,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_priority(request):
    """Open orders that are high priority, due soon or overdue"""
    def compute():
        orders = list(services.priority_orders())
        return {
            'items': OrderSerializer(orders, many=True).data,
            'count': len(orders),
        }

    page = cached_listing(ORDERS, request, compute, settings.ORDERS_CACHE_TTL)
    return cached_response(page)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_audit(request, pk):
    """Audit trail for one order, newest first"""
    order = _get_order(pk)
    logs = AuditLog.objects.filter(entity_type='order', entity_id=order.pk).order_by('-created_at', '-id')
    return Response({'items': AuditLogSerializer(logs, many=True).data})


# Order note views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_notes(request, pk):
    """List an order's notes (pinned first, newest first) or add one"""
    order = _get_order(pk)

    if request.method == 'GET':
        return Response({'items': OrderNoteSerializer(order.notes.all(), many=True).data})

    serializer = OrderNoteCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = request.user
    note = OrderNote.objects.create(
        order=order,
        user=user,
        user_email=user.email or '',
        user_name=user.get_full_name() or user.username,
        **serializer.validated_data
    )
    logger.info(f"Note {note.pk} ({note.note_type}) added to order {order.order_id} by user {user.pk}")
    return Response(OrderNoteSerializer(note).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def order_note_detail(request, pk, note_pk):
    """Retrieve, edit or delete one note of an order"""
    order = _get_order(pk)
    note = _get_note(order, note_pk)

    if request.method == 'GET':
        return Response(OrderNoteSerializer(note).data)

    if request.method == 'DELETE':
        note.delete()
        logger.info(f"Note {note_pk} deleted from order {order.order_id} by user {request.user.pk}")
        return Response({'message': 'Note deleted successfully'})

    serializer = OrderNoteUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    for field_name, value in serializer.validated_data.items():
        setattr(note, field_name, value)
    note.save(update_fields=[*serializer.validated_data, 'updated_at'])
    logger.info(f"Note {note.pk} on order {order.order_id} updated: {sorted(serializer.validated_data)}")
    return Response(OrderNoteSerializer(note).data)
