"""
Order lifecycle

Placement and cancellation move stock through the ledger inside the same
database transaction as the order write, so an order and its stock
movements commit or roll back together. Cache versions are bumped by the
callers here only after that transaction has committed.
"""
import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Case, F, IntegerField, Q, Value, When
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from orderdesk.catalog.models import Item
from orderdesk.core.cache_utils import CUSTOMERS, ITEMS, ORDERS, STOCK, bump_cache_versions
from orderdesk.core.retry import execute_with_retry
from orderdesk.inventory.services import deduct_for_order, deducted_lines_for_order, restore_for_order
from orderdesk.parties.services import refresh_customer_stats
from .models import Order, OrderItem, generate_order_id

logger = logging.getLogger(__name__)

ORDER_ID_ATTEMPTS = 10
OPEN_STATUSES_EXCLUDED = (Order.STATUS_COMPLETED, Order.STATUS_CANCELLED)
HIGH_PRIORITY = 5
DUE_SOON_DAYS = 3


class StockUpdateFailed(Exception):
    """An order write was rolled back because its stock movement failed"""

    def __init__(self, message, stock_result):
        super().__init__(message)
        self.message = message
        self.stock_result = stock_result


def _retries():
    return 0 if transaction.get_connection().in_atomic_block else None


def _unique_order_id():
    for _ in range(ORDER_ID_ATTEMPTS):
        candidate = generate_order_id()
        if not Order.objects.filter(order_id=candidate).exists():
            return candidate
    raise ValidationError('Could not allocate an order id, please retry')


def _resolve_items(lines):
    item_ids = {line.item_id for line in lines}
    items = {item.pk: item for item in Item.objects.active().filter(pk__in=item_ids)}
    for line in lines:
        if line.item_id not in items:
            raise ValidationError(f"Item with id {line.item_id} not found")
    return items


def place_order(command, user=None):
    """
    Persist an order and deduct its stock atomically.

    Raises StockUpdateFailed (with the per-line ledger result) when any
    line cannot be deducted; nothing is written in that case.
    """
    items = _resolve_items(command.lines)

    def _place():
        with transaction.atomic():
            order = Order(
                order_id=_unique_order_id(),
                order_from=command.order_from,
                customer_name=command.customer_name,
                customer_id=command.customer_id,
                address=command.address,
                customer_notes=command.customer_notes,
                status=command.status,
                payment_status=command.payment_status,
                paid_amount=command.paid_amount,
                confirmation_status=command.confirmation_status,
                priority=command.priority,
                order_date=command.order_date or timezone.now(),
                expected_delivery_date=command.expected_delivery_date,
                actual_delivery_date=command.actual_delivery_date,
                delivery_status=command.delivery_status,
                tracking_id=command.tracking_id,
                delivery_partner=command.delivery_partner,
                created_by=user if user is not None and user.is_authenticated else None,
            )
            order_lines = [
                OrderItem(
                    item=items[line.item_id],
                    name=items[line.item_id].name,
                    price=items[line.item_id].price,
                    cost_price=items[line.item_id].cost_price,
                    quantity=line.quantity,
                    customization_request=line.customization_request,
                )
                for line in command.lines
            ]
            order.total_price = sum((line.price * line.quantity for line in order_lines), order.total_price)
            order.save()
            for line in order_lines:
                line.order = order
            OrderItem.objects.bulk_create(order_lines)

            stock = deduct_for_order(order.pk, command.lines, user=user, bump_cache=False)
            if not stock.ok:
                first_failure = stock.failures()[0]
                raise StockUpdateFailed(first_failure.error, stock)
        return order, stock

    order, stock = execute_with_retry(_place, operation_name='Order.place_order', max_retries=_retries())

    logger.info(
        f"Order created: {order.order_id} (pk={order.pk}, lines={len(command.lines)}, "
        f"total={order.total_price}, stock={stock.summary()})"
    )
    refresh_customer_stats(order.customer_id)
    bump_cache_versions(ORDERS, STOCK, ITEMS, CUSTOMERS)
    return order, stock


def _apply_changes(order, changes, user):
    """Apply field changes to a locked order; cancellation restores deducted stock"""
    previous_status = order.status
    new_status = changes.get('status', previous_status)

    if previous_status == Order.STATUS_CANCELLED and new_status != Order.STATUS_CANCELLED:
        raise ValidationError('Cancelled orders cannot be reopened')

    for field, value in changes.items():
        setattr(order, field, value)

    restore = None
    if new_status == Order.STATUS_CANCELLED and previous_status != Order.STATUS_CANCELLED:
        restore = restore_for_order(order.pk, deducted_lines_for_order(order.pk), user=user, bump_cache=False)
        if not restore.ok:
            raise StockUpdateFailed(restore.failures()[0].error, restore)

    order.save()
    return restore


def update_order(order_pk, changes, user=None):
    """Update an order's status/delivery fields. Returns (order, restore result or None)"""
    def _update():
        with transaction.atomic():
            try:
                order = Order.objects.select_for_update().get(pk=order_pk)
            except Order.DoesNotExist:
                raise NotFound('Order not found')
            restore = _apply_changes(order, changes, user)
        return order, restore

    order, restore = execute_with_retry(_update, operation_name='Order.update_order', max_retries=_retries())

    resources = [ORDERS]
    if restore is not None and restore.applied:
        resources += [STOCK, ITEMS]
    if 'status' in changes:
        refresh_customer_stats(order.customer_id)
        resources.append(CUSTOMERS)
    bump_cache_versions(*resources)

    if restore is not None:
        logger.info(f"Order cancelled: {order.order_id}, stock restored {restore.summary()}")
    else:
        logger.info(f"Order updated: {order.order_id} ({', '.join(sorted(changes))})")
    return order, restore


def bulk_update_orders(order_ids, changes, user=None):
    """
    Apply the same status/payment change to many orders in one transaction.

    Cancelled orders are skipped when the change would reopen them.
    Returns (updated orders, skipped order pks).
    """
    def _bulk():
        updated, skipped = [], []
        with transaction.atomic():
            orders = Order.objects.select_for_update().filter(pk__in=order_ids).order_by('pk')
            for order in orders:
                reopening = (
                    order.status == Order.STATUS_CANCELLED
                    and changes.get('status', Order.STATUS_CANCELLED) != Order.STATUS_CANCELLED
                )
                if reopening:
                    skipped.append(order.pk)
                    continue
                _apply_changes(order, changes, user)
                updated.append(order)
        return updated, skipped

    updated, skipped = execute_with_retry(_bulk, operation_name='Order.bulk_update', max_retries=_retries())

    if 'status' in changes:
        for customer_id in {order.customer_id for order in updated}:
            refresh_customer_stats(customer_id)
    bump_cache_versions(ORDERS, STOCK, ITEMS, CUSTOMERS)
    logger.info(f"Bulk order update: {len(updated)} updated, {len(skipped)} skipped ({changes})")
    return updated, skipped


def priority_orders(now=None):
    """
    Open orders needing attention, most urgent first.

    An order qualifies when it is high priority, due within three days or
    already overdue.
    """
    now = now or timezone.now()
    due_soon = now + timedelta(days=DUE_SOON_DAYS)
    due_tomorrow = now + timedelta(days=1)

    return (
        Order.objects
        .exclude(status__in=OPEN_STATUSES_EXCLUDED)
        .filter(
            Q(priority__gte=HIGH_PRIORITY) |
            Q(expected_delivery_date__isnull=False, expected_delivery_date__lte=due_soon)
        )
        .annotate(urgency=Case(
            When(expected_delivery_date__lt=now, then=Value(1)),
            When(expected_delivery_date__lte=due_tomorrow, then=Value(2)),
            When(expected_delivery_date__lte=due_soon, then=Value(3)),
            default=Value(4),
            output_field=IntegerField(),
        ))
        .prefetch_related('items')
        .order_by('urgency', F('expected_delivery_date').asc(nulls_last=True), '-priority', '-created_at')
    )
