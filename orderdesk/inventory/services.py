"""
Stock ledger operations.

Item.stock_quantity is a projection of the ledger. It only changes inside
adjust_stock(), which locks the item row, appends one StockTransaction and
writes the new balance in a single database transaction. Concurrent
adjustments of the same item therefore serialize on the row lock and a
balance can never go below zero.

Expected outcomes (unknown item, insufficient stock) come back as
ExpectedFailure results; nothing is written for them.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import F, Sum

from orderdesk.catalog.models import Item
from orderdesk.core import results
from orderdesk.core.cache_utils import ITEMS, STOCK, bump_cache_versions
from orderdesk.core.pagination import paginate_queryset
from orderdesk.core.retry import execute_with_retry, with_retry
from .models import StockTransaction

logger = logging.getLogger(__name__)

ORDER_REFERENCE = 'order'


@dataclass(frozen=True)
class StockLine:
    """One item/quantity pair to move through the ledger"""
    item_id: int
    quantity: int
    notes: Optional[str] = None


@dataclass
class LineResult:
    item_id: int
    quantity: int
    success: bool
    applied: bool = False
    error: Optional[str] = None
    transaction: Optional[StockTransaction] = None

    def as_dict(self, applied_key='applied'):
        data = {
            'item_id': self.item_id,
            'quantity': self.quantity,
            'success': self.success,
            applied_key: self.applied,
        }
        if self.error:
            data['error'] = self.error
        if self.transaction is not None:
            data['transaction_id'] = self.transaction.pk
            data['previous_stock'] = self.transaction.previous_stock
            data['new_stock'] = self.transaction.new_stock
        return data


@dataclass
class LedgerBatchResult:
    """Per-line outcomes of a batch; lines succeed or fail independently"""
    lines: List[LineResult] = field(default_factory=list)
    applied_key: str = 'applied'

    @property
    def successful(self):
        return sum(1 for line in self.lines if line.success)

    @property
    def failed(self):
        return sum(1 for line in self.lines if not line.success)

    @property
    def applied(self):
        return sum(1 for line in self.lines if line.applied)

    @property
    def ok(self):
        return self.failed == 0

    def failures(self):
        return [line for line in self.lines if not line.success]

    def summary(self):
        return {
            'total': len(self.lines),
            'successful': self.successful,
            'failed': self.failed,
            self.applied_key: self.applied,
        }

    def as_dict(self):
        return {
            'results': [line.as_dict(self.applied_key) for line in self.lines],
            'summary': self.summary(),
        }


def _line_fields(line):
    if isinstance(line, dict):
        return line.get('item_id'), line.get('quantity'), line.get('notes')
    return line.item_id, line.quantity, getattr(line, 'notes', None)


def _in_outer_transaction():
    return transaction.get_connection().in_atomic_block


def _adjust_once(item_id, quantity, transaction_type, notes, user, reference_type, reference_id):
    with transaction.atomic():
        try:
            item = Item.objects.select_for_update().get(pk=item_id)
        except Item.DoesNotExist:
            return results.ExpectedFailure(results.NOT_FOUND, 'Item not found', {'item_id': item_id})

        current_stock = item.stock_quantity
        new_stock = current_stock + quantity
        if new_stock < 0:
            return results.ExpectedFailure(
                results.INSUFFICIENT_STOCK,
                f"Insufficient stock. Current: {current_stock}, Requested adjustment: {quantity}",
                {'item_id': item_id, 'current_stock': current_stock, 'requested': quantity},
            )

        stock_transaction = StockTransaction.objects.create(
            item=item,
            transaction_type=transaction_type,
            quantity=quantity,
            previous_stock=current_stock,
            new_stock=new_stock,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            notes=notes,
            user=user if user is not None and user.is_authenticated else None,
            user_email=getattr(user, 'email', None) or None,
        )
        item.stock_quantity = new_stock
        item.save(update_fields=['stock_quantity', 'updated_at'])
        return results.Ok(stock_transaction)


def adjust_stock(item_id, quantity, transaction_type, *, notes=None, user=None,
                 reference_type=None, reference_id=None, bump_cache=True):
    """
    Apply a signed delta to an item's balance and record it in the ledger.

    Returns Ok(StockTransaction), or an ExpectedFailure of kind not_found,
    insufficient_stock or invalid. Transient database errors are retried;
    when called inside an outer transaction the outer caller owns retries.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return results.ExpectedFailure(results.INVALID, 'Quantity must be an integer')
    if quantity == 0:
        return results.ExpectedFailure(results.INVALID, 'Quantity must be non-zero')

    result = execute_with_retry(
        lambda: _adjust_once(item_id, quantity, transaction_type, notes, user, reference_type, reference_id),
        operation_name='Stock.adjust_stock',
        max_retries=0 if _in_outer_transaction() else None,
    )

    if result.ok:
        stock_transaction = result.value
        logger.info(
            f"Stock adjusted for item {item_id}: {quantity:+d} "
            f"({stock_transaction.previous_stock} -> {stock_transaction.new_stock}, {transaction_type})"
        )
        if bump_cache:
            bump_cache_versions(STOCK, ITEMS)
    else:
        logger.info(f"Stock adjustment rejected for item {item_id}: {result.message}")
    return result


def _apply_lines(order_id, line_items, sign, transaction_type, user, applied_key):
    batch = LedgerBatchResult(applied_key=applied_key)
    for line in line_items:
        item_id, quantity, _ = _line_fields(line)
        item = Item.objects.filter(pk=item_id).only('id', 'track_stock').first()
        if item is None:
            batch.lines.append(LineResult(item_id=item_id, quantity=quantity, success=False, error='Item not found'))
            continue
        if not item.track_stock:
            batch.lines.append(LineResult(item_id=item_id, quantity=quantity, success=True))
            continue

        result = adjust_stock(
            item_id,
            sign * quantity,
            transaction_type,
            notes=f"Order {order_id}",
            user=user,
            reference_type=ORDER_REFERENCE,
            reference_id=order_id,
            bump_cache=False,
        )
        if result.ok:
            batch.lines.append(LineResult(item_id=item_id, quantity=quantity, success=True,
                                          applied=True, transaction=result.value))
        else:
            batch.lines.append(LineResult(item_id=item_id, quantity=quantity, success=False,
                                          error=result.message))
    return batch


def deduct_for_order(order_id, line_items: Iterable, user=None, bump_cache=True):
    """
    Remove each line's quantity from stock for a placed order.

    Untracked items succeed without touching the ledger. Each line is
    independent: one failed line does not undo the others, the caller
    decides whether a partial result is acceptable.
    """
    batch = _apply_lines(order_id, line_items, -1, StockTransaction.ORDER_PLACED, user,
                         applied_key='deducted')
    logger.info(f"Stock deduction for order {order_id}: {batch.summary()}")
    if bump_cache and batch.applied:
        bump_cache_versions(STOCK, ITEMS)
    return batch


def restore_for_order(order_id, line_items: Iterable, user=None, bump_cache=True):
    """
    Return each line's quantity to stock for a cancelled order.

    Mirror of deduct_for_order: untracked items succeed without touching
    the ledger and are reported as not restored.
    """
    batch = _apply_lines(order_id, line_items, 1, StockTransaction.ORDER_CANCELLED, user,
                         applied_key='restored')
    logger.info(f"Stock restore for order {order_id}: {batch.summary()}")
    if bump_cache and batch.applied:
        bump_cache_versions(STOCK, ITEMS)
    return batch


def deducted_lines_for_order(order_id):
    """Net quantity per item still deducted for an order (placed minus restored)"""
    totals = (
        StockTransaction.objects
        .filter(reference_type=ORDER_REFERENCE, reference_id=str(order_id),
                transaction_type__in=[StockTransaction.ORDER_PLACED, StockTransaction.ORDER_CANCELLED])
        .values('item_id')
        .annotate(net=Sum('quantity'))
        .order_by('item_id')
    )
    return [StockLine(item_id=row['item_id'], quantity=-row['net']) for row in totals if row['net'] < 0]


def bulk_adjust(adjustments: Iterable, transaction_type=StockTransaction.ADJUSTMENT, user=None):
    """Apply independent manual adjustments; a failing entry never aborts the batch"""
    batch = LedgerBatchResult(applied_key='applied')
    for adjustment in adjustments:
        item_id, quantity, notes = _line_fields(adjustment)
        result = adjust_stock(
            item_id,
            quantity,
            transaction_type,
            notes=notes,
            user=user,
            reference_type='adjustment',
            bump_cache=False,
        )
        if result.ok:
            batch.lines.append(LineResult(item_id=item_id, quantity=quantity, success=True,
                                          applied=True, transaction=result.value))
        else:
            batch.lines.append(LineResult(item_id=item_id, quantity=quantity, success=False,
                                          error=result.message))

    logger.info(f"Bulk stock adjustment: {batch.summary()}")
    if batch.applied:
        bump_cache_versions(STOCK, ITEMS)
    return batch


@with_retry('Stock.get_item_stock')
def get_item_stock(item_id):
    item = Item.objects.filter(pk=item_id).first()
    if item is None:
        return results.ExpectedFailure(results.NOT_FOUND, 'Item not found', {'item_id': item_id})
    return results.Ok(item)


@with_retry('Stock.get_low_stock_items')
def get_low_stock_items():
    """Tracked, active items at or below their threshold, lowest stock first"""
    return list(
        Item.objects.active()
        .filter(track_stock=True, stock_quantity__lte=F('low_stock_threshold'))
        .order_by('stock_quantity', 'id')
    )


@with_retry('Stock.get_transaction_history')
def get_transaction_history(item_id, page, limit):
    if not Item.objects.filter(pk=item_id).exists():
        return results.ExpectedFailure(results.NOT_FOUND, 'Item not found', {'item_id': item_id})
    queryset = StockTransaction.objects.filter(item_id=item_id).order_by('-created_at', '-id')
    return results.Ok(paginate_queryset(queryset, page, limit))


@with_retry('Stock.get_items_with_stock')
def get_items_with_stock(low_stock_only=False, page=1, limit=10):
    queryset = Item.objects.active()
    if low_stock_only:
        queryset = queryset.filter(track_stock=True, stock_quantity__lte=F('low_stock_threshold'))
    return paginate_queryset(queryset.order_by('stock_quantity', 'id'), page, limit)
