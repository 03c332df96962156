"""
Test suite for the orders module
Tests: order placement with stock deduction, cancellation restores,
validation messages, cursor pagination, listing cache, priority queue,
bulk updates, audit trail and order notes
"""
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from orderdesk.core import cache_utils
from orderdesk.core.models import AuditLog
from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory, use_locmem_cache
from orderdesk.inventory import services as stock_services
from orderdesk.inventory.models import StockTransaction
from orderdesk.orders import serializers as order_serializers
from orderdesk.orders.models import Order, OrderNote
from orderdesk.orders.services import priority_orders


def stocked_item(quantity, **kwargs):
    """A tracked item whose balance was built through the ledger"""
    item = TestDataFactory.create_item(track_stock=True, **kwargs)
    if quantity:
        stock_services.adjust_stock(item.pk, quantity, StockTransaction.RESTOCK)
    item.refresh_from_db()
    return item


@use_locmem_cache
class OrderBaseTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def place(self, items, **extra):
        return self.client.post('/api/v1/orders/', TestDataFactory.order_payload(items, **extra), format='json')


class OrderPlacementTests(OrderBaseTestCase):
    """Test order creation and its stock movements"""

    def test_order_deducts_stock(self):
        """Stock 5, order 3: one ledger row -3 (5 -> 2) and balance 2"""
        item = stocked_item(5, price=Decimal('200.00'))

        response = self.place([(item, 3)])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertRegex(response.data['order_id'], r'^ORD\d{6}$')
        self.assertEqual(response.data['total_price'], '600.00')
        self.assertEqual(response.data['items'][0]['price'], '200.00')

        tx = StockTransaction.objects.get(transaction_type=StockTransaction.ORDER_PLACED)
        self.assertEqual((tx.quantity, tx.previous_stock, tx.new_stock), (-3, 5, 2))
        self.assertEqual(tx.reference_id, str(response.data['id']))
        item.refresh_from_db()
        self.assertEqual(item.stock_quantity, 2)

    def test_line_snapshots_cost_price(self):
        item = stocked_item(5, price=Decimal('200.00'), cost_price=Decimal('120.00'))

        order_pk = self.place([(item, 1)]).data['id']
        item.cost_price = Decimal('150.00')
        item.save()

        line = Order.objects.get(pk=order_pk).items.get()
        self.assertEqual(line.cost_price, Decimal('120.00'))

    def test_insufficient_stock_rejects_order(self):
        """Stock 2, order 5: nothing is written and the balance stays 2"""
        item = stocked_item(2)

        response = self.place([(item, 5)])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Insufficient stock. Current: 2, Requested adjustment: -5')
        self.assertEqual(response.data['stock']['summary']['failed'], 1)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(StockTransaction.objects.filter(transaction_type=StockTransaction.ORDER_PLACED).exists())
        item.refresh_from_db()
        self.assertEqual(item.stock_quantity, 2)

    def test_failed_line_rolls_back_whole_order(self):
        plenty = stocked_item(10)
        scarce = stocked_item(1)

        response = self.place([(plenty, 4), (scarce, 2)])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        plenty.refresh_from_db()
        self.assertEqual(plenty.stock_quantity, 10)
        self.assertEqual(StockTransaction.objects.filter(item=plenty).count(), 1)
        self.assertFalse(Order.objects.exists())

    def test_untracked_items_need_no_stock(self):
        item = TestDataFactory.create_item(track_stock=False, stock_quantity=0)
        response = self.place([(item, 3)])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(StockTransaction.objects.exists())

    def test_unknown_and_deleted_items(self):
        item = stocked_item(5)
        item.soft_delete()

        response = self.place([(item, 1)])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], f'Item with id {item.pk} not found')

        payload = TestDataFactory.order_payload([])
        payload['items'] = [{'item_id': 999999, 'quantity': 1}]
        response = self.client.post('/api/v1/orders/', payload, format='json')
        self.assertEqual(response.data['message'], 'Item with id 999999 not found')

    def test_creation_refreshes_customer_stats(self):
        customer = TestDataFactory.create_customer(customer_id='CUST-5555')
        item = stocked_item(5, price=Decimal('99.50'))

        self.place([(item, 2)], customer_id='CUST-5555', customer_name=customer.name)

        customer.refresh_from_db()
        self.assertEqual(customer.total_orders, 1)
        self.assertEqual(customer.total_spent, Decimal('199.00'))

    def test_creation_is_audited(self):
        item = stocked_item(5)
        response = self.place([(item, 1)])

        log = AuditLog.objects.get(entity_type='order', entity_id=response.data['id'])
        self.assertEqual(log.action, 'create')
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.metadata['stock']['deducted'], 1)

        audit = self.client.get(f"/api/v1/orders/{response.data['id']}/audit/")
        self.assertEqual([row['action'] for row in audit.data['items']], ['create'])


class OrderValidationTests(OrderBaseTestCase):
    """Test request validation messages for order creation"""

    def setUp(self):
        super().setUp()
        self.item = stocked_item(5)

    def assertRejected(self, payload, message):
        response = self.client.post('/api/v1/orders/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], message)
        self.assertFalse(Order.objects.exists())

    def test_required_fields(self):
        for field in ('order_from', 'customer_name', 'customer_id'):
            payload = TestDataFactory.order_payload([(self.item, 1)])
            del payload[field]
            self.assertRejected(payload, order_serializers.REQUIRED_FIELDS_MESSAGE)

    def test_blank_customer_name(self):
        payload = TestDataFactory.order_payload([(self.item, 1)], customer_name='   ')
        self.assertRejected(payload, order_serializers.REQUIRED_FIELDS_MESSAGE)

    def test_items_required(self):
        self.assertRejected(TestDataFactory.order_payload([]), order_serializers.ITEMS_REQUIRED_MESSAGE)

    def test_line_fields_required(self):
        payload = TestDataFactory.order_payload([])
        payload['items'] = [{'item_id': self.item.pk}]
        self.assertRejected(payload, order_serializers.LINE_FIELDS_MESSAGE)

    def test_line_quantity_positive_integer(self):
        for quantity in (0, -2, 1.5, 'two'):
            payload = TestDataFactory.order_payload([(self.item, quantity)])
            self.assertRejected(payload, order_serializers.LINE_QUANTITY_MESSAGE)

    def test_client_prices_rejected(self):
        payload = TestDataFactory.order_payload([(self.item, 1)])
        payload['items'][0]['price'] = '1.00'
        self.assertRejected(payload, 'Unknown item field(s): price')

        payload = TestDataFactory.order_payload([(self.item, 1)], total_price='1.00')
        self.assertRejected(payload, 'total_price: Unknown field.')

    def test_past_delivery_date(self):
        yesterday = (timezone.now() - timedelta(days=1)).isoformat()
        payload = TestDataFactory.order_payload([(self.item, 1)], expected_delivery_date=yesterday)
        self.assertRejected(payload, f'expected_delivery_date: {order_serializers.PAST_DELIVERY_MESSAGE}')

    def test_cannot_create_cancelled_order(self):
        """An order born cancelled would deduct stock that could never be restored"""
        payload = TestDataFactory.order_payload([(self.item, 3)], status='cancelled')
        self.assertRejected(payload, f'status: {order_serializers.CANCELLED_ON_CREATE_MESSAGE}')

        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 5)
        self.assertFalse(StockTransaction.objects.filter(transaction_type=StockTransaction.ORDER_PLACED).exists())

    def test_invalid_source(self):
        payload = TestDataFactory.order_payload([(self.item, 1)], order_from='telegram')
        response = self.client.post('/api/v1/orders/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('order_from', response.data['errors'])


class OrderUpdateTests(OrderBaseTestCase):
    """Test order updates and cancellation"""

    def setUp(self):
        super().setUp()
        self.item = stocked_item(5)
        response = self.place([(self.item, 3)])
        self.order_pk = response.data['id']

    def test_cancel_restores_stock(self):
        """Cancelling restores the deducted quantity: +3 (2 -> 5)"""
        response = self.client.patch(f'/api/v1/orders/{self.order_pk}/', {'status': 'cancelled'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        tx = StockTransaction.objects.get(transaction_type=StockTransaction.ORDER_CANCELLED)
        self.assertEqual((tx.quantity, tx.previous_stock, tx.new_stock), (3, 2, 5))
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 5)
        self.assertTrue(AuditLog.objects.filter(entity_id=self.order_pk, action='status_change').exists())

    def test_cancel_twice_restores_once(self):
        self.client.patch(f'/api/v1/orders/{self.order_pk}/', {'status': 'cancelled'}, format='json')
        self.client.patch(f'/api/v1/orders/{self.order_pk}/', {'status': 'cancelled'}, format='json')

        self.assertEqual(StockTransaction.objects.filter(transaction_type=StockTransaction.ORDER_CANCELLED).count(), 1)
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 5)

    def test_cancelled_order_cannot_reopen(self):
        self.client.patch(f'/api/v1/orders/{self.order_pk}/', {'status': 'cancelled'}, format='json')
        response = self.client.patch(f'/api/v1/orders/{self.order_pk}/', {'status': 'pending'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Cancelled orders cannot be reopened')

    def test_update_delivery_fields(self):
        response = self.client.patch(f'/api/v1/orders/{self.order_pk}/', {
            'delivery_status': 'shipped',
            'tracking_id': 'TRK123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tracking_id'], 'TRK123')

        log = AuditLog.objects.get(entity_id=self.order_pk, action='update')
        self.assertEqual(sorted(log.changed_fields), ['delivery_status', 'tracking_id'])

    def test_lines_are_immutable(self):
        response = self.client.patch(f'/api/v1/orders/{self.order_pk}/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'items: Unknown field.')

    def test_empty_update_rejected(self):
        response = self.client.patch(f'/api/v1/orders/{self.order_pk}/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_order(self):
        response = self.client.get('/api/v1/orders/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Order not found')


class OrderListingTests(OrderBaseTestCase):
    """Test cursor pagination and the versioned listing cache"""

    def test_new_order_visible_after_creation(self):
        """List, create, list again: the new order is on the first page"""
        item = stocked_item(10)
        self.place([(item, 1)])

        first = self.client.get('/api/v1/orders/', {'limit': 10})
        self.assertEqual(first['X-Cache'], 'MISS')
        self.assertEqual(self.client.get('/api/v1/orders/', {'limit': 10})['X-Cache'], 'HIT')

        created = self.place([(item, 2)])

        second = self.client.get('/api/v1/orders/', {'limit': 10})
        self.assertEqual(second['X-Cache'], 'MISS')
        self.assertEqual(second.data['items'][0]['id'], created.data['id'])
        self.assertEqual(len(second.data['items']), 2)

    def test_empty_listing_not_cached(self):
        self.assertEqual(self.client.get('/api/v1/orders/')['X-Cache'], 'MISS')
        self.assertEqual(self.client.get('/api/v1/orders/')['X-Cache'], 'MISS')

    def test_cursor_walk_is_complete(self):
        """Every order appears exactly once, newest first, even with equal timestamps"""
        base = timezone.now() - timedelta(days=1)
        for i in range(23):
            # Groups of three share a timestamp so ties are broken by id
            TestDataFactory.create_order(created_at=base + timedelta(minutes=i // 3))

        seen, cursor = [], None
        while True:
            params = {'limit': 10}
            if cursor:
                params['cursor'] = cursor
            response = self.client.get('/api/v1/orders/', params)
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            seen.extend((row['created_at'], row['id']) for row in response.data['items'])
            if not response.data['pagination']['hasMore']:
                self.assertIsNone(response.data['pagination']['nextCursor'])
                break
            cursor = response.data['pagination']['nextCursor']
            if len(seen) == 10:
                # Rows inserted mid-walk sort before the cursor and are not repeated
                TestDataFactory.create_order()

        ids = [pk for _, pk in seen]
        self.assertEqual(len(ids), 23)
        self.assertEqual(len(set(ids)), 23)
        expected = list(Order.objects.filter(pk__in=ids).order_by('-created_at', '-id').values_list('id', flat=True))
        self.assertEqual(ids, expected)

    def test_invalid_cursor(self):
        response = self.client.get('/api/v1/orders/', {'cursor': 'garbage!!'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid cursor format')

    def test_limit_outside_allow_list_uses_default(self):
        for _ in range(12):
            TestDataFactory.create_order()
        response = self.client.get('/api/v1/orders/', {'limit': 7})
        self.assertEqual(response.data['pagination']['limit'], 10)
        self.assertEqual(len(response.data['items']), 10)
        self.assertTrue(response.data['pagination']['hasMore'])

    def test_filters_are_part_of_cache_key(self):
        TestDataFactory.create_order(status=Order.STATUS_PENDING)
        TestDataFactory.create_order(status=Order.STATUS_COMPLETED)

        pending = self.client.get('/api/v1/orders/', {'status': 'pending'})
        completed = self.client.get('/api/v1/orders/', {'status': 'completed'})
        self.assertEqual(completed['X-Cache'], 'MISS')
        self.assertEqual([row['status'] for row in pending.data['items']], ['pending'])
        self.assertEqual([row['status'] for row in completed.data['items']], ['completed'])

    def test_cache_outage_degrades_to_miss(self):
        item = stocked_item(5)
        TestDataFactory.create_order(items=[(item, 1)])

        with mock.patch.object(cache_utils, 'cache') as broken:
            for method in ('get', 'set', 'add', 'incr'):
                getattr(broken, method).side_effect = ConnectionError('redis unavailable')

            listing = self.client.get('/api/v1/orders/')
            self.assertEqual(listing.status_code, status.HTTP_200_OK)
            self.assertEqual(listing['X-Cache'], 'MISS')
            self.assertEqual(len(listing.data['items']), 1)

            created = self.place([(item, 1)])
            self.assertEqual(created.status_code, status.HTTP_201_CREATED)


class PriorityOrderTests(OrderBaseTestCase):
    """Test the priority queue"""

    def test_priority_selection_and_order(self):
        now = timezone.now()
        overdue = TestDataFactory.create_order(expected_delivery_date=now - timedelta(days=1))
        urgent = TestDataFactory.create_order(priority=5)
        due_soon = TestDataFactory.create_order(expected_delivery_date=now + timedelta(days=2))
        TestDataFactory.create_order(priority=4)
        TestDataFactory.create_order(priority=1)
        TestDataFactory.create_order(priority=5, status=Order.STATUS_COMPLETED)
        TestDataFactory.create_order(expected_delivery_date=now - timedelta(days=3), status=Order.STATUS_CANCELLED)

        ordered = [order.pk for order in priority_orders(now=now)]
        self.assertEqual(ordered, [overdue.pk, due_soon.pk, urgent.pk])

        response = self.client.get('/api/v1/orders/priority/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)


class BulkUpdateTests(OrderBaseTestCase):
    """Test bulk status updates"""

    def test_bulk_status_update_skips_cancelled(self):
        open_order = TestDataFactory.create_order()
        cancelled = TestDataFactory.create_order(status=Order.STATUS_CANCELLED)

        response = self.client.post('/api/v1/orders/bulk-update/', {
            'order_ids': [open_order.pk, cancelled.pk],
            'updates': {'status': 'processing', 'payment_status': 'paid'},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updatedCount'], 1)
        self.assertEqual(response.data['skipped'], [cancelled.pk])
        open_order.refresh_from_db()
        self.assertEqual((open_order.status, open_order.payment_status), ('processing', 'paid'))
        self.assertEqual(AuditLog.objects.filter(action='bulk_update').count(), 1)

    def test_bulk_cancel_restores_stock(self):
        item = stocked_item(10)
        first = self.place([(item, 2)]).data['id']
        second = self.place([(item, 3)]).data['id']

        response = self.client.post('/api/v1/orders/bulk-update/', {
            'order_ids': [first, second],
            'updates': {'status': 'cancelled'},
        }, format='json')

        self.assertEqual(response.data['updatedCount'], 2)
        item.refresh_from_db()
        self.assertEqual(item.stock_quantity, 10)

    def test_bulk_update_validation(self):
        response = self.client.post('/api/v1/orders/bulk-update/', {'order_ids': [], 'updates': {}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/orders/bulk-update/', {
            'order_ids': [1],
            'updates': {'priority': 5},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class OrderNoteTests(OrderBaseTestCase):
    """Test notes attached to an order"""

    def setUp(self):
        super().setUp()
        self.order = TestDataFactory.create_order(items=[(TestDataFactory.create_item(), 1)])
        self.url = f'/api/v1/orders/{self.order.pk}/notes/'

    def test_create_note_records_author(self):
        response = self.client.post(self.url, {'note_text': '  Call before delivery  ', 'note_type': 'internal'},
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['note_text'], 'Call before delivery')
        self.assertFalse(response.data['is_pinned'])
        self.assertEqual(response.data['user'], self.user.pk)
        self.assertEqual(response.data['user_email'], self.user.email)
        self.assertEqual(response.data['user_name'], self.user.username)

    def test_list_pinned_first_then_newest(self):
        older = OrderNote.objects.create(order=self.order, note_text='older', note_type='internal')
        pinned = OrderNote.objects.create(order=self.order, note_text='pinned', note_type='customer', is_pinned=True)
        newer = OrderNote.objects.create(order=self.order, note_text='newer', note_type='system')
        OrderNote.objects.create(order=TestDataFactory.create_order(), note_text='elsewhere', note_type='internal')

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([note['id'] for note in response.data['items']], [pinned.pk, newer.pk, older.pk])

    def test_create_validation(self):
        response = self.client.post(self.url, {'note_text': '   ', 'note_type': 'internal'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], f'note_text: {order_serializers.NOTE_TEXT_REQUIRED_MESSAGE}')

        response = self.client.post(self.url, {'note_text': 'Hello', 'note_type': 'memo'}, format='json')
        self.assertEqual(response.data['message'], f'note_type: {order_serializers.NOTE_TYPE_MESSAGE}')

        response = self.client.post('/api/v1/orders/999999/notes/', {'note_text': 'x', 'note_type': 'internal'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Order not found')

    def test_update_note(self):
        note = OrderNote.objects.create(order=self.order, note_text='Draft', note_type='internal')

        response = self.client.patch(f'{self.url}{note.pk}/', {'note_text': 'Final', 'is_pinned': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        note.refresh_from_db()
        self.assertEqual((note.note_text, note.is_pinned), ('Final', True))

    def test_update_validation(self):
        note = OrderNote.objects.create(order=self.order, note_text='Draft', note_type='internal')

        response = self.client.patch(f'{self.url}{note.pk}/', {'note_text': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], f'note_text: {order_serializers.NOTE_TEXT_EMPTY_MESSAGE}')

        response = self.client.patch(f'{self.url}{note.pk}/', {}, format='json')
        self.assertEqual(response.data['message'], 'No valid updates provided')

        response = self.client.patch(f'{self.url}{note.pk}/', {'note_type': 'system'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('note_type', response.data['errors'])

    def test_note_must_belong_to_order(self):
        other = OrderNote.objects.create(order=TestDataFactory.create_order(), note_text='x', note_type='internal')

        response = self.client.get(f'{self.url}{other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Note does not belong to this order')

        response = self.client.delete(f'{self.url}{other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(OrderNote.objects.filter(pk=other.pk).exists())

        response = self.client.get(f'{self.url}999999/')
        self.assertEqual(response.data['message'], 'Note not found')

    def test_delete_note(self):
        note = OrderNote.objects.create(order=self.order, note_text='Remove me', note_type='internal')

        response = self.client.delete(f'{self.url}{note.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'message': 'Note deleted successfully'})
        self.assertFalse(OrderNote.objects.filter(pk=note.pk).exists())
