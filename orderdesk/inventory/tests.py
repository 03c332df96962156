"""
Test suite for the inventory module
Tests: stock ledger invariants, order deductions and restores, bulk
adjustments, stock endpoints and the stock listing cache
"""
from django.core.cache import cache
from django.db.models import Sum
from django.test import TestCase
from rest_framework import status

from orderdesk.catalog.models import Item
from orderdesk.core import results
from orderdesk.core.cache_utils import STOCK, get_cache_version
from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory, use_locmem_cache
from orderdesk.inventory import services
from orderdesk.inventory.models import StockTransaction


def ledger_rows(item):
    return list(StockTransaction.objects.filter(item=item).order_by('created_at', 'id'))


@use_locmem_cache
class AdjustStockTests(TestCase):
    """Test adjust_stock and the ledger invariants"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.item = TestDataFactory.create_item(stock_quantity=0, track_stock=True)

    def test_restock_writes_ledger_row(self):
        result = services.adjust_stock(self.item.pk, 5, StockTransaction.RESTOCK, user=self.user, notes='Delivery')

        self.assertTrue(result.ok)
        tx = result.value
        self.assertEqual((tx.quantity, tx.previous_stock, tx.new_stock), (5, 0, 5))
        self.assertEqual(tx.user, self.user)
        self.assertEqual(tx.user_email, self.user.email)
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 5)

    def test_insufficient_stock_writes_nothing(self):
        services.adjust_stock(self.item.pk, 2, StockTransaction.RESTOCK)

        result = services.adjust_stock(self.item.pk, -5, StockTransaction.ADJUSTMENT)

        self.assertFalse(result.ok)
        self.assertEqual(result.kind, results.INSUFFICIENT_STOCK)
        self.assertEqual(result.message, 'Insufficient stock. Current: 2, Requested adjustment: -5')
        self.assertEqual(result.detail['current_stock'], 2)
        self.assertEqual(len(ledger_rows(self.item)), 1)
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 2)

    def test_missing_item(self):
        result = services.adjust_stock(999999, 1, StockTransaction.RESTOCK)
        self.assertEqual(result.kind, results.NOT_FOUND)

    def test_zero_and_non_integer_quantities(self):
        for quantity in (0, 1.5, '3', True):
            result = services.adjust_stock(self.item.pk, quantity, StockTransaction.ADJUSTMENT)
            self.assertEqual(result.kind, results.INVALID)
        self.assertFalse(StockTransaction.objects.exists())

    def test_balance_never_negative_and_ledger_consistent(self):
        """Any sequence of adjustments keeps stock >= 0 and rows chained"""
        sequence = [5, -3, -4, 10, -12, -8, 1, -1, -1, 7, -20, -2]
        for quantity in sequence:
            services.adjust_stock(self.item.pk, quantity, StockTransaction.ADJUSTMENT)
            self.item.refresh_from_db()
            self.assertGreaterEqual(self.item.stock_quantity, 0)

        rows = ledger_rows(self.item)
        self.item.refresh_from_db()
        self.assertEqual(sum(row.quantity for row in rows), self.item.stock_quantity)
        previous = 0
        for row in rows:
            self.assertEqual(row.previous_stock, previous)
            self.assertEqual(row.new_stock, row.previous_stock + row.quantity)
            self.assertGreaterEqual(row.new_stock, 0)
            previous = row.new_stock
        # -4, -8, the second -1 and -20 are rejected
        self.assertEqual(len(rows), 8)
        self.assertEqual(self.item.stock_quantity, 5)

    def test_successful_adjustment_bumps_stock_version(self):
        before = get_cache_version(STOCK)
        services.adjust_stock(self.item.pk, 1, StockTransaction.RESTOCK)
        self.assertGreater(get_cache_version(STOCK), before)

    def test_rejected_adjustment_keeps_version(self):
        before = get_cache_version(STOCK)
        services.adjust_stock(self.item.pk, -1, StockTransaction.ADJUSTMENT)
        self.assertEqual(get_cache_version(STOCK), before)

    def test_ledger_rows_are_immutable(self):
        tx = services.adjust_stock(self.item.pk, 1, StockTransaction.RESTOCK).value
        tx.notes = 'edited'
        with self.assertRaises(ValueError):
            tx.save()
        with self.assertRaises(ValueError):
            tx.delete()


@use_locmem_cache
class OrderLedgerTests(TestCase):
    """Test deductions and restores tied to orders"""

    def setUp(self):
        cache.clear()
        self.item = TestDataFactory.create_item(track_stock=True)
        services.adjust_stock(self.item.pk, 5, StockTransaction.RESTOCK)

    def test_deduct_for_order(self):
        batch = services.deduct_for_order(101, [{'item_id': self.item.pk, 'quantity': 3}])

        self.assertTrue(batch.ok)
        self.assertEqual(batch.summary(), {'total': 1, 'successful': 1, 'failed': 0, 'deducted': 1})
        tx = batch.lines[0].transaction
        self.assertEqual((tx.quantity, tx.previous_stock, tx.new_stock), (-3, 5, 2))
        self.assertEqual(tx.transaction_type, StockTransaction.ORDER_PLACED)
        self.assertEqual((tx.reference_type, tx.reference_id), ('order', '101'))

    def test_deduct_skips_untracked_items(self):
        untracked = TestDataFactory.create_item(track_stock=False, stock_quantity=0)
        batch = services.deduct_for_order(102, [services.StockLine(untracked.pk, 4)])

        self.assertTrue(batch.ok)
        self.assertFalse(batch.lines[0].applied)
        self.assertFalse(StockTransaction.objects.filter(item=untracked).exists())

    def test_deduct_lines_are_independent(self):
        other = TestDataFactory.create_item(track_stock=True)
        batch = services.deduct_for_order(103, [
            services.StockLine(self.item.pk, 2),
            services.StockLine(other.pk, 1),
            services.StockLine(999999, 1),
        ])

        self.assertFalse(batch.ok)
        self.assertEqual(batch.summary(), {'total': 3, 'successful': 1, 'failed': 2, 'deducted': 1})
        self.assertEqual([line.error for line in batch.failures()],
                         ['Insufficient stock. Current: 0, Requested adjustment: -1', 'Item not found'])
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 3)

    def test_restore_for_order(self):
        services.deduct_for_order(104, [services.StockLine(self.item.pk, 3)])

        batch = services.restore_for_order(104, services.deducted_lines_for_order(104))

        self.assertEqual(batch.summary(), {'total': 1, 'successful': 1, 'failed': 0, 'restored': 1})
        tx = batch.lines[0].transaction
        self.assertEqual((tx.quantity, tx.previous_stock, tx.new_stock), (3, 2, 5))
        self.assertEqual(tx.transaction_type, StockTransaction.ORDER_CANCELLED)

    def test_restore_skips_untracked_items(self):
        untracked = TestDataFactory.create_item(track_stock=False, stock_quantity=0)

        batch = services.restore_for_order(106, [services.StockLine(untracked.pk, 2)])

        self.assertTrue(batch.ok)
        self.assertEqual(batch.summary(), {'total': 1, 'successful': 1, 'failed': 0, 'restored': 0})
        self.assertFalse(StockTransaction.objects.filter(item=untracked).exists())
        untracked.refresh_from_db()
        self.assertEqual(untracked.stock_quantity, 0)

    def test_deducted_lines_net_out_restores(self):
        services.deduct_for_order(105, [services.StockLine(self.item.pk, 3)])
        self.assertEqual(services.deducted_lines_for_order(105), [services.StockLine(self.item.pk, 3)])

        services.restore_for_order(105, services.deducted_lines_for_order(105))
        self.assertEqual(services.deducted_lines_for_order(105), [])

    def test_bulk_adjust_never_aborts(self):
        other = TestDataFactory.create_item(track_stock=True)
        batch = services.bulk_adjust([
            {'item_id': other.pk, 'quantity': -1},
            {'item_id': self.item.pk, 'quantity': 4, 'notes': 'Found in back room'},
        ])

        self.assertEqual(batch.summary(), {'total': 2, 'successful': 1, 'failed': 1, 'applied': 1})
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, 9)

    def test_low_stock_items(self):
        TestDataFactory.create_item(track_stock=True, stock_quantity=50)
        low = TestDataFactory.create_item(track_stock=True, stock_quantity=1)
        deleted = TestDataFactory.create_item(track_stock=True, stock_quantity=0)
        deleted.soft_delete()

        self.assertEqual([item.pk for item in services.get_low_stock_items()], [low.pk, self.item.pk])

    def test_transaction_history(self):
        services.adjust_stock(self.item.pk, -1, StockTransaction.ADJUSTMENT)
        rows, pagination = services.get_transaction_history(self.item.pk, 1, 10).value
        self.assertEqual([row.quantity for row in rows], [-1, 5])
        self.assertEqual(pagination['total'], 2)

        self.assertEqual(services.get_transaction_history(999999, 1, 10).kind, results.NOT_FOUND)


@use_locmem_cache
class StockAPITests(TestCase):
    """Test stock endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.item = TestDataFactory.create_item(track_stock=True, low_stock_threshold=5)

    def test_manual_restock(self):
        response = self.client.post(f'/api/v1/items/{self.item.pk}/stock/', {'quantity': 12}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['transaction']['transaction_type'], StockTransaction.RESTOCK)
        self.assertEqual(response.data['transaction']['reference_type'], 'manual')
        self.assertEqual(response.data['item']['stock_quantity'], 12)

    def test_manual_removal_insufficient(self):
        response = self.client.post(f'/api/v1/items/{self.item.pk}/stock/', {'quantity': -3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Insufficient stock. Current: 0, Requested adjustment: -3')
        self.assertFalse(StockTransaction.objects.exists())

    def test_manual_zero_rejected(self):
        response = self.client.post(f'/api/v1/items/{self.item.pk}/stock/', {'quantity': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'quantity: Quantity must be a non-zero integer')

    def test_missing_item(self):
        response = self.client.post('/api/v1/items/999999/stock/', {'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Item not found')

    def test_item_stock(self):
        response = self.client.get(f'/api/v1/items/{self.item.pk}/stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_low_stock'])

    def test_stock_low(self):
        TestDataFactory.create_item(track_stock=True, stock_quantity=100)
        response = self.client.get('/api/v1/stock/low/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['items'][0]['id'], self.item.pk)

    def test_stock_list_cache(self):
        """Ledger writes invalidate the cached stock page"""
        self.assertEqual(self.client.get('/api/v1/stock/')['X-Cache'], 'MISS')
        self.assertEqual(self.client.get('/api/v1/stock/')['X-Cache'], 'HIT')

        self.client.post(f'/api/v1/items/{self.item.pk}/stock/', {'quantity': 7}, format='json')
        response = self.client.get('/api/v1/stock/')
        self.assertEqual(response['X-Cache'], 'MISS')
        self.assertEqual(response.data['items'][0]['stock_quantity'], 7)

    def test_stock_list_low_only(self):
        TestDataFactory.create_item(track_stock=True, stock_quantity=100)
        response = self.client.get('/api/v1/stock/', {'lowStockOnly': 'true'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_bulk_adjust_admin_only(self):
        payload = {'adjustments': [{'item_id': self.item.pk, 'quantity': 3}], 'transaction_type': 'restock'}
        self.assertEqual(self.client.post('/api/v1/stock/bulk-adjust/', payload, format='json').status_code,
                         status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/stock/bulk-adjust/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['applied'], 1)
        self.assertEqual(StockTransaction.objects.get().transaction_type, StockTransaction.RESTOCK)

    def test_history(self):
        for quantity in (5, -2, 4):
            services.adjust_stock(self.item.pk, quantity, StockTransaction.ADJUSTMENT)
        response = self.client.get(f'/api/v1/items/{self.item.pk}/stock/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['quantity'] for row in response.data['items']], [4, -2, 5])
        total = StockTransaction.objects.filter(item=self.item).aggregate(total=Sum('quantity'))['total']
        self.assertEqual(total, Item.objects.get(pk=self.item.pk).stock_quantity)
