"""
Test suite for the catalog module
Tests: item CRUD, soft delete and restore, permanent delete, listing cache
"""
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from orderdesk.catalog.models import Item
from orderdesk.core.models import AuditLog
from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory, use_locmem_cache


class ItemModelTests(TestCase):
    """Test Item model helpers"""

    def test_low_stock_only_when_tracked(self):
        tracked = TestDataFactory.create_item(stock_quantity=3, track_stock=True, low_stock_threshold=5)
        untracked = TestDataFactory.create_item(stock_quantity=3, track_stock=False, low_stock_threshold=5)
        self.assertTrue(tracked.is_low_stock)
        self.assertFalse(untracked.is_low_stock)

    def test_margin(self):
        item = TestDataFactory.create_item(price=Decimal('120.00'), cost_price=Decimal('80.00'))
        self.assertEqual(item.margin, Decimal('40.00'))
        self.assertIsNone(TestDataFactory.create_item().margin)

    def test_soft_delete_and_restore(self):
        item = TestDataFactory.create_item()
        item.soft_delete()
        self.assertTrue(item.is_deleted)
        self.assertFalse(Item.objects.active().filter(pk=item.pk).exists())
        self.assertTrue(Item.objects.deleted().filter(pk=item.pk).exists())

        item.restore()
        self.assertTrue(Item.objects.active().filter(pk=item.pk).exists())


@use_locmem_cache
class ItemAPITests(TestCase):
    """Test item endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/items/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_item(self):
        response = self.client.post('/api/v1/items/', {
            'name': 'Silk Dupatta',
            'price': '1499.00',
            'color': 'Maroon',
            'track_stock': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['stock_quantity'], 0)
        self.assertTrue(AuditLog.objects.filter(entity_type='item', action='create').exists())

    def test_stock_quantity_not_writable(self):
        """Balances move only through the stock ledger"""
        response = self.client.post('/api/v1/items/', {
            'name': 'Cotton Kurti',
            'price': '799.00',
            'stock_quantity': 50,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'stock_quantity: Unknown field.')
        self.assertFalse(Item.objects.exists())

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/items/', {'name': 'Scarf', 'price': '-1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('price', response.data['errors'])

    def test_search_matches_all_words(self):
        TestDataFactory.create_item(name='Blue Silk Saree')
        TestDataFactory.create_item(name='Blue Cotton Kurti')
        response = self.client.get('/api/v1/items/', {'search': 'blue silk'})
        self.assertEqual([row['name'] for row in response.data['items']], ['Blue Silk Saree'])

    def test_update_item(self):
        item = TestDataFactory.create_item(name='Old name')
        response = self.client.patch(f'/api/v1/items/{item.pk}/', {'name': 'New name'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item.refresh_from_db()
        self.assertEqual(item.name, 'New name')

        log = AuditLog.objects.get(entity_type='item', entity_id=item.pk, action='update')
        self.assertIn('name', log.changed_fields)

    def test_soft_delete_hides_item(self):
        kept = TestDataFactory.create_item()
        removed = TestDataFactory.create_item()

        response = self.client.delete(f'/api/v1/items/{removed.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Item deleted')

        listing = self.client.get('/api/v1/items/')
        self.assertEqual([row['id'] for row in listing.data['items']], [kept.pk])
        self.assertEqual(self.client.get(f'/api/v1/items/{removed.pk}/').status_code, status.HTTP_404_NOT_FOUND)

        deleted = self.client.get('/api/v1/items/deleted/')
        self.assertEqual([row['id'] for row in deleted.data['items']], [removed.pk])

    def test_restore(self):
        item = TestDataFactory.create_item()
        self.assertEqual(self.client.post(f'/api/v1/items/{item.pk}/restore/').status_code, status.HTTP_400_BAD_REQUEST)

        item.soft_delete()
        response = self.client.post(f'/api/v1/items/{item.pk}/restore/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['deleted_at'])

    def test_permanent_delete_requires_soft_delete(self):
        item = TestDataFactory.create_item()
        response = self.client.delete(f'/api/v1/items/{item.pk}/permanent/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Item must be soft-deleted before permanent removal')

    def test_permanent_delete_unreferenced(self):
        item = TestDataFactory.create_item()
        item.soft_delete()
        response = self.client.delete(f'/api/v1/items/{item.pk}/permanent/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['removed'])
        self.assertFalse(Item.objects.filter(pk=item.pk).exists())

    def test_permanent_delete_keeps_ordered_item(self):
        """Items on past orders keep their row; only the image reference goes"""
        item = TestDataFactory.create_item(image_url='items/42.jpg')
        TestDataFactory.create_order(items=[(item, 1)])
        item.soft_delete()

        response = self.client.delete(f'/api/v1/items/{item.pk}/permanent/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['removed'])
        item.refresh_from_db()
        self.assertIsNone(item.image_url)

    def test_listing_cache_invalidated_by_mutation(self):
        TestDataFactory.create_item()
        self.assertEqual(self.client.get('/api/v1/items/')['X-Cache'], 'MISS')
        self.assertEqual(self.client.get('/api/v1/items/')['X-Cache'], 'HIT')

        self.client.post('/api/v1/items/', {'name': 'Fresh', 'price': '10.00'}, format='json')
        response = self.client.get('/api/v1/items/')
        self.assertEqual(response['X-Cache'], 'MISS')
        self.assertEqual(response.data['pagination']['total'], 2)
