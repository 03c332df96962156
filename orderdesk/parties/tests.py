"""
Test suite for the parties module
Tests: customer CRUD, generated ids, duplicates, search, order history, stats
"""
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory, use_locmem_cache
from orderdesk.orders.models import Order
from orderdesk.parties.models import Customer
from orderdesk.parties.services import generate_customer_id, refresh_customer_stats


class CustomerServiceTests(TestCase):
    """Test customer id generation and stats"""

    def test_generated_id_format(self):
        self.assertRegex(generate_customer_id(), r'^CUST-\d{4}$')

    def test_stats_exclude_cancelled_orders(self):
        customer = TestDataFactory.create_customer(customer_id='CUST-1001')
        item = TestDataFactory.create_item(price=Decimal('250.00'))
        TestDataFactory.create_order(items=[(item, 2)], customer_id='CUST-1001')
        TestDataFactory.create_order(items=[(item, 1)], customer_id='CUST-1001')
        TestDataFactory.create_order(items=[(item, 4)], customer_id='CUST-1001', status=Order.STATUS_CANCELLED)

        refresh_customer_stats('CUST-1001')

        customer.refresh_from_db()
        self.assertEqual(customer.total_orders, 2)
        self.assertEqual(customer.total_spent, Decimal('750.00'))
        self.assertIsNotNone(customer.first_order_date)

    def test_stats_for_unknown_customer(self):
        self.assertIsNone(refresh_customer_stats('CUST-NOPE'))


@use_locmem_cache
class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_generates_customer_id(self):
        response = self.client.post('/api/v1/customers/', {'name': 'Asha Verma', 'phone': '9876543210'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertRegex(response.data['customer_id'], r'^CUST-\d+$')

    def test_create_with_given_id(self):
        response = self.client.post('/api/v1/customers/', {'name': 'Ravi', 'customer_id': 'CUST-7777'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Customer.objects.filter(customer_id='CUST-7777').exists())

    def test_duplicate_customer_id_conflict(self):
        TestDataFactory.create_customer(customer_id='CUST-1234')
        response = self.client.post('/api/v1/customers/', {'name': 'Copy', 'customer_id': 'CUST-1234'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['message'], 'A customer with this ID already exists')
        self.assertEqual(Customer.objects.count(), 1)

    def test_name_required(self):
        response = self.client.post('/api/v1/customers/', {'phone': '123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data['errors'])

    def test_customer_id_fixed_after_create(self):
        customer = TestDataFactory.create_customer(customer_id='CUST-2000')
        response = self.client.patch(f'/api/v1/customers/{customer.pk}/', {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer_id'], 'CUST-2000')
        self.assertEqual(response.data['name'], 'Renamed')

    def test_delete(self):
        customer = TestDataFactory.create_customer()
        response = self.client.delete(f'/api/v1/customers/{customer.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(f'/api/v1/customers/{customer.pk}/').status_code,
                         status.HTTP_404_NOT_FOUND)

    def test_list_filters_and_cache(self):
        TestDataFactory.create_customer(name='Meera', source='online')
        TestDataFactory.create_customer(name='Kabir', source='walk-in')

        response = self.client.get('/api/v1/customers/', {'source': 'online'})
        self.assertEqual(response['X-Cache'], 'MISS')
        self.assertEqual([row['name'] for row in response.data['items']], ['Meera'])
        self.assertEqual(self.client.get('/api/v1/customers/', {'source': 'online'})['X-Cache'], 'HIT')

    def test_search(self):
        TestDataFactory.create_customer(name='Nisha Kapoor', phone='9000000001')
        TestDataFactory.create_customer(name='Arjun Mehta', phone='9000000002')

        response = self.client.get('/api/v1/customers/search/', {'q': 'kapoor'})
        self.assertEqual([row['name'] for row in response.data['items']], ['Nisha Kapoor'])
        self.assertEqual(self.client.get('/api/v1/customers/search/').data, {'items': []})

    def test_customer_orders(self):
        customer = TestDataFactory.create_customer(customer_id='CUST-3000')
        item = TestDataFactory.create_item()
        order = TestDataFactory.create_order(items=[(item, 1)], customer_id='CUST-3000')
        TestDataFactory.create_order(items=[(item, 1)], customer_id='CUST-OTHER')

        response = self.client.get(f'/api/v1/customers/{customer.pk}/orders/')
        self.assertEqual([row['id'] for row in response.data['items']], [order.pk])
