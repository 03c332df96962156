"""
Test utilities and factories for creating test data
"""
import random
import string
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import override_settings
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from orderdesk.catalog.models import Item
from orderdesk.orders.models import Order, OrderItem, generate_order_id
from orderdesk.parties.models import Customer

User = get_user_model()

# Local memory cache supports add/incr, which the version counters rely on
LOCMEM_CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'orderdesk-tests',
    }
}

use_locmem_cache = override_settings(CACHES=LOCMEM_CACHES)


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='user', is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_superuser=is_superuser,
        )

    @staticmethod
    def create_admin(**kwargs):
        """Create a user with the admin role"""
        return TestDataFactory.create_user(role='admin', **kwargs)

    @staticmethod
    def create_item(name=None, price=None, stock_quantity=0, track_stock=True, low_stock_threshold=5, **extra):
        """Create a test item; stock_quantity is set directly, bypassing the ledger"""
        if not name:
            name = f'Item_{TestDataFactory.random_string(6)}'
        if price is None:
            price = Decimal('100.00')
        return Item.objects.create(
            name=name,
            price=price,
            stock_quantity=stock_quantity,
            track_stock=track_stock,
            low_stock_threshold=low_stock_threshold,
            **extra
        )

    @staticmethod
    def create_customer(name=None, customer_id=None, phone=None, email=None, source='other'):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not customer_id:
            customer_id = f'CUST-{TestDataFactory.random_string(8).upper()}'
        if not phone:
            phone = f'9{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Customer.objects.create(
            customer_id=customer_id,
            name=name,
            phone=phone,
            email=email,
            source=source,
        )

    @staticmethod
    def create_order(items=None, customer_id=None, customer_name=None, status=Order.STATUS_PENDING,
                     order_from='instagram', created_at=None, **extra):
        """
        Create an order row directly, without touching stock.

        items is a list of (Item, quantity) pairs.
        """
        if not customer_id:
            customer_id = f'CUST-{TestDataFactory.random_string(8).upper()}'
        if not customer_name:
            customer_name = f'Customer_{TestDataFactory.random_string(6)}'
        order_id = generate_order_id()
        while Order.objects.filter(order_id=order_id).exists():
            order_id = generate_order_id()

        items = items or []
        order = Order.objects.create(
            order_id=order_id,
            order_from=order_from,
            customer_name=customer_name,
            customer_id=customer_id,
            status=status,
            total_price=sum((item.price * quantity for item, quantity in items), Decimal('0.00')),
            created_at=created_at or timezone.now(),
            **extra
        )
        for item, quantity in items:
            OrderItem.objects.create(order=order, item=item, name=item.name, price=item.price,
                                     cost_price=item.cost_price, quantity=quantity)
        return order

    @staticmethod
    def order_payload(items, customer_id=None, customer_name=None, order_from='whatsapp', **extra):
        """Request body for POST /orders/; items is a list of (Item, quantity) pairs"""
        payload = {
            'order_from': order_from,
            'customer_name': customer_name or f'Customer_{TestDataFactory.random_string(6)}',
            'customer_id': customer_id or f'CUST-{TestDataFactory.random_string(8).upper()}',
            'items': [{'item_id': item.pk, 'quantity': quantity} for item, quantity in items],
        }
        payload.update(extra)
        return payload


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
