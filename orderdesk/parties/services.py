import logging
import random
from decimal import Decimal

from django.db.models import Count, Max, Min, Sum

from orderdesk.core.retry import with_retry
from orderdesk.orders.models import Order
from .models import Customer

logger = logging.getLogger(__name__)

CUSTOMER_ID_ATTEMPTS = 10


def generate_customer_id():
    """Unused CUST-XXXX identifier"""
    for _ in range(CUSTOMER_ID_ATTEMPTS):
        candidate = f"CUST-{random.randint(1000, 9999)}"
        if not Customer.objects.filter(customer_id=candidate).exists():
            return candidate
    # The four digit space is crowded; widen it rather than loop forever
    return f"CUST-{random.randint(10000, 999999)}"


@with_retry('Customer.refresh_stats')
def refresh_customer_stats(customer_id):
    """
    Recompute a customer's order aggregates from the orders table.

    Cancelled orders are not counted. Returns the customer, or None when no
    customer carries this business id (orders may name ad-hoc customers).
    """
    customer = Customer.objects.filter(customer_id=customer_id).first()
    if customer is None:
        return None

    stats = (
        Order.objects
        .filter(customer_id=customer_id)
        .exclude(status=Order.STATUS_CANCELLED)
        .aggregate(
            total_orders=Count('id'),
            total_spent=Sum('total_price'),
            first_order_date=Min('created_at'),
            last_order_date=Max('created_at'),
        )
    )
    customer.total_orders = stats['total_orders'] or 0
    customer.total_spent = stats['total_spent'] or Decimal('0.00')
    customer.first_order_date = stats['first_order_date']
    customer.last_order_date = stats['last_order_date']
    customer.save(update_fields=['total_orders', 'total_spent', 'first_order_date', 'last_order_date', 'updated_at'])
    logger.debug(f"Customer stats refreshed for {customer_id}: {customer.total_orders} orders")
    return customer
