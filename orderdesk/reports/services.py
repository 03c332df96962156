"""
Sales analytics

Sales figures are computed from non-cancelled orders; profit and trend
figures only count completed orders. All of them are computed with database
aggregates; nothing is loaded row by row into Python.
"""
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Max, Sum, Value
from django.db.models.functions import Coalesce, TruncDay, TruncMonth, TruncWeek
from django.utils import timezone

from orderdesk.catalog.models import Item
from orderdesk.orders.models import Order, OrderItem

TIME_RANGES = [
    {'key': 'week', 'label': 'Last Week', 'days': 7},
    {'key': 'month', 'label': 'Last Month', 'days': 30},
    {'key': 'quarter', 'label': 'Last Quarter', 'days': 90},
    {'key': 'halfYear', 'label': 'Last 6 Months', 'days': 180},
    {'key': 'year', 'label': 'Last Year', 'days': 365},
]
RANGE_DAYS = {r['key']: r['days'] for r in TIME_RANGES}
DEFAULT_RANGE = 'month'
TOP_N = 5

LINE_REVENUE = ExpressionWrapper(F('price') * F('quantity'), output_field=DecimalField(max_digits=14, decimal_places=2))
LINE_COST = ExpressionWrapper(
    Coalesce(F('cost_price'), Value(Decimal('0.00')), output_field=DecimalField(max_digits=10, decimal_places=2)) * F('quantity'),
    output_field=DecimalField(max_digits=14, decimal_places=2),
)

TREND_GROUPINGS = {
    'day': TruncDay,
    'week': TruncWeek,
    'month': TruncMonth,
}
DEFAULT_GROUPING = 'day'


def _money(value):
    return float(value or Decimal('0.00'))


def sales_orders(date_from=None, date_to=None):
    """Non-cancelled orders placed within the optional window"""
    orders = Order.objects.exclude(status=Order.STATUS_CANCELLED)
    if date_from is not None:
        orders = orders.filter(order_date__gte=date_from)
    if date_to is not None:
        orders = orders.filter(order_date__lte=date_to)
    return orders


def top_items(orders, limit=TOP_N, order_by='-total_quantity'):
    rows = (
        OrderItem.objects
        .filter(order__in=orders)
        .values('item_id', 'name')
        .annotate(
            total_quantity=Sum('quantity'),
            total_revenue=Sum(LINE_REVENUE),
            order_count=Count('order', distinct=True),
        )
        .order_by(order_by, 'item_id')[:limit]
    )
    return [
        {
            'itemId': row['item_id'],
            'name': row['name'],
            'quantity': row['total_quantity'],
            'revenue': _money(row['total_revenue']),
            'orderCount': row['order_count'],
        }
        for row in rows
    ]


def top_customers(orders, limit=TOP_N, order_by='-total_spent'):
    rows = (
        orders.order_by()
        .values('customer_id')
        .annotate(
            display_name=Max('customer_name'),
            order_count=Count('id'),
            total_spent=Sum('total_price'),
        )
        .order_by(order_by, 'customer_id')[:limit]
    )
    return [
        {
            'customerId': row['customer_id'],
            'customerName': row['display_name'],
            'orderCount': row['order_count'],
            'totalSpent': _money(row['total_spent']),
        }
        for row in rows
    ]


def source_breakdown(orders):
    rows = (
        orders.order_by()
        .values('order_from')
        .annotate(count=Count('id'), revenue=Sum('total_price'))
    )
    return {row['order_from']: {'count': row['count'], 'revenue': _money(row['revenue'])} for row in rows}


def sales_analytics(range_key=DEFAULT_RANGE, now=None):
    """Totals and breakdowns for the last N days of sales"""
    now = now or timezone.now()
    cutoff = now - timedelta(days=RANGE_DAYS[range_key])
    orders = sales_orders(date_from=cutoff, date_to=now)

    totals = orders.aggregate(total_sales=Sum('total_price'), order_count=Count('id'))
    order_count = totals['order_count'] or 0
    total_sales = _money(totals['total_sales'])
    customers_by_orders = top_customers(orders, order_by='-order_count')

    return {
        'range': range_key,
        'period': {'from': cutoff.isoformat(), 'to': now.isoformat()},
        'totalSales': total_sales,
        'orderCount': order_count,
        'averageOrderValue': round(total_sales / order_count, 2) if order_count else 0.0,
        'uniqueCustomers': orders.order_by().values('customer_id').distinct().count(),
        'sourceBreakdown': source_breakdown(orders),
        'topItems': top_items(orders),
        'topItemsByRevenue': top_items(orders, order_by='-total_revenue'),
        'topCustomersByOrders': customers_by_orders,
        'topCustomersByRevenue': top_customers(orders),
        'highestOrderingCustomer': customers_by_orders[0] if customers_by_orders else None,
        'generatedAt': now.isoformat(),
    }


def completed_orders(start, end):
    """Completed orders created within [start, end]"""
    return Order.objects.filter(status=Order.STATUS_COMPLETED, created_at__gte=start, created_at__lte=end)


def _margin_percentage(profit, revenue):
    if not revenue:
        return 0.0
    return float(round(profit * 100 / revenue, 2))


def profit_analytics(start, end):
    """
    Revenue, cost and gross profit of completed orders.

    Cost uses the cost_price snapshot taken when each line was placed; lines
    placed without a known cost count as zero cost. Each breakdown row also
    carries the item's current catalog margin so it can be compared with the
    margin actually realised.
    """
    rows = list(
        OrderItem.objects
        .filter(order__in=completed_orders(start, end))
        .values('item_id')
        .annotate(
            item_name=Max('name'),
            revenue=Sum(LINE_REVENUE),
            cost=Sum(LINE_COST),
            quantity_sold=Sum('quantity'),
        )
        .order_by('-revenue', 'item_id')
    )
    catalog = Item.objects.in_bulk([row['item_id'] for row in rows])

    total_revenue = Decimal('0.00')
    total_cost = Decimal('0.00')
    breakdown = []
    for row in rows:
        revenue = row['revenue'] or Decimal('0.00')
        cost = row['cost'] or Decimal('0.00')
        total_revenue += revenue
        total_cost += cost
        item = catalog.get(row['item_id'])
        current_margin = item.margin if item is not None else None
        breakdown.append({
            'itemId': row['item_id'],
            'itemName': row['item_name'],
            'revenue': _money(revenue),
            'cost': _money(cost),
            'profit': _money(revenue - cost),
            'marginPercentage': _margin_percentage(revenue - cost, revenue),
            'quantitySold': row['quantity_sold'],
            'currentUnitMargin': _money(current_margin) if current_margin is not None else None,
        })

    gross_profit = total_revenue - total_cost
    return {
        'totalRevenue': _money(total_revenue),
        'totalCost': _money(total_cost),
        'grossProfit': _money(gross_profit),
        'profitMargin': _margin_percentage(gross_profit, total_revenue),
        'itemBreakdown': breakdown,
    }


def _period_label(period, group_by):
    if group_by == 'week':
        iso_year, iso_week, _ = period.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if group_by == 'month':
        return period.strftime('%Y-%m')
    return period.date().isoformat()


def sales_trends(start, end, group_by=DEFAULT_GROUPING):
    """Revenue and order count of completed orders per day, ISO week or month"""
    rows = (
        completed_orders(start, end)
        .annotate(period=TREND_GROUPINGS[group_by]('created_at'))
        .order_by()
        .values('period')
        .annotate(revenue=Sum('total_price'), order_count=Count('id'))
        .order_by('period')
    )
    trends = []
    for row in rows:
        revenue = _money(row['revenue'])
        trends.append({
            'period': _period_label(row['period'], group_by),
            'revenue': revenue,
            'orderCount': row['order_count'],
            'averageOrderValue': round(revenue / row['order_count'], 2) if row['order_count'] else 0.0,
        })
    return trends
