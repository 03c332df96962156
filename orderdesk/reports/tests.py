"""
Test suite for the reports module
Tests: sales analytics ranges, top items, top customers, profit, trends,
date windows
"""
from datetime import datetime, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from orderdesk.orders.models import Order
from orderdesk.reports import services


class SalesAnalyticsTests(TestCase):
    """Test the aggregate figures behind the sales report"""

    def setUp(self):
        self.saree = TestDataFactory.create_item(name='Saree', price=Decimal('1000.00'))
        self.kurti = TestDataFactory.create_item(name='Kurti', price=Decimal('500.00'))

        TestDataFactory.create_order(items=[(self.saree, 1), (self.kurti, 2)], customer_id='CUST-1',
                                     customer_name='Anita', order_from='instagram')
        TestDataFactory.create_order(items=[(self.kurti, 1)], customer_id='CUST-1',
                                     customer_name='Anita', order_from='whatsapp')
        TestDataFactory.create_order(items=[(self.saree, 3)], customer_id='CUST-2',
                                     customer_name='Bela', order_from='instagram')
        TestDataFactory.create_order(items=[(self.saree, 10)], customer_id='CUST-3',
                                     status=Order.STATUS_CANCELLED)
        TestDataFactory.create_order(items=[(self.kurti, 4)], customer_id='CUST-4',
                                     order_date=timezone.now() - timedelta(days=60))

    def test_month_totals_exclude_cancelled_and_old_orders(self):
        data = services.sales_analytics('month')

        self.assertEqual(data['orderCount'], 3)
        self.assertEqual(data['totalSales'], 5500.0)
        self.assertEqual(data['averageOrderValue'], 1833.33)
        self.assertEqual(data['uniqueCustomers'], 2)
        self.assertEqual(data['sourceBreakdown']['instagram'], {'count': 2, 'revenue': 5000.0})

    def test_quarter_includes_older_orders(self):
        data = services.sales_analytics('quarter')
        self.assertEqual(data['orderCount'], 4)
        self.assertEqual(data['uniqueCustomers'], 3)

    def test_top_items(self):
        data = services.sales_analytics('month')

        by_quantity = [(row['name'], row['quantity']) for row in data['topItems']]
        self.assertEqual(by_quantity, [('Saree', 4), ('Kurti', 3)])

        by_revenue = data['topItemsByRevenue']
        self.assertEqual(by_revenue[0]['name'], 'Saree')
        self.assertEqual(by_revenue[0]['revenue'], 4000.0)
        self.assertEqual(by_revenue[0]['orderCount'], 2)

    def test_top_customers(self):
        data = services.sales_analytics('month')

        self.assertEqual(data['highestOrderingCustomer']['customerId'], 'CUST-1')
        self.assertEqual(data['highestOrderingCustomer']['orderCount'], 2)
        by_revenue = [(row['customerName'], row['totalSpent']) for row in data['topCustomersByRevenue']]
        self.assertEqual(by_revenue, [('Bela', 3000.0), ('Anita', 2500.0)])

    def test_empty_range(self):
        Order.objects.all().delete()
        data = services.sales_analytics('week')
        self.assertEqual(data['orderCount'], 0)
        self.assertEqual(data['averageOrderValue'], 0.0)
        self.assertIsNone(data['highestOrderingCustomer'])


class ProfitAnalyticsTests(TestCase):
    """Test profit figures from completed orders and their cost snapshots"""

    def setUp(self):
        self.saree = TestDataFactory.create_item(name='Saree', price=Decimal('1000.00'), cost_price=Decimal('600.00'))
        self.kurti = TestDataFactory.create_item(name='Kurti', price=Decimal('500.00'))
        TestDataFactory.create_order(items=[(self.saree, 2), (self.kurti, 1)], status=Order.STATUS_COMPLETED)
        TestDataFactory.create_order(items=[(self.saree, 5)], status=Order.STATUS_PENDING)
        TestDataFactory.create_order(items=[(self.saree, 3)], status=Order.STATUS_COMPLETED,
                                     created_at=timezone.now() - timedelta(days=60))
        self.start = timezone.now() - timedelta(days=7)
        self.end = timezone.now() + timedelta(minutes=1)

    def test_totals_count_completed_orders_in_window(self):
        data = services.profit_analytics(self.start, self.end)

        self.assertEqual(data['totalRevenue'], 2500.0)
        self.assertEqual(data['totalCost'], 1200.0)
        self.assertEqual(data['grossProfit'], 1300.0)
        self.assertEqual(data['profitMargin'], 52.0)

    def test_item_breakdown_sorted_by_revenue(self):
        breakdown = services.profit_analytics(self.start, self.end)['itemBreakdown']

        self.assertEqual(breakdown[0], {
            'itemId': self.saree.pk,
            'itemName': 'Saree',
            'revenue': 2000.0,
            'cost': 1200.0,
            'profit': 800.0,
            'marginPercentage': 40.0,
            'quantitySold': 2,
            'currentUnitMargin': 400.0,
        })
        # Unknown cost counts as zero
        self.assertEqual(breakdown[1]['itemName'], 'Kurti')
        self.assertEqual(breakdown[1]['marginPercentage'], 100.0)
        self.assertIsNone(breakdown[1]['currentUnitMargin'])

    def test_cost_uses_snapshot_taken_at_placement(self):
        self.saree.cost_price = Decimal('900.00')
        self.saree.save()

        breakdown = services.profit_analytics(self.start, self.end)['itemBreakdown']
        self.assertEqual(breakdown[0]['cost'], 1200.0)
        self.assertEqual(breakdown[0]['currentUnitMargin'], 100.0)

    def test_empty_window(self):
        data = services.profit_analytics(self.end, self.end + timedelta(days=1))
        self.assertEqual(data['totalRevenue'], 0.0)
        self.assertEqual(data['profitMargin'], 0.0)
        self.assertEqual(data['itemBreakdown'], [])


class SalesTrendsTests(TestCase):
    """Test completed-order revenue grouped by period"""

    def setUp(self):
        item = TestDataFactory.create_item(name='Dupatta', price=Decimal('300.00'))

        def at(*args):
            return timezone.make_aware(datetime(*args))

        # 2024-03-04 is the Monday that starts ISO week 10
        TestDataFactory.create_order(items=[(item, 1)], status=Order.STATUS_COMPLETED, created_at=at(2024, 3, 4, 10))
        TestDataFactory.create_order(items=[(item, 2)], status=Order.STATUS_COMPLETED, created_at=at(2024, 3, 4, 15))
        TestDataFactory.create_order(items=[(item, 1)], status=Order.STATUS_COMPLETED, created_at=at(2024, 3, 6, 12))
        TestDataFactory.create_order(items=[(item, 4)], status=Order.STATUS_COMPLETED, created_at=at(2024, 4, 1, 12))
        TestDataFactory.create_order(items=[(item, 9)], status=Order.STATUS_CANCELLED, created_at=at(2024, 3, 5, 12))
        self.start = at(2024, 3, 1)
        self.end = at(2024, 4, 30, 23, 59)

    def test_group_by_day(self):
        trends = services.sales_trends(self.start, self.end, 'day')
        self.assertEqual(trends, [
            {'period': '2024-03-04', 'revenue': 900.0, 'orderCount': 2, 'averageOrderValue': 450.0},
            {'period': '2024-03-06', 'revenue': 300.0, 'orderCount': 1, 'averageOrderValue': 300.0},
            {'period': '2024-04-01', 'revenue': 1200.0, 'orderCount': 1, 'averageOrderValue': 1200.0},
        ])

    def test_group_by_week(self):
        trends = services.sales_trends(self.start, self.end, 'week')
        self.assertEqual([(t['period'], t['orderCount']) for t in trends], [('2024-W10', 3), ('2024-W14', 1)])

    def test_group_by_month(self):
        trends = services.sales_trends(self.start, self.end, 'month')
        self.assertEqual([(t['period'], t['revenue']) for t in trends], [('2024-03', 1200.0), ('2024-04', 1200.0)])


class ReportAPITests(TestCase):
    """Test report endpoints and their parameter validation"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.item = TestDataFactory.create_item(name='Dupatta', price=Decimal('300.00'), cost_price=Decimal('200.00'))
        TestDataFactory.create_order(items=[(self.item, 2)], customer_id='CUST-9', customer_name='Chitra')

    def test_sales_report(self):
        response = self.client.get('/api/v1/analytics/sales/', {'range': 'week'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['range'], 'week')
        self.assertEqual(response.data['totalSales'], 600.0)
        self.assertEqual([r['key'] for r in response.data['timeRanges']],
                         ['week', 'month', 'quarter', 'halfYear', 'year'])

    def test_sales_report_default_range(self):
        response = self.client.get('/api/v1/analytics/sales/')
        self.assertEqual(response.data['range'], 'month')

    def test_invalid_range(self):
        response = self.client.get('/api/v1/analytics/sales/', {'range': 'decade'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'],
                         'Invalid range. Must be one of: week, month, quarter, halfYear, year')

    def test_top_items_report(self):
        response = self.client.get('/api/v1/analytics/top-items/', {'limit': 500})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['name'], 'Dupatta')
        self.assertEqual(response.data['items'][0]['quantity'], 2)
        self.assertEqual(response.data['period']['to'], timezone.localdate().isoformat())

    def test_top_customers_report(self):
        today = timezone.localdate().isoformat()
        response = self.client.get('/api/v1/analytics/top-customers/', {'date_from': today, 'date_to': today})
        self.assertEqual(response.data['items'], [
            {'customerId': 'CUST-9', 'customerName': 'Chitra', 'orderCount': 1, 'totalSpent': 600.0},
        ])

    def test_invalid_dates(self):
        response = self.client.get('/api/v1/analytics/top-items/', {'date_from': '01-02-2024'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid date_from format. Use YYYY-MM-DD.')

        response = self.client.get('/api/v1/analytics/top-customers/', {
            'date_from': '2024-03-10',
            'date_to': '2024-03-01',
        })
        self.assertEqual(response.data['message'], 'date_from must be on or before date_to')

    def test_profit_report(self):
        TestDataFactory.create_order(items=[(self.item, 1)], status=Order.STATUS_COMPLETED)
        today = timezone.localdate().isoformat()

        response = self.client.get('/api/v1/analytics/profit/', {'startDate': today, 'endDate': today})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totalRevenue'], 300.0)
        self.assertEqual(response.data['grossProfit'], 100.0)
        self.assertEqual(response.data['profitMargin'], 33.33)
        self.assertEqual(response.data['period'], {'startDate': today, 'endDate': today})

    def test_trends_report(self):
        TestDataFactory.create_order(items=[(self.item, 1)], status=Order.STATUS_COMPLETED)
        today = timezone.localdate()

        response = self.client.get('/api/v1/analytics/trends/', {
            'startDate': today.isoformat(),
            'endDate': today.isoformat(),
            'groupBy': 'month',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['groupBy'], 'month')
        self.assertEqual(response.data['items'], [
            {'period': today.strftime('%Y-%m'), 'revenue': 300.0, 'orderCount': 1, 'averageOrderValue': 300.0},
        ])

    def test_profit_and_trends_require_dates(self):
        for url in ('/api/v1/analytics/profit/', '/api/v1/analytics/trends/'):
            response = self.client.get(url, {'startDate': '2024-03-01'})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['message'], 'startDate and endDate are required query parameters')

        response = self.client.get('/api/v1/analytics/profit/', {'startDate': '2024-03-01', 'endDate': 'March'})
        self.assertEqual(response.data['message'], 'Invalid endDate format. Use YYYY-MM-DD.')

        response = self.client.get('/api/v1/analytics/trends/', {'startDate': '2024-03-10', 'endDate': '2024-03-01'})
        self.assertEqual(response.data['message'], 'startDate must be on or before endDate')

    def test_trends_rejects_unknown_grouping(self):
        response = self.client.get('/api/v1/analytics/trends/', {
            'startDate': '2024-03-01',
            'endDate': '2024-03-31',
            'groupBy': 'year',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], "groupBy must be 'day', 'week', or 'month'")

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/analytics/sales/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
