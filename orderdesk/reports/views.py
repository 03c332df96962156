import logging
from datetime import datetime, time, timedelta

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from . import services

logger = logging.getLogger(__name__)

MAX_LIMIT = 100
DEFAULT_LIMIT = 10
DEFAULT_WINDOW_DAYS = 30


def _parse_limit(raw):
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return min(max(1, limit), MAX_LIMIT)


def _parse_date(raw, name):
    try:
        return datetime.strptime(raw, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name} format. Use YYYY-MM-DD.")


def _date_window(query_params):
    """date_from/date_to (inclusive days), defaulting to the last 30 days"""
    today = timezone.localdate()
    date_from = query_params.get('date_from')
    date_to = query_params.get('date_to')
    date_from = _parse_date(date_from, 'date_from') if date_from else today - timedelta(days=DEFAULT_WINDOW_DAYS)
    date_to = _parse_date(date_to, 'date_to') if date_to else today
    if date_from > date_to:
        raise ValidationError('date_from must be on or before date_to')
    start = timezone.make_aware(datetime.combine(date_from, time.min))
    end = timezone.make_aware(datetime.combine(date_to, time.max))
    return date_from, date_to, start, end


def _required_window(query_params):
    """startDate/endDate (inclusive days), both mandatory"""
    raw_start = query_params.get('startDate')
    raw_end = query_params.get('endDate')
    if not raw_start or not raw_end:
        raise ValidationError('startDate and endDate are required query parameters')
    start_date = _parse_date(raw_start, 'startDate')
    end_date = _parse_date(raw_end, 'endDate')
    if start_date > end_date:
        raise ValidationError('startDate must be on or before endDate')
    start = timezone.make_aware(datetime.combine(start_date, time.min))
    end = timezone.make_aware(datetime.combine(end_date, time.max))
    return start_date, end_date, start, end


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_report(request):
    """Sales summary for a rolling range (week, month, quarter, halfYear or year)"""
    range_key = request.query_params.get('range', services.DEFAULT_RANGE)
    if range_key not in services.RANGE_DAYS:
        raise ValidationError(f"Invalid range. Must be one of: {', '.join(services.RANGE_DAYS)}")

    logger.info(f"User {request.user.pk} requested sales analytics (range={range_key})")
    data = services.sales_analytics(range_key)
    data['timeRanges'] = services.TIME_RANGES
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def top_items_report(request):
    """Best selling items by quantity within a date window"""
    date_from, date_to, start, end = _date_window(request.query_params)
    limit = _parse_limit(request.query_params.get('limit'))
    orders = services.sales_orders(date_from=start, date_to=end)
    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'items': services.top_items(orders, limit=limit),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def top_customers_report(request):
    """Customers with the highest spend within a date window"""
    date_from, date_to, start, end = _date_window(request.query_params)
    limit = _parse_limit(request.query_params.get('limit'))
    orders = services.sales_orders(date_from=start, date_to=end)
    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'items': services.top_customers(orders, limit=limit),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def profit_report(request):
    """Gross profit and per-item margins of completed orders"""
    start_date, end_date, start, end = _required_window(request.query_params)
    logger.info(f"User {request.user.pk} requested profit analytics ({start_date} to {end_date})")

    data = services.profit_analytics(start, end)
    data['period'] = {'startDate': start_date.isoformat(), 'endDate': end_date.isoformat()}
    logger.info(f"Profit analytics covered {len(data['itemBreakdown'])} items, revenue {data['totalRevenue']}")
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def trends_report(request):
    """Completed-order revenue grouped by day, week or month"""
    group_by = request.query_params.get('groupBy', services.DEFAULT_GROUPING)
    if group_by not in services.TREND_GROUPINGS:
        raise ValidationError("groupBy must be 'day', 'week', or 'month'")
    start_date, end_date, start, end = _required_window(request.query_params)

    trends = services.sales_trends(start, end, group_by)
    logger.info(f"Sales trends ({group_by}) returned {len(trends)} data points")
    return Response({
        'groupBy': group_by,
        'period': {'startDate': start_date.isoformat(), 'endDate': end_date.isoformat()},
        'items': trends,
    })
