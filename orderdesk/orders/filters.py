import django_filters
from django.db.models import Q

from .models import Order


class OrderFilter(django_filters.FilterSet):
    """Filter for the order listing"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(choices=Order.STATUS_CHOICES)
    payment_status = django_filters.ChoiceFilter(choices=Order.PAYMENT_STATUS_CHOICES)
    delivery_status = django_filters.ChoiceFilter(choices=Order.DELIVERY_STATUS_CHOICES)
    order_from = django_filters.ChoiceFilter(choices=Order.SOURCE_CHOICES)
    customer_id = django_filters.CharFilter(field_name='customer_id', lookup_expr='exact')

    class Meta:
        model = Order
        fields = ['search', 'status', 'payment_status', 'delivery_status', 'order_from', 'customer_id']

    def filter_search(self, queryset, name, value):
        """Match order id, customer name or customer id"""
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(order_id__icontains=value) |
            Q(customer_name__icontains=value) |
            Q(customer_id__icontains=value)
        )
