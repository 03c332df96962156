import django_filters
from django.db.models import Q

from .models import Customer


class CustomerFilter(django_filters.FilterSet):
    """Filter for the customer listing"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    source = django_filters.ChoiceFilter(choices=Customer.SOURCE_CHOICES)

    class Meta:
        model = Customer
        fields = ['search', 'source']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(phone__icontains=value) |
            Q(email__icontains=value) |
            Q(customer_id__icontains=value)
        )
