import django_filters
from django.db.models import Q

from .models import Item


class ItemFilter(django_filters.FilterSet):
    """Filter for the item listing"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    track_stock = django_filters.BooleanFilter(field_name='track_stock')
    color = django_filters.CharFilter(field_name='color', lookup_expr='iexact')
    fabric = django_filters.CharFilter(field_name='fabric', lookup_expr='iexact')

    class Meta:
        model = Item
        fields = ['search', 'track_stock', 'color', 'fabric']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the name, color or fabric"""
        value = (value or '').strip()
        if not value:
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(color__icontains=word) |
                Q(fabric__icontains=word)
            )
        return queryset
