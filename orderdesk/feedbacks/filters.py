import django_filters

from .models import Feedback


class FeedbackFilter(django_filters.FilterSet):
    """Filter for the feedback listing"""
    rating = django_filters.NumberFilter(field_name='rating')
    min_rating = django_filters.NumberFilter(field_name='rating', lookup_expr='gte')
    is_public = django_filters.BooleanFilter(field_name='is_public')

    class Meta:
        model = Feedback
        fields = ['rating', 'min_rating', 'is_public']
