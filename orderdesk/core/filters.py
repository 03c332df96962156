import django_filters

from .models import AuditLog


class AuditLogFilter(django_filters.FilterSet):
    """Filter for the audit log listing"""
    entity_type = django_filters.ChoiceFilter(choices=AuditLog.ENTITY_CHOICES)
    entity_id = django_filters.NumberFilter(field_name='entity_id', lookup_expr='exact')
    action = django_filters.ChoiceFilter(choices=AuditLog.ACTION_CHOICES)
    user = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    date_from = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    date_to = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = AuditLog
        fields = ['entity_type', 'entity_id', 'action', 'user', 'date_from', 'date_to']
