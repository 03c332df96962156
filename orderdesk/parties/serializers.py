from rest_framework import serializers

from orderdesk.core.serializers import StrictFieldsMixin
from .models import Customer


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'customer_id', 'name', 'email', 'phone', 'address', 'source', 'notes',
                  'total_orders', 'total_spent', 'first_order_date', 'last_order_date',
                  'created_at', 'updated_at']
        read_only_fields = fields


class CustomerSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'customer_id', 'name', 'email', 'phone']


class CustomerWriteSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    """customer_id may be supplied on create; it is generated when absent and fixed afterwards"""
    name = serializers.CharField(max_length=255, trim_whitespace=True)
    customer_id = serializers.CharField(max_length=50, required=False, allow_blank=True, trim_whitespace=True)

    class Meta:
        model = Customer
        fields = ['customer_id', 'name', 'email', 'phone', 'address', 'source', 'notes']
        extra_kwargs = {
            'email': {'required': False, 'allow_null': True, 'allow_blank': True},
            'phone': {'required': False, 'allow_null': True, 'allow_blank': True},
            'address': {'required': False, 'allow_null': True, 'allow_blank': True},
            'notes': {'required': False, 'allow_null': True, 'allow_blank': True},
            'source': {'required': False},
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance is not None:
            self.fields['customer_id'].read_only = True
