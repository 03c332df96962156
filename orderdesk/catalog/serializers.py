from decimal import Decimal

from rest_framework import serializers

from orderdesk.core.serializers import StrictFieldsMixin
from .models import Item


class ItemSerializer(serializers.ModelSerializer):
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Item
        fields = ['id', 'name', 'price', 'image_url', 'color', 'fabric', 'special_features',
                  'stock_quantity', 'low_stock_threshold', 'track_stock', 'is_low_stock',
                  'cost_price', 'supplier_name', 'supplier_sku',
                  'deleted_at', 'created_at', 'updated_at']
        read_only_fields = fields


class ItemWriteSerializer(StrictFieldsMixin, serializers.ModelSerializer):
    """
    Create/update payload for items.

    stock_quantity is deliberately absent: balances move only through the
    stock ledger.
    """
    name = serializers.CharField(max_length=255, trim_whitespace=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    cost_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'),
                                          required=False, allow_null=True)
    low_stock_threshold = serializers.IntegerField(min_value=0, required=False)

    class Meta:
        model = Item
        fields = ['name', 'price', 'image_url', 'color', 'fabric', 'special_features',
                  'low_stock_threshold', 'track_stock', 'cost_price', 'supplier_name', 'supplier_sku']
        extra_kwargs = {
            'image_url': {'required': False, 'allow_null': True, 'allow_blank': True},
            'color': {'required': False, 'allow_blank': True},
            'fabric': {'required': False, 'allow_blank': True},
            'special_features': {'required': False, 'allow_blank': True},
            'supplier_name': {'required': False, 'allow_blank': True},
            'supplier_sku': {'required': False, 'allow_blank': True},
        }

    def validate_name(self, value):
        if not value:
            raise serializers.ValidationError('Item name cannot be empty')
        return value
