from rest_framework import serializers

from orderdesk.catalog.models import Item
from orderdesk.core.serializers import StrictFieldsMixin
from .models import StockTransaction


class StockTransactionSerializer(serializers.ModelSerializer):
    transaction_type_display = serializers.CharField(source='get_transaction_type_display', read_only=True)

    class Meta:
        model = StockTransaction
        fields = ['id', 'item', 'transaction_type', 'transaction_type_display', 'quantity',
                  'previous_stock', 'new_stock', 'reference_type', 'reference_id', 'notes',
                  'user', 'user_email', 'created_at']


class ItemStockSerializer(serializers.ModelSerializer):
    """Stock view of an item"""
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Item
        fields = ['id', 'name', 'price', 'image_url', 'stock_quantity', 'low_stock_threshold',
                  'track_stock', 'is_low_stock', 'cost_price', 'supplier_name', 'supplier_sku',
                  'created_at']


class StockAdjustmentSerializer(StrictFieldsMixin, serializers.Serializer):
    """Manual adjustment: positive quantity restocks, negative removes"""
    quantity = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=1000)

    def validate_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError('Quantity must be a non-zero integer')
        return value


class BulkAdjustmentLineSerializer(StrictFieldsMixin, serializers.Serializer):
    item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=1000)

    def validate_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError('Quantity must be a non-zero integer')
        return value


class BulkAdjustmentSerializer(StrictFieldsMixin, serializers.Serializer):
    TRANSACTION_TYPES = [
        StockTransaction.ADJUSTMENT,
        StockTransaction.RESTOCK,
        StockTransaction.RETURN,
    ]

    adjustments = BulkAdjustmentLineSerializer(many=True, allow_empty=False)
    transaction_type = serializers.ChoiceField(choices=TRANSACTION_TYPES, default=StockTransaction.ADJUSTMENT)
