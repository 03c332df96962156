"""
Order serializers

Write serializers reject unknown fields and hand the view a typed command
instead of a loose dict. Prices are never accepted from the client; they
are resolved from the catalog when the order is placed.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from django.utils import timezone
from rest_framework import serializers

from orderdesk.core.serializers import StrictFieldsMixin
from .models import Order, OrderItem, OrderNote

REQUIRED_FIELDS_MESSAGE = 'Order source, customer name, and customer ID are required'
ITEMS_REQUIRED_MESSAGE = 'At least one item is required'
LINE_FIELDS_MESSAGE = 'Each item must have itemId and quantity'
LINE_QUANTITY_MESSAGE = 'Item quantity must be a positive integer'
PAST_DELIVERY_MESSAGE = 'Expected delivery date cannot be in the past'
CANCELLED_ON_CREATE_MESSAGE = 'New orders cannot be created as cancelled'
NOTE_TEXT_REQUIRED_MESSAGE = 'Note text is required'
NOTE_TEXT_EMPTY_MESSAGE = 'Note text cannot be empty'
NOTE_TYPE_MESSAGE = 'Invalid note type. Must be one of: internal, customer, system'
LINE_KEYS = {'item_id', 'quantity', 'customization_request'}


@dataclass(frozen=True)
class OrderLine:
    item_id: int
    quantity: int
    customization_request: str = ''


@dataclass
class PlaceOrderCommand:
    order_from: str
    customer_name: str
    customer_id: str
    lines: List[OrderLine]
    address: str = ''
    customer_notes: str = ''
    status: str = Order.STATUS_PENDING
    payment_status: str = 'unpaid'
    paid_amount: Decimal = Decimal('0.00')
    confirmation_status: str = 'unconfirmed'
    priority: int = 0
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    delivery_status: str = 'not_shipped'
    tracking_id: str = ''
    delivery_partner: str = ''
    extra: dict = field(default_factory=dict)


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'item', 'name', 'price', 'quantity', 'customization_request', 'line_total']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_id', 'order_from', 'customer_name', 'customer_id', 'address',
                  'customer_notes', 'items', 'total_price', 'paid_amount', 'status',
                  'payment_status', 'confirmation_status', 'delivery_status', 'priority',
                  'order_date', 'expected_delivery_date', 'actual_delivery_date',
                  'tracking_id', 'delivery_partner', 'created_at', 'updated_at']
        read_only_fields = fields


def _parse_quantity(value):
    if isinstance(value, bool):
        raise serializers.ValidationError(LINE_QUANTITY_MESSAGE)
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise serializers.ValidationError(LINE_QUANTITY_MESSAGE)
    if quantity != value and str(quantity) != str(value).strip():
        raise serializers.ValidationError(LINE_QUANTITY_MESSAGE)
    if quantity <= 0:
        raise serializers.ValidationError(LINE_QUANTITY_MESSAGE)
    return quantity


def _parse_item_id(value):
    if isinstance(value, bool):
        raise serializers.ValidationError(LINE_FIELDS_MESSAGE)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise serializers.ValidationError(f"Item with id {value} not found")


class OrderCreateSerializer(StrictFieldsMixin, serializers.Serializer):
    """Validates a new order and produces a PlaceOrderCommand"""
    order_from = serializers.ChoiceField(choices=Order.SOURCE_CHOICES, required=False, allow_blank=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    customer_id = serializers.CharField(max_length=50, required=False, allow_blank=True)
    items = serializers.ListField(child=serializers.DictField(), required=False, allow_empty=True)

    address = serializers.CharField(required=False, allow_blank=True, default='')
    customer_notes = serializers.CharField(required=False, allow_blank=True, default='',
                                           max_length=Order.CUSTOMER_NOTES_MAX_LENGTH)
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False, default=Order.STATUS_PENDING)
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES, required=False, default='unpaid')
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'),
                                           required=False, default=Decimal('0.00'))
    confirmation_status = serializers.ChoiceField(choices=Order.CONFIRMATION_STATUS_CHOICES, required=False,
                                                  default='unconfirmed')
    priority = serializers.IntegerField(min_value=0, max_value=Order.MAX_PRIORITY, required=False, default=0)
    order_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    expected_delivery_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    actual_delivery_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    delivery_status = serializers.ChoiceField(choices=Order.DELIVERY_STATUS_CHOICES, required=False,
                                              default='not_shipped')
    tracking_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    delivery_partner = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate_status(self, value):
        if value == Order.STATUS_CANCELLED:
            raise serializers.ValidationError(CANCELLED_ON_CREATE_MESSAGE)
        return value

    def validate_expected_delivery_date(self, value):
        if value is None:
            return value
        # Compared by calendar day so "today" is still acceptable
        if timezone.localdate(value) < timezone.localdate():
            raise serializers.ValidationError(PAST_DELIVERY_MESSAGE)
        return value

    def validate(self, attrs):
        order_from = attrs.get('order_from')
        customer_name = (attrs.get('customer_name') or '').strip()
        customer_id = (attrs.get('customer_id') or '').strip()
        if not order_from or not customer_name or not customer_id:
            raise serializers.ValidationError(REQUIRED_FIELDS_MESSAGE)

        raw_lines = attrs.get('items') or []
        if not raw_lines:
            raise serializers.ValidationError(ITEMS_REQUIRED_MESSAGE)

        lines = []
        for raw in raw_lines:
            if raw.get('item_id') in (None, '') or raw.get('quantity') in (None, ''):
                raise serializers.ValidationError(LINE_FIELDS_MESSAGE)
            unknown = set(raw) - LINE_KEYS
            if unknown:
                raise serializers.ValidationError(f"Unknown item field(s): {', '.join(sorted(unknown))}")
            lines.append(OrderLine(
                item_id=_parse_item_id(raw['item_id']),
                quantity=_parse_quantity(raw['quantity']),
                customization_request=str(raw.get('customization_request') or '').strip(),
            ))

        attrs['customer_name'] = customer_name
        attrs['customer_id'] = customer_id
        attrs['lines'] = lines
        return attrs

    def to_command(self):
        data = dict(self.validated_data)
        data.pop('items', None)
        return PlaceOrderCommand(
            order_from=data.pop('order_from'),
            customer_name=data.pop('customer_name'),
            customer_id=data.pop('customer_id'),
            lines=data.pop('lines'),
            address=(data.pop('address') or '').strip(),
            customer_notes=data.pop('customer_notes') or '',
            **data,
        )


class OrderUpdateSerializer(StrictFieldsMixin, serializers.Serializer):
    """
    Status and delivery fields of an existing order.

    Line items are immutable after placement, so they are not accepted here.
    """
    customer_name = serializers.CharField(max_length=255, required=False)
    address = serializers.CharField(required=False, allow_blank=True)
    customer_notes = serializers.CharField(required=False, allow_blank=True,
                                           max_length=Order.CUSTOMER_NOTES_MAX_LENGTH)
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False)
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES, required=False)
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    confirmation_status = serializers.ChoiceField(choices=Order.CONFIRMATION_STATUS_CHOICES, required=False)
    priority = serializers.IntegerField(min_value=0, max_value=Order.MAX_PRIORITY, required=False)
    expected_delivery_date = serializers.DateTimeField(required=False, allow_null=True)
    actual_delivery_date = serializers.DateTimeField(required=False, allow_null=True)
    delivery_status = serializers.ChoiceField(choices=Order.DELIVERY_STATUS_CHOICES, required=False)
    tracking_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    delivery_partner = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No updatable fields provided')
        return attrs


class BulkUpdateChangesSerializer(StrictFieldsMixin, serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES, required=False)
    payment_status = serializers.ChoiceField(choices=Order.PAYMENT_STATUS_CHOICES, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('updates must be a non-empty object with status and/or payment_status')
        return attrs


class BulkUpdateSerializer(StrictFieldsMixin, serializers.Serializer):
    order_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    updates = BulkUpdateChangesSerializer()


class OrderNoteSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderNote
        fields = ['id', 'order', 'note_text', 'note_type', 'is_pinned', 'user', 'user_email',
                  'user_name', 'created_at', 'updated_at']
        read_only_fields = fields


class OrderNoteCreateSerializer(StrictFieldsMixin, serializers.Serializer):
    note_text = serializers.CharField(error_messages={
        'required': NOTE_TEXT_REQUIRED_MESSAGE,
        'blank': NOTE_TEXT_REQUIRED_MESSAGE,
        'null': NOTE_TEXT_REQUIRED_MESSAGE,
    })
    note_type = serializers.ChoiceField(choices=OrderNote.NOTE_TYPE_CHOICES, error_messages={
        'required': NOTE_TYPE_MESSAGE,
        'invalid_choice': NOTE_TYPE_MESSAGE,
        'null': NOTE_TYPE_MESSAGE,
    })
    is_pinned = serializers.BooleanField(required=False, default=False)


class OrderNoteUpdateSerializer(StrictFieldsMixin, serializers.Serializer):
    """Only the text and the pin can change; a note keeps its type"""
    note_text = serializers.CharField(required=False, error_messages={
        'blank': NOTE_TEXT_EMPTY_MESSAGE,
        'null': NOTE_TEXT_EMPTY_MESSAGE,
    })
    is_pinned = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No valid updates provided')
        return attrs
