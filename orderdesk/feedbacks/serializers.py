from rest_framework import serializers

from orderdesk.core.serializers import StrictFieldsMixin
from orderdesk.orders.models import Order
from .models import MAX_COMMENT_LENGTH, MAX_RATING, MAX_RESPONSE_LENGTH, MIN_RATING, Feedback


def _rating_field(label, required_message=None, **kwargs):
    message = f"{label} must be between {MIN_RATING} and {MAX_RATING}"
    error_messages = {'min_value': message, 'max_value': message, 'invalid': message}
    if required_message:
        error_messages['required'] = required_message
        error_messages['null'] = required_message
    return serializers.IntegerField(
        min_value=MIN_RATING,
        max_value=MAX_RATING,
        error_messages=error_messages,
        **kwargs,
    )


class FeedbackSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source='order.order_id', read_only=True)
    customer_name = serializers.CharField(source='order.customer_name', read_only=True)

    class Meta:
        model = Feedback
        fields = ['id', 'order', 'order_id', 'customer_name', 'rating', 'product_quality',
                  'delivery_experience', 'comment', 'is_public', 'response_text', 'responded_at',
                  'created_at', 'updated_at']
        read_only_fields = fields


class FeedbackCreateSerializer(StrictFieldsMixin, serializers.Serializer):
    order = serializers.PrimaryKeyRelatedField(
        queryset=Order.objects.all(),
        error_messages={'required': 'Order ID is required', 'does_not_exist': 'Order not found'},
    )
    rating = _rating_field('rating', required_message='rating is required')
    product_quality = _rating_field('product quality', required=False, allow_null=True)
    delivery_experience = _rating_field('delivery experience', required=False, allow_null=True)
    comment = serializers.CharField(
        required=False, allow_blank=True, default='', max_length=MAX_COMMENT_LENGTH,
        error_messages={'max_length': f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters"},
    )
    is_public = serializers.BooleanField(required=False, default=True)

    def create(self, validated_data):
        return Feedback.objects.create(**validated_data)


class FeedbackUpdateSerializer(StrictFieldsMixin, serializers.Serializer):
    """Staff response and visibility; ratings belong to the customer"""
    response_text = serializers.CharField(
        required=False, allow_blank=True, max_length=MAX_RESPONSE_LENGTH,
        error_messages={'max_length': f"Response cannot exceed {MAX_RESPONSE_LENGTH} characters"},
    )
    is_public = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No updatable fields provided')
        return attrs
