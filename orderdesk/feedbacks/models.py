from django.core.validators import MaxLengthValidator, MaxValueValidator, MinValueValidator
from django.db import models

from orderdesk.orders.models import Order

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 1000
MAX_RESPONSE_LENGTH = 1000

RATING_VALIDATORS = [MinValueValidator(MIN_RATING), MaxValueValidator(MAX_RATING)]


class Feedback(models.Model):
    """Customer feedback; at most one per order"""
    order = models.OneToOneField(Order, on_delete=models.CASCADE, related_name='feedback')
    rating = models.PositiveSmallIntegerField(validators=RATING_VALIDATORS)
    product_quality = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    delivery_experience = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    comment = models.TextField(blank=True, default='', validators=[MaxLengthValidator(MAX_COMMENT_LENGTH)])
    is_public = models.BooleanField(default=True)
    response_text = models.TextField(blank=True, default='', validators=[MaxLengthValidator(MAX_RESPONSE_LENGTH)])
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Feedback {self.rating}/5 for {self.order.order_id}"

    class Meta:
        db_table = 'feedbacks'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(rating__gte=1, rating__lte=5), name='chk_feedback_rating_range'),
        ]
        indexes = [
            models.Index(fields=['rating'], name='idx_feedback_rating'),
        ]
