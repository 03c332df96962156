import random
from decimal import Decimal

from django.core.validators import MaxLengthValidator, MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from orderdesk.catalog.models import Item


def generate_order_id():
    return f"ORD{random.randint(100000, 999999)}"


class Order(models.Model):
    """Customer order; never physically deleted, cancellation is a status"""
    SOURCE_CHOICES = [
        ('instagram', 'Instagram'),
        ('facebook', 'Facebook'),
        ('whatsapp', 'WhatsApp'),
        ('call', 'Call'),
        ('offline', 'Offline'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('partially_paid', 'Partially Paid'),
        ('paid', 'Paid'),
        ('cash_on_delivery', 'Cash on Delivery'),
        ('refunded', 'Refunded'),
    ]

    CONFIRMATION_STATUS_CHOICES = [
        ('unconfirmed', 'Unconfirmed'),
        ('pending_confirmation', 'Pending Confirmation'),
        ('confirmed', 'Confirmed'),
        ('cancelled', 'Cancelled'),
    ]

    DELIVERY_STATUS_CHOICES = [
        ('not_shipped', 'Not Shipped'),
        ('shipped', 'Shipped'),
        ('in_transit', 'In Transit'),
        ('out_for_delivery', 'Out for Delivery'),
        ('delivered', 'Delivered'),
        ('returned', 'Returned'),
    ]

    MAX_PRIORITY = 5
    CUSTOMER_NOTES_MAX_LENGTH = 5000

    order_id = models.CharField(max_length=20, unique=True, default=generate_order_id)
    order_from = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    customer_name = models.CharField(max_length=255)
    customer_id = models.CharField(max_length=50, db_index=True, help_text="Business customer identifier")
    address = models.TextField(blank=True)
    customer_notes = models.TextField(blank=True, validators=[MaxLengthValidator(CUSTOMER_NOTES_MAX_LENGTH)])

    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='unpaid')
    confirmation_status = models.CharField(max_length=30, choices=CONFIRMATION_STATUS_CHOICES, default='unconfirmed')
    delivery_status = models.CharField(max_length=20, choices=DELIVERY_STATUS_CHOICES, default='not_shipped')

    order_date = models.DateTimeField(default=timezone.now)
    expected_delivery_date = models.DateTimeField(null=True, blank=True)
    actual_delivery_date = models.DateTimeField(null=True, blank=True)
    priority = models.PositiveSmallIntegerField(default=0, validators=[MinValueValidator(0), MaxValueValidator(MAX_PRIORITY)])
    tracking_id = models.CharField(max_length=100, blank=True)
    delivery_partner = models.CharField(max_length=100, blank=True)

    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='orders_created')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order_id} - {self.customer_name}"

    @property
    def is_cancelled(self):
        return self.status == self.STATUS_CANCELLED

    @property
    def balance_due(self):
        return self.total_price - self.paid_amount

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(paid_amount__gte=Decimal('0')), name='chk_order_paid_non_negative'),
            models.CheckConstraint(condition=models.Q(priority__lte=5), name='chk_order_priority_range'),
        ]
        indexes = [
            models.Index(fields=['-created_at', '-id'], name='idx_order_cursor'),
            models.Index(fields=['status'], name='idx_order_status'),
            models.Index(fields=['expected_delivery_date'], name='idx_order_expected_delivery'),
        ]


class OrderItem(models.Model):
    """Order line; name, price and cost_price are snapshots taken at placement"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name='order_lines')
    name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    quantity = models.PositiveIntegerField()
    customization_request = models.TextField(blank=True)

    def __str__(self):
        return f"{self.name} x{self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity

    class Meta:
        db_table = 'order_items'
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name='chk_order_item_quantity_positive'),
        ]


class OrderNote(models.Model):
    """Free-text note attached to an order; pinned notes list first"""
    NOTE_TYPE_CHOICES = [
        ('internal', 'Internal'),
        ('customer', 'Customer'),
        ('system', 'System'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='notes')
    note_text = models.TextField()
    note_type = models.CharField(max_length=20, choices=NOTE_TYPE_CHOICES)
    is_pinned = models.BooleanField(default=False)
    user = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='order_notes')
    user_email = models.EmailField(blank=True)
    user_name = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.order.order_id} [{self.note_type}]"

    class Meta:
        db_table = 'order_notes'
        ordering = ['-is_pinned', '-created_at', '-id']
        indexes = [
            models.Index(fields=['order', '-is_pinned', '-created_at'], name='idx_order_note_listing'),
        ]
