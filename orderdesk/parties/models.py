from decimal import Decimal

from django.db import models


class Customer(models.Model):
    """Customers, identified in orders by their business customer_id"""
    SOURCE_CHOICES = [
        ('walk-in', 'Walk-in'),
        ('online', 'Online'),
        ('referral', 'Referral'),
        ('other', 'Other'),
    ]

    customer_id = models.CharField(max_length=50, unique=True, help_text="Business identifier, e.g. CUST-0042")
    name = models.CharField(max_length=255, db_index=True)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='other')
    notes = models.TextField(blank=True, null=True)

    # Aggregates recomputed from orders
    total_orders = models.IntegerField(default=0)
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    first_order_date = models.DateTimeField(null=True, blank=True)
    last_order_date = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.customer_id})"

    class Meta:
        db_table = 'customers'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['phone'], name='idx_customer_phone'),
            models.Index(fields=['email'], name='idx_customer_email'),
        ]
