from decimal import Decimal

from django.db import models
from django.utils import timezone


class ItemQuerySet(models.QuerySet):
    def active(self):
        return self.filter(deleted_at__isnull=True)

    def deleted(self):
        return self.filter(deleted_at__isnull=False)


class Item(models.Model):
    """Catalog item; stock_quantity is maintained only by the stock ledger"""
    name = models.CharField(max_length=255, db_index=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    image_url = models.CharField(max_length=1000, blank=True, null=True, help_text="Reference into the external blob store")
    color = models.CharField(max_length=100, blank=True)
    fabric = models.CharField(max_length=100, blank=True)
    special_features = models.TextField(blank=True)

    stock_quantity = models.IntegerField(default=0)
    low_stock_threshold = models.IntegerField(default=5)
    track_stock = models.BooleanField(default=False)

    cost_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    supplier_name = models.CharField(max_length=255, blank=True)
    supplier_sku = models.CharField(max_length=100, blank=True)

    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ItemQuerySet.as_manager()

    def __str__(self):
        return self.name

    @property
    def is_low_stock(self):
        return self.track_stock and self.stock_quantity <= self.low_stock_threshold

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def margin(self):
        if self.cost_price is None:
            return None
        return self.price - self.cost_price

    def soft_delete(self):
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at', 'updated_at'])

    def restore(self):
        self.deleted_at = None
        self.save(update_fields=['deleted_at', 'updated_at'])

    class Meta:
        db_table = 'items'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(stock_quantity__gte=0), name='chk_item_stock_non_negative'),
            models.CheckConstraint(condition=models.Q(price__gte=Decimal('0')), name='chk_item_price_non_negative'),
        ]
        indexes = [
            models.Index(fields=['track_stock', 'stock_quantity'], name='idx_item_stock'),
        ]
