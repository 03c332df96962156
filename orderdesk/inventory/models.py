from django.db import models

from orderdesk.catalog.models import Item


class StockTransaction(models.Model):
    """
    Append-only stock ledger row.

    Each row records the signed delta and the balance on both sides of it,
    so the running balance of an item can be audited from its history.
    """
    ORDER_PLACED = 'order_placed'
    ORDER_CANCELLED = 'order_cancelled'
    ADJUSTMENT = 'adjustment'
    RESTOCK = 'restock'
    RETURN = 'return'

    TRANSACTION_TYPE_CHOICES = [
        (ORDER_PLACED, 'Order Placed'),
        (ORDER_CANCELLED, 'Order Cancelled'),
        (ADJUSTMENT, 'Adjustment'),
        (RESTOCK, 'Restock'),
        (RETURN, 'Return'),
    ]

    REFERENCE_TYPE_CHOICES = [
        ('order', 'Order'),
        ('manual', 'Manual'),
        ('return', 'Return'),
        ('adjustment', 'Adjustment'),
    ]

    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name='stock_transactions')
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPE_CHOICES)
    quantity = models.IntegerField(help_text="Signed delta: negative removes stock")
    previous_stock = models.IntegerField()
    new_stock = models.IntegerField()
    reference_type = models.CharField(max_length=20, choices=REFERENCE_TYPE_CHOICES, null=True, blank=True)
    reference_id = models.CharField(max_length=100, null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    user = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_transactions')
    user_email = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.item_id} {self.transaction_type} {self.quantity:+d} ({self.previous_stock} -> {self.new_stock})"

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValueError('Stock transactions are immutable')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError('Stock transactions cannot be deleted')

    class Meta:
        db_table = 'stock_transactions'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(new_stock__gte=0), name='chk_stock_tx_new_stock_non_negative'),
            models.CheckConstraint(
                condition=models.Q(new_stock=models.F('previous_stock') + models.F('quantity')),
                name='chk_stock_tx_balance',
            ),
        ]
        indexes = [
            models.Index(fields=['item', '-created_at'], name='idx_stock_tx_item_created'),
            models.Index(fields=['reference_type', 'reference_id'], name='idx_stock_tx_reference'),
            models.Index(fields=['transaction_type'], name='idx_stock_tx_type'),
        ]
