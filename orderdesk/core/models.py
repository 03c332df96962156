from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Application user, provisioned from the external identity provider"""
    ROLE_CHOICES = [
        ('admin', 'Admin'),
        ('user', 'User'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='user')
    picture = models.URLField(max_length=500, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_admin_role(self):
        return self.role == 'admin' or self.is_superuser

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ENTITY_CHOICES = [
        ('order', 'Order'),
        ('item', 'Item'),
        ('customer', 'Customer'),
        ('feedback', 'Feedback'),
        ('user', 'User'),
    ]

    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('restore', 'Restore'),
        ('status_change', 'Status Change'),
        ('bulk_update', 'Bulk Update'),
    ]

    entity_type = models.CharField(max_length=20, choices=ENTITY_CHOICES)
    entity_id = models.BigIntegerField()
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    user_email = models.CharField(max_length=255, blank=True, null=True, help_text="Cached for display even if the user is deleted")
    user_name = models.CharField(max_length=255, blank=True, null=True)
    previous_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    changed_fields = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.entity_type}#{self.entity_id} {self.action}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-created_at'], name='idx_audit_entity_lookup'),
            models.Index(fields=['-created_at'], name='idx_audit_created_at'),
            models.Index(fields=['action'], name='idx_audit_action'),
        ]
