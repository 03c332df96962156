"""Utility functions for audit logging"""
import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.forms.models import model_to_dict

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def snapshot(instance, fields=None):
    """JSON-safe dict of a model instance, for previous_data/new_data"""
    if instance is None:
        return None
    data = model_to_dict(instance, fields=fields)
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def changed_fields(previous, new):
    """Keys whose values differ between two snapshots"""
    previous = previous or {}
    new = new or {}
    return sorted(key for key in set(previous) | set(new) if previous.get(key) != new.get(key))


def create_audit_log(request=None, entity_type=None, entity_id=None, action=None,
                     previous_data=None, new_data=None, fields_changed=None,
                     metadata=None, user=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, IP and user agent) - optional if user is provided
        entity_type: order, item, customer, feedback or user
        entity_id: primary key of the entity
        action: create, update, delete, restore, status_change, bulk_update
        previous_data: snapshot before the change
        new_data: snapshot after the change
        fields_changed: explicit list of changed fields; derived from the snapshots when omitted
        metadata: extra context (e.g. affected ids for bulk updates)
        user: Optional user override (defaults to request.user if request provided)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user
        if audit_user is not None and not audit_user.is_authenticated:
            audit_user = None

        if not action or not entity_type or entity_id is None:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, entity_type={entity_type}, entity_id={entity_id})")
            return None

        if fields_changed is None and previous_data is not None and new_data is not None:
            fields_changed = changed_fields(previous_data, new_data)

        # Savepoint so a failed insert leaves the caller's transaction usable
        with transaction.atomic():
            return AuditLog.objects.create(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                user=audit_user,
                user_email=audit_user.email if audit_user else None,
                user_name=(audit_user.get_full_name() or audit_user.username) if audit_user else None,
                previous_data=previous_data,
                new_data=new_data,
                changed_fields=fields_changed or [],
                metadata=metadata or {},
                ip_address=get_client_ip(request) if request else None,
                user_agent=request.META.get('HTTP_USER_AGENT') if request and hasattr(request, 'META') else None,
            )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None
