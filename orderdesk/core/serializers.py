from rest_framework import serializers

from .models import User, AuditLog


class StrictFieldsMixin:
    """Reject request bodies that carry fields the serializer does not declare"""

    def to_internal_value(self, data):
        if hasattr(data, 'keys'):
            writable = {name for name, field in self.fields.items() if not field.read_only}
            unknown = sorted(set(data.keys()) - writable)
            if unknown:
                raise serializers.ValidationError({field: ['Unknown field.'] for field in unknown})
        return super().to_internal_value(data)


class UserSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'first_name', 'last_name', 'picture', 'role',
                  'is_active', 'last_login', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_name(self, obj):
        return obj.get_full_name() or obj.username


class SessionSerializer(serializers.ModelSerializer):
    """The identity the service trusts for the current request"""
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'picture', 'role']

    def get_name(self, obj):
        return obj.get_full_name() or obj.username


class UserRoleSerializer(StrictFieldsMixin, serializers.Serializer):
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES)


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = ['id', 'entity_type', 'entity_id', 'action', 'user', 'user_email', 'user_name',
                  'previous_data', 'new_data', 'changed_fields', 'metadata', 'ip_address',
                  'user_agent', 'created_at']
