import logging

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import connection
from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .filters import AuditLogFilter
from .models import AuditLog
from .pagination import paginate_queryset, parse_pagination_params
from .permissions import IsAdminRole
from .serializers import AuditLogSerializer, SessionSerializer, UserRoleSerializer, UserSerializer
from .utils import create_audit_log, snapshot

logger = logging.getLogger(__name__)

User = get_user_model()

RECENT_AUDIT_LIMIT = 20


@api_view(['GET'])
@permission_classes([AllowAny])
def health(request):
    """Database and cache checks"""
    checks = {'database': 'ok', 'cache': 'ok'}

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except Exception as e:
        logger.error(f"Health check: database unavailable: {e}")
        checks['database'] = 'unavailable'

    try:
        cache.set('health:ping', 'pong', 5)
        if cache.get('health:ping') != 'pong':
            checks['cache'] = 'degraded'
    except Exception as e:
        logger.warning(f"Health check: cache unavailable: {e}")
        checks['cache'] = 'unavailable'

    # The cache is optional; only the database makes the service unhealthy
    healthy = checks['database'] == 'ok'
    return Response(
        {'status': 'ok' if healthy else 'unavailable', 'checks': checks},
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def auth_session(request):
    """Current session as asserted by the identity provider's token"""
    return Response({'user': SessionSerializer(request.user).data})


# User views
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list(request):
    """List all users"""
    users = User.objects.order_by('-created_at', '-id')
    serializer = UserSerializer(users, many=True)
    return Response({'items': serializer.data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_stats(request):
    """Counts of users by role"""
    counts = dict(User.objects.order_by().values_list('role').annotate(total=Count('id')))
    return Response({
        'totalUsers': sum(counts.values()),
        'adminUsers': counts.get('admin', 0),
        'regularUsers': counts.get('user', 0),
    })


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_role(request, pk):
    """Change a user's role"""
    user = get_object_or_404(User, pk=pk)
    serializer = UserRoleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    new_role = serializer.validated_data['role']
    if user.pk == request.user.pk and new_role != 'admin':
        raise ValidationError('You cannot remove your own admin role')

    previous_data = snapshot(user, fields=['role'])
    user.role = new_role
    user.save(update_fields=['role', 'updated_at'])

    create_audit_log(
        request=request,
        entity_type='user',
        entity_id=user.pk,
        action='update',
        previous_data=previous_data,
        new_data=snapshot(user, fields=['role']),
    )
    logger.info(f"User {user.pk} role changed to {new_role} by {request.user.pk}")
    return Response(UserSerializer(user).data)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    """List audit logs with filtering"""
    filterset = AuditLogFilter(request.query_params, queryset=AuditLog.objects.all())
    if not filterset.is_valid():
        raise ValidationError(filterset.errors)

    page, limit = parse_pagination_params(request.query_params)
    rows, pagination = paginate_queryset(filterset.qs.order_by('-created_at', '-id'), page, limit)
    return Response({
        'items': AuditLogSerializer(rows, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_recent(request):
    """Most recent audit activity for the dashboard feed"""
    queryset = AuditLog.objects.order_by('-created_at', '-id')
    if not request.user.is_admin_role:
        queryset = queryset.filter(user=request.user)
    serializer = AuditLogSerializer(queryset[:RECENT_AUDIT_LIMIT], many=True)
    return Response({'items': serializer.data})
