from django.urls import path
from .views import (
    health, auth_session,
    user_list, user_stats, user_role,
    audit_log_list, audit_log_recent,
)

urlpatterns = [
    path('health/', health, name='health'),

    # Auth endpoints
    path('auth/session/', auth_session, name='auth-session'),

    # User endpoints
    path('users/', user_list, name='user-list'),
    path('users/stats/', user_stats, name='user-stats'),
    path('users/<int:pk>/role/', user_role, name='user-role'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/recent/', audit_log_recent, name='audit-log-recent'),
]
