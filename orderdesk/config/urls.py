"""
URL configuration for the orderdesk project.

All API routes are mounted under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "OrderDesk Admin Panel"
admin.site.site_title = "OrderDesk Admin Portal"
admin.site.index_title = "Welcome to OrderDesk"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('orderdesk.core.urls')),
    path('api/v1/', include('orderdesk.catalog.urls')),
    path('api/v1/', include('orderdesk.inventory.urls')),
    path('api/v1/', include('orderdesk.parties.urls')),
    path('api/v1/', include('orderdesk.orders.urls')),
    path('api/v1/', include('orderdesk.feedbacks.urls')),
    path('api/v1/', include('orderdesk.reports.urls')),
]
