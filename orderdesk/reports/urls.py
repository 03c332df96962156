from django.urls import path
from . import views

urlpatterns = [
    path('analytics/sales/', views.sales_report, name='analytics-sales'),
    path('analytics/top-items/', views.top_items_report, name='analytics-top-items'),
    path('analytics/top-customers/', views.top_customers_report, name='analytics-top-customers'),
    path('analytics/profit/', views.profit_report, name='analytics-profit'),
    path('analytics/trends/', views.trends_report, name='analytics-trends'),
]
