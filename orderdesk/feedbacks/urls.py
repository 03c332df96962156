from django.urls import path
from .views import (
    feedback_list_create, feedback_detail,
    feedback_by_order, feedback_stats,
)

urlpatterns = [
    # Feedback endpoints
    path('feedbacks/', feedback_list_create, name='feedback-list-create'),
    path('feedbacks/stats/', feedback_stats, name='feedback-stats'),
    path('feedbacks/order/<int:order_id>/', feedback_by_order, name='feedback-by-order'),
    path('feedbacks/<int:pk>/', feedback_detail, name='feedback-detail'),
]
