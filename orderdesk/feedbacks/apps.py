from django.apps import AppConfig


class FeedbacksConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'orderdesk.feedbacks'
