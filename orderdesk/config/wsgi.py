"""
WSGI config for the orderdesk project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'orderdesk.config.settings')

application = get_wsgi_application()
