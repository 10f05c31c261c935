"""
ASGI config for StayEase project.

Serves the Django application through any ASGI server (Daphne, Uvicorn).
"""
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

from django.core.asgi import get_asgi_application

application = get_asgi_application()
