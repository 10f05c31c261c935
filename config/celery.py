"""
Celery configuration for StayEase project.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat Schedule
app.conf.beat_schedule = {
    'mark-overdue-invoices': {
        'task': 'apps.billing.tasks.mark_overdue_invoices',
        'schedule': crontab(hour='0', minute='30'),  # Daily at 00:30
    },
}
