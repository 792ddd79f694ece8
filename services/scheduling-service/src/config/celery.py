# services/scheduling-service/src/config/celery.py
"""
Celery application for Scheduling Service.

Workers run weather checks, reschedule expiration and cache warming.
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.base')

app = Celery('scheduling_service')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks(['apps.core'])
