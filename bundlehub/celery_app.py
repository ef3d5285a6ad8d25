"""
Celery configuration for the bundlehub project.

Runs order dispatch in the background and the periodic status jobs.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('bundlehub')

# Load configuration from Django settings with CELERY namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# autodiscover only looks for 'tasks.py'; the dispatch task lives in 'tasks_dispatch.py'
app.autodiscover_tasks(lambda: ['apps.orders'], related_name='tasks')
app.autodiscover_tasks(lambda: ['apps.orders'], related_name='tasks_dispatch')
