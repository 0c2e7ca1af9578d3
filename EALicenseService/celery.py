"""
Celery configuration for background tasks.

Used for deferred license notifications, notification delivery retries
and the periodic expiry/retention sweeps.
"""
import os

from celery import Celery

# Set default Django settings module
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "EALicenseService.settings.base")

app = Celery("EALicenseService")

# Load configuration from Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")

# Tasks live in core.tasks; autodiscovery picks them up from installed apps
app.autodiscover_tasks()
