"""
Base Django settings for EALicenseService.

These settings are shared across all environments.
Environment-specific overrides are in dev.py, test.py, and prod.py
"""
import os
from pathlib import Path

from EALicenseService.settings.logging import get_logging_config

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get(
    "SECRET_KEY", "django-insecure-ea-license-7q!x2m#c8v@r4k$w9z&t1n%p0s^h6j*d3f(g5b)y"
)

ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

# Application definition
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    # Third party
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "core",
    "applications",
    "integrations",
    "profiles",
    "webhooks",
    "api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    # Custom middleware
    "core.middleware.user_context.UserContextMiddleware",
    "core.middleware.observability.ObservabilityMiddleware",
    "core.middleware.metrics.MetricsMiddleware",
]

ROOT_URLCONF = "EALicenseService.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "EALicenseService.wsgi.application"
ASGI_APPLICATION = "EALicenseService.asgi.application"

# Database
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "ea_license_service"),
        "USER": os.environ.get("DB_USER", "postgres"),
        "PASSWORD": os.environ.get("DB_PASSWORD", "postgres"),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "OPTIONS": {
            "connect_timeout": 10,
        },
    }
}

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# REST Framework
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "api.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

# drf-spectacular settings
SPECTACULAR_SETTINGS = {
    "TITLE": "EA License Service API",
    "DESCRIPTION": (
        "License issuance service for EA trading clients. "
        "Provides the application lifecycle (approve, reject, cancel, revoke), "
        "integration test orchestration and inbound form/harness webhooks."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "COMPONENT_SPLIT_REQUEST": True,
    "SCHEMA_PATH_PREFIX": "/api/v1",
    "TAGS": [
        {"name": "Applications", "description": "EA application lifecycle"},
        {"name": "Integration", "description": "Integration test orchestration"},
        {"name": "Profile", "description": "Developer setup profile"},
        {"name": "Webhooks", "description": "Inbound form and harness events"},
        {"name": "Health", "description": "Health check endpoints"},
    ],
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "UserIdHeader": {
                "type": "apiKey",
                "in": "header",
                "name": "X-User-Id",
                "description": "Caller id forwarded by the upstream authorizer.",
            }
        }
    },
    "SECURITY": [{"UserIdHeader": []}],
}

# Caller identity (set by the upstream authorizer)
USER_ID_HEADER = "X-User-Id"

# License lifecycle
DEFAULT_RETENTION_MONTHS = 6
LICENSE_RETENTION_MONTHS = os.environ.get("TTL_MONTHS", str(DEFAULT_RETENTION_MONTHS))
NOTIFICATION_DELAY_SECONDS = int(os.environ.get("NOTIFICATION_DELAY_SECONDS", "300"))
CONFLICT_RETRY_LIMIT = int(os.environ.get("CONFLICT_RETRY_LIMIT", "3"))
LICENSE_ENCRYPTION_KEY = os.environ.get(
    "LICENSE_ENCRYPTION_KEY", "hZ3oJxW4m0yQvK9fN2rT6uB8cE1aD5gL7sP0iM3nVwY="
)

# Notification delivery
NOTIFICATION_DELIVERY_MAX_RETRIES = int(os.environ.get("NOTIFICATION_DELIVERY_MAX_RETRIES", "3"))
NOTIFICATION_RETRY_DELAY_SECONDS = int(os.environ.get("NOTIFICATION_RETRY_DELAY_SECONDS", "300"))
NOTIFICATION_MAX_FAILURE_COUNT = int(os.environ.get("NOTIFICATION_MAX_FAILURE_COUNT", "3"))
NOTIFICATION_SWEEP_GRACE_SECONDS = int(os.environ.get("NOTIFICATION_SWEEP_GRACE_SECONDS", "60"))
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "licenses@ea-license.local")

# Integration tests
INTEGRATION_TEST_POLL_INTERVAL_SECONDS = float(
    os.environ.get("INTEGRATION_TEST_POLL_INTERVAL_SECONDS", "2")
)
INTEGRATION_TEST_POLL_MAX_ATTEMPTS = int(os.environ.get("INTEGRATION_TEST_POLL_MAX_ATTEMPTS", "10"))
INTEGRATION_TEST_ESTIMATED_DURATION_SECONDS = int(
    os.environ.get("INTEGRATION_TEST_ESTIMATED_DURATION_SECONDS", "360")
)
GAS_WEBAPP_TIMEOUT_SECONDS = int(os.environ.get("GAS_WEBAPP_TIMEOUT_SECONDS", "30"))

# Inbound webhooks
WEBHOOK_SIGNING_SECRET = os.environ.get("WEBHOOK_SIGNING_SECRET", "")

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://127.0.0.1:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://127.0.0.1:6379/0")
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "sweep-overdue-notifications": {
        "task": "core.tasks.sweep_overdue_notifications",
        "schedule": 60.0,
    },
    "sweep-expired-applications": {
        "task": "core.tasks.sweep_expired_applications",
        "schedule": 3600.0,
    },
    "purge-expired-items": {
        "task": "core.tasks.purge_expired_items",
        "schedule": 6 * 3600.0,
    },
}

# Observability
OTEL_ENABLED = os.environ.get("OTEL_ENABLED", "true").lower() == "true"
LOGGING = get_logging_config(os.environ.get("ENVIRONMENT", "development"))
