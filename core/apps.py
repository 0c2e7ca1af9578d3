"""
App configuration for the core app.
"""

import logging
import os
import sys

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)

# Management commands that never serve requests or run tasks
SKIP_SETUP_COMMANDS = {
    "migrate",
    "makemigrations",
    "collectstatic",
    "shell",
    "check",
}


class CoreConfig(AppConfig):
    """Wires observability and domain event handlers once apps are loaded."""

    name = "core"
    verbose_name = "EA License Service Core"

    def ready(self):
        """Called when Django starts."""
        from core.infrastructure.event_handlers import register_event_handlers

        register_event_handlers()

        if len(sys.argv) > 1 and sys.argv[1] in SKIP_SETUP_COMMANDS:
            return

        # Django's reloader runs code twice; only the child sets up exporters
        if os.environ.get("RUN_MAIN") == "false":
            return

        if not settings.OTEL_ENABLED:
            logger.info("OpenTelemetry disabled by configuration")
            return

        from core.instrumentation import setup_opentelemetry

        setup_opentelemetry()
