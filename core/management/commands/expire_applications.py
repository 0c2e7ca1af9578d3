"""
Django management command to expire licenses whose expiry date has passed.

This command can be run periodically (e.g., via cron) when Celery beat is
not available; the beat schedule runs the same sweep.
"""

import logging

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand

from applications.application.commands.expire_applications import ExpireApplicationsCommand
from applications.application.handlers.expire_applications_handler import (
    ExpireApplicationsHandler,
)
from core import container

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Command to expire Active applications past their expiry date."""

    help = "Expire active licenses whose expiry date has passed"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Dry run mode - don't actually update applications",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of applications to process (default: 100)",
        )

    def handle(self, *args, **options):
        """Execute the command."""
        dry_run = options["dry_run"]
        handler = ExpireApplicationsHandler(container.build_state_machine())
        sks = async_to_sync(handler.handle)(
            ExpireApplicationsCommand(limit=options["limit"], dry_run=dry_run)
        )

        if dry_run:
            # pylint: disable=no-member
            self.stdout.write(self.style.WARNING("DRY RUN - No changes will be made"))
            self.stdout.write(f"Found {len(sks)} expired license(s)")
            for sk in sks[:10]:
                self.stdout.write(f"  - {sk}")
            return

        self.stdout.write(
            # pylint: disable=no-member
            self.style.SUCCESS(f"Successfully marked {len(sks)} license(s) as expired")
        )
