"""
Django management command to delete items past their retention window.
"""

from django.core.management.base import BaseCommand

from core.infrastructure import purge


class Command(BaseCommand):
    """Command to purge terminal items whose ttl has passed."""

    help = "Delete terminal applications and history records past their ttl"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only count the items that would be deleted",
        )

    def handle(self, *args, **options):
        """Execute the command."""
        count = purge.purge_expired_items(dry_run=options["dry_run"])
        if options["dry_run"]:
            # pylint: disable=no-member
            self.stdout.write(self.style.WARNING(f"DRY RUN - {count} item(s) would be deleted"))
            return
        # pylint: disable=no-member
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} expired item(s)"))
