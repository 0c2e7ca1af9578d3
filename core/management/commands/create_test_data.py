"""
Django management command to create test data for development and testing.

Creates EA applications for one user, spread over the lifecycle statuses:
- Pending applications waiting for a decision
- Active licenses with an encrypted license key
- Expired, Rejected and Revoked applications with their retention ttl
"""

import asyncio
import logging
import random
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError

from applications.domain.application import EAApplication
from applications.domain.services import LicensePayloadFactory
from applications.infrastructure.codec import FernetLicenseCodec
from applications.infrastructure.repositories.django_application_repository import (
    DjangoApplicationRepository,
)
from core.domain.timestamps import utcnow
from core.domain.value_objects import ApplicationStatus
from core.infrastructure.config import get_retention_months
from core.infrastructure.models import TableItem

logger = logging.getLogger(__name__)

EA_NAMES = [
    "Scalping Master EA",
    "Trend Follower Pro",
    "Grid Trading Bot",
    "News Trading EA",
    "Arbitrage Hunter",
    "Breakout Warrior",
    "Swing Master EA",
    "Martingale Pro",
    "Hedge Fund EA",
    "Fibonacci Trader",
]
BROKERS = [
    "XM Trading",
    "FXGT",
    "TitanFX",
    "IC Markets",
    "Exness",
    "AXIORY",
    "BigBoss",
    "HotForex",
    "FBS",
    "InstaForex",
]
X_ACCOUNTS = ["@TradingMaster_fx", "@FXExpert2025", "@EAProfessional", "@ScalpingKing", "@GridTrader_pro"]

WEIGHTED_STATUSES = {
    ApplicationStatus.PENDING: 3,
    ApplicationStatus.ACTIVE: 2,
    ApplicationStatus.EXPIRED: 1,
    ApplicationStatus.REJECTED: 1,
    ApplicationStatus.REVOKED: 1,
}
RANDOM_STATUS = "Random"
DAYS_BACK_APPLIED_AT = 60


class Command(BaseCommand):
    """Command to create test data."""

    help = "Create dummy EA applications for a user"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument("--user-id", type=str, required=True, help="Owner of the generated data")
        parser.add_argument(
            "--count",
            type=int,
            default=5,
            help="Number of applications to generate (default: 5)",
        )
        parser.add_argument(
            "--status",
            type=str,
            default=RANDOM_STATUS,
            choices=[status.value for status in WEIGHTED_STATUSES] + [RANDOM_STATUS],
            help="Status of the generated applications (default: Random)",
        )
        parser.add_argument(
            "--email",
            type=str,
            default="test@example.com",
            help="Email stored on the generated applications",
        )
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete the user's existing items first",
        )

    def handle(self, *args, **options):
        """Execute the command."""
        user_id = options["user_id"]
        if options["count"] < 1:
            raise CommandError("--count must be at least 1")

        if options["reset"]:
            # pylint: disable=no-member
            deleted, _ = TableItem.objects.filter(user_id=user_id).delete()
            self.stdout.write(self.style.WARNING(f"Deleted {deleted} existing item(s)"))

        applications = [
            self._build_application(user_id, options["email"], self._pick_status(options["status"]))
            for _ in range(options["count"])
        ]

        repository = DjangoApplicationRepository()

        async def store():
            for application in applications:
                await repository.put(application)

        asyncio.run(store())

        for application in applications:
            self.stdout.write(f"  - {application.status.value:<10} {application.sk}")
        # pylint: disable=no-member
        self.stdout.write(self.style.SUCCESS(f"Created {len(applications)} application(s) for {user_id}"))

    @staticmethod
    def _pick_status(requested: str) -> ApplicationStatus:
        if requested != RANDOM_STATUS:
            return ApplicationStatus(requested)
        statuses = list(WEIGHTED_STATUSES)
        return random.choices(statuses, weights=[WEIGHTED_STATUSES[s] for s in statuses])[0]

    @staticmethod
    def _build_application(user_id: str, email: str, status: ApplicationStatus) -> EAApplication:
        now = utcnow()
        applied_at = now - timedelta(
            days=random.randint(1, DAYS_BACK_APPLIED_AT), seconds=random.randint(0, 86399)
        )
        application = EAApplication.create(
            user_id=user_id,
            ea_name=random.choice(EA_NAMES),
            account_number=f"100{random.randint(0, 9999999):07d}",
            broker=random.choice(BROKERS),
            email=email,
            x_account=random.choice(X_ACCOUNTS),
            applied_at=applied_at,
        )

        months = get_retention_months()
        if status == ApplicationStatus.PENDING:
            return application
        if status == ApplicationStatus.REJECTED:
            return application.reject(now, months)

        approved_at = applied_at + timedelta(days=1)
        if status == ApplicationStatus.EXPIRED:
            expiry = now - timedelta(days=random.randint(1, 30))
        else:
            expiry = now + timedelta(days=random.randint(30, 365))
        payload = LicensePayloadFactory.build(
            user_id=user_id,
            ea_name=application.ea_name,
            account_id=application.account_number,
            expiry=expiry,
            issued_at=approved_at,
        )
        active = application.approve(
            license_key=FernetLicenseCodec().encrypt(payload),
            expiry_date=expiry,
            notification_scheduled_at=approved_at,
            notification_task_id=None,
            now=approved_at,
        ).mark_notification_sent(approved_at)

        if status == ApplicationStatus.EXPIRED:
            return active.mark_expired(now, months)
        if status == ApplicationStatus.REVOKED:
            return active.revoke(now, months)
        return active
