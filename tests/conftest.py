"""
Pytest configuration and shared fixtures.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from applications.application.services.state_machine import ApplicationStateMachine
from applications.domain.application import EAApplication
from applications.domain.history import ApplicationHistory, history_prefix_for
from applications.infrastructure.codec import FernetLicenseCodec
from applications.infrastructure.repositories.django_application_repository import (
    DjangoApplicationRepository,
)
from applications.ports.application_repository import ApplicationRepository
from applications.ports.notification_scheduler import NotificationScheduler
from applications.ports.notifier import NotificationResult, Notifier
from core.domain.exceptions import ConflictError
from core.domain.value_objects import ApplicationStatus
from core.infrastructure.events import InMemoryEventBus
from integrations.application.services.integration_test_service import IntegrationTestService
from integrations.ports.gas_webapp_client import GasWebAppClient
from profiles.domain.user_profile import UserProfile
from profiles.infrastructure.repositories.django_user_profile_repository import (
    DjangoUserProfileRepository,
)
from profiles.ports.user_profile_repository import UserProfileRepository

USER_ID = "user-123"
BASE_TIME = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class MutableClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryApplicationRepository(ApplicationRepository):
    """
    ApplicationRepository keeping items in dicts.

    ``conflicts`` makes the next N conditional updates fail, and
    ``before_update`` runs once ahead of the next conditional update so a
    test can land a competing write.
    """

    def __init__(self):
        self.items: Dict[Tuple[str, str], EAApplication] = {}
        self.histories: List[ApplicationHistory] = []
        self.conflicts = 0
        self.before_update = None

    def seed(self, application: EAApplication) -> EAApplication:
        stored = replace(application, version=application.version or 1)
        self.items[(stored.user_id, stored.sk)] = stored
        return stored

    async def put(self, application: EAApplication) -> EAApplication:
        key = (application.user_id, application.sk)
        if key in self.items:
            raise ConflictError(f"Application {application.sk} already exists")
        stored = replace(application, version=1)
        self.items[key] = stored
        return stored

    async def get(self, user_id: str, sk: str) -> Optional[EAApplication]:
        return self.items.get((user_id, sk))

    async def query_by_status(
        self, user_id: str, status: Optional[ApplicationStatus] = None
    ) -> List[EAApplication]:
        found = [
            application
            for (owner, _), application in self.items.items()
            if owner == user_id and (status is None or application.status == status)
        ]
        return sorted(found, key=lambda application: application.sk, reverse=True)

    async def query_by_broker_account(
        self, broker: str, account_number: str
    ) -> List[EAApplication]:
        return [
            application
            for application in self.items.values()
            if application.broker == broker and application.account_number == account_number
        ]

    async def conditional_update(
        self, application: EAApplication, expected_status: ApplicationStatus
    ) -> EAApplication:
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            hook(self)
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConflictError(f"Application {application.sk} changed since it was read")

        stored = self.items.get((application.user_id, application.sk))
        if (
            stored is None
            or stored.version != application.version
            or stored.status != expected_status
        ):
            raise ConflictError(f"Application {application.sk} changed since it was read")
        updated = replace(application, version=application.version + 1)
        self.items[(updated.user_id, updated.sk)] = updated
        return updated

    async def append_history(self, history: ApplicationHistory) -> ApplicationHistory:
        self.histories.append(history)
        return history

    async def list_histories(self, user_id: str, application_sk: str) -> List[ApplicationHistory]:
        prefix = history_prefix_for(application_sk)
        found = [
            history
            for history in self.histories
            if history.user_id == user_id and history.sk.startswith(prefix)
        ]
        return sorted(found, key=lambda history: history.sk, reverse=True)

    async def set_history_ttl(self, user_id: str, application_sk: str, ttl: int) -> int:
        prefix = history_prefix_for(application_sk)
        updated = 0
        for index, history in enumerate(self.histories):
            if history.user_id == user_id and history.sk.startswith(prefix):
                self.histories[index] = replace(history, ttl=ttl)
                updated += 1
        return updated

    async def find_overdue_notifications(
        self, now: datetime, limit: int = 100
    ) -> List[EAApplication]:
        overdue = [
            application
            for application in self.items.values()
            if application.status == ApplicationStatus.AWAITING_NOTIFICATION
            and application.notification_scheduled_at <= now
        ]
        return overdue[:limit]

    async def find_expired_active(self, now: datetime, limit: int = 100) -> List[EAApplication]:
        expired = [application for application in self.items.values() if application.is_expired(now)]
        return expired[:limit]


class InMemoryProfileRepository(UserProfileRepository):
    """UserProfileRepository keeping profiles in a dict."""

    def __init__(self):
        self.profiles: Dict[str, UserProfile] = {}
        self.conflicts = 0

    def seed(self, profile: UserProfile) -> UserProfile:
        stored = replace(profile, version=profile.version or 1)
        self.profiles[stored.user_id] = stored
        return stored

    async def put(self, profile: UserProfile) -> UserProfile:
        if profile.user_id in self.profiles:
            raise ConflictError(f"Profile for {profile.user_id} already exists")
        stored = replace(profile, version=1)
        self.profiles[profile.user_id] = stored
        return stored

    async def get(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def conditional_update(self, profile: UserProfile) -> UserProfile:
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConflictError(f"Profile for {profile.user_id} changed since it was read")
        stored = self.profiles.get(profile.user_id)
        if stored is None or stored.version != profile.version:
            raise ConflictError(f"Profile for {profile.user_id} changed since it was read")
        updated = replace(profile, version=profile.version + 1)
        self.profiles[profile.user_id] = updated
        return updated

    async def find_by_test_id(self, test_id: str) -> Optional[UserProfile]:
        for profile in self.profiles.values():
            if profile.integration_test and profile.integration_test.test_id == test_id:
                return profile
        return None


class FakeScheduler(NotificationScheduler):
    """Records arm/disarm calls instead of talking to Celery; ``arm`` raises ``error`` when set."""

    def __init__(self):
        self.armed: List[Tuple[str, datetime, str]] = []
        self.disarmed: List[str] = []
        self.error: Optional[Exception] = None
        self._counter = 0

    def new_handle(self) -> str:
        self._counter += 1
        return f"task-{self._counter}"

    def arm(self, application: EAApplication, fire_at: datetime, handle: str) -> None:
        if self.error is not None:
            raise self.error
        self.armed.append((application.sk, fire_at, handle))

    def disarm(self, handle: str) -> None:
        self.disarmed.append(handle)


class FakeNotifier(Notifier):
    """Notifier returning a canned result."""

    def __init__(self, channel: str = "email", result: Optional[NotificationResult] = None):
        self.channel = channel
        self.result = result or NotificationResult(success=True)
        self.sent: List[dict] = []

    def send(self, payload):
        self.sent.append(payload)
        return self.result


class FakeGasClient(GasWebAppClient):
    """GAS WebApp client recording triggers; raises ``error`` when set."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Tuple[str, str, datetime]] = []

    def trigger_test(self, gas_webapp_url: str, test_id: str, timestamp: datetime) -> None:
        self.calls.append((gas_webapp_url, test_id, timestamp))
        if self.error is not None:
            raise self.error


class RecordingEventBus(InMemoryEventBus):
    """Event bus remembering every published event."""

    def __init__(self):
        super().__init__()
        self.published = []

    async def publish(self, event) -> None:
        self.published.append(event)
        await super().publish(event)

    def of_type(self, event_type):
        return [event for event in self.published if type(event) is event_type]


@pytest.fixture
def user_id():
    """Fixture for the calling user's id."""
    return USER_ID


@pytest.fixture
def clock():
    """Fixture for a controllable clock."""
    return MutableClock()


@pytest.fixture
def application_repository():
    """Fixture for an in-memory ApplicationRepository."""
    return InMemoryApplicationRepository()


@pytest.fixture
def profile_repository():
    """Fixture for an in-memory UserProfileRepository."""
    return InMemoryProfileRepository()


@pytest.fixture
def scheduler():
    """Fixture for a recording NotificationScheduler."""
    return FakeScheduler()


@pytest.fixture
def codec():
    """Fixture for a Fernet license codec with a throwaway key."""
    return FernetLicenseCodec(FernetLicenseCodec.generate_key())


@pytest.fixture
def event_bus():
    """Fixture for a recording event bus."""
    return RecordingEventBus()


@pytest.fixture
def gas_client():
    """Fixture for a GAS WebApp client that always succeeds."""
    return FakeGasClient()


@pytest.fixture
def state_machine(application_repository, scheduler, codec, event_bus, clock):
    """Fixture for an ApplicationStateMachine over in-memory collaborators."""
    return ApplicationStateMachine(
        repository=application_repository,
        scheduler=scheduler,
        codec=codec,
        event_bus=event_bus,
        clock=clock,
        retention_months=6,
        notification_delay_seconds=300,
    )


@pytest.fixture
def integration_test_service(profile_repository, gas_client, event_bus, clock):
    """Fixture for an IntegrationTestService over in-memory collaborators."""
    return IntegrationTestService(
        profile_repository=profile_repository,
        gas_client=gas_client,
        event_bus=event_bus,
        clock=clock,
    )


@pytest.fixture
def pending_application(application_repository, clock, user_id):
    """Fixture for a stored Pending application."""
    return application_repository.seed(
        EAApplication.create(
            user_id=user_id,
            ea_name="Scalper Pro",
            account_number="1234567",
            broker="IC Markets",
            email="trader@example.com",
            applied_at=clock(),
        )
    )


@pytest.fixture
def django_application_repository():
    """Fixture for the Django ApplicationRepository."""
    return DjangoApplicationRepository()


@pytest.fixture
def django_profile_repository():
    """Fixture for the Django UserProfileRepository."""
    return DjangoUserProfileRepository()


@pytest.fixture
def fake_celery_scheduler(monkeypatch):
    """Replace Celery arm/disarm with recorders so API tests never reach a broker."""
    from applications.infrastructure.scheduler import CeleryNotificationScheduler

    recorder = FakeScheduler()
    monkeypatch.setattr(
        CeleryNotificationScheduler,
        "arm",
        lambda self, application, fire_at, handle: recorder.arm(application, fire_at, handle),
    )
    monkeypatch.setattr(
        CeleryNotificationScheduler, "disarm", lambda self, handle: recorder.disarm(handle)
    )
    return recorder


@pytest.fixture
def api_client():
    """Fixture for DRF API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def user_client(api_client, user_id):
    """Fixture for an API client that identifies as ``user_id``."""
    api_client.credentials(HTTP_X_USER_ID=user_id)
    return api_client


@pytest.fixture
def email_notifier():
    """Fixture for a succeeding email notifier."""
    return FakeNotifier(channel="email")


@pytest.fixture
def gas_notifiers():
    """Fixture collecting the GAS notifiers built during a test, keyed by URL."""
    return {}


@pytest.fixture
def delivery_handler(
    application_repository, email_notifier, integration_test_service, gas_notifiers, event_bus
):
    """Fixture for DeliverLicenseNotificationHandler with fake channels."""
    from applications.application.handlers.notification_handlers import (
        DeliverLicenseNotificationHandler,
    )

    def gas_notifier_factory(url):
        notifier = FakeNotifier(channel="gas_webapp")
        gas_notifiers[url] = notifier
        return notifier

    return DeliverLicenseNotificationHandler(
        application_repository=application_repository,
        email_notifier=email_notifier,
        integration_test_service=integration_test_service,
        gas_notifier_factory=gas_notifier_factory,
        event_bus=event_bus,
    )
