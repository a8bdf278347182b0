"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from shootflow.adapters.sendgrid_client import EmailClient
from shootflow.config import Settings
from shootflow.containers import AppContainer, wire_container
from shootflow.domain.requests import (
    Activity,
    EquipmentLine,
    Requestor,
    ShootRequest,
    ShootStatus,
)
from shootflow.services.persistence import ShootRequestRepository

# 11:30 on Oct 20 in Asia/Kolkata.
FIXED_NOW = datetime(2025, 10, 20, 6, 0, tzinfo=UTC)


@dataclass
class InMemoryShootRequestRepository(ShootRequestRepository):
    """In-memory shoot repository for tests."""

    rows: dict[str, ShootRequest] = field(default_factory=dict)
    failing_ids: set[str] = field(default_factory=set)
    fail_all: bool = False
    saves: list[str] = field(default_factory=list)

    def load_all(self) -> list[ShootRequest]:
        return list(self.rows.values())

    def save(self, request: ShootRequest) -> ShootRequest:
        if self.fail_all or request.id in self.failing_ids:
            raise RuntimeError("database unavailable")
        self.rows[request.id] = request
        self.saves.append(request.id)
        return request


@dataclass
class FakeEmailClient(EmailClient):
    """Fake email client that records messages."""

    sent: list[dict[str, str | None]] = field(default_factory=list)
    fail: bool = False
    _counter: int = 0

    async def send_email(
        self, to: str, subject: str, html: str, thread_id: str | None = None
    ) -> str:
        if self.fail:
            raise httpx.ConnectError("mail server unreachable")
        self._counter += 1
        self.sent.append(
            {"to": to, "subject": subject, "html": html, "thread_id": thread_id}
        )
        return thread_id or f"msg-{self._counter}@shootflow.test"


@dataclass
class FakeClock:
    """Settable clock shared by the lifecycle and sweep services."""

    now: datetime = FIXED_NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_request(request_id: str = "r1", **overrides: object) -> ShootRequest:
    """Build a new request with sensible defaults."""
    request = ShootRequest(
        id=request_id,
        name=f"Shoot {request_id}",
        date="Oct 12-13",
        status=ShootStatus.NEW_REQUEST,
        requestor=Requestor(name="Priya Shah", email="priya@studio.test"),
        equipment=[
            EquipmentLine(
                id=f"{request_id}-cam",
                name="FX3 Camera",
                quantity=2,
                category="Camera",
                expected_rate=2000,
            ),
            EquipmentLine(
                id=f"{request_id}-light",
                name="Aputure 600d",
                quantity=1,
                category="Lighting",
                expected_rate=1500,
            ),
        ],
        location="Mumbai",
        created_at=FIXED_NOW,
    )
    return replace(request, **overrides)


def make_activity(
    action: str, timestamp: datetime, activity_id: str = "a1"
) -> Activity:
    return Activity(
        id=activity_id, action=action, description=action, timestamp=timestamp
    )


def make_group(
    group_id: str = "g1", size: int = 2, **overrides: object
) -> list[ShootRequest]:
    """Build the members of a multi-shoot group, first member first."""
    return [
        make_request(
            f"{group_id}-{index}",
            group_id=group_id,
            group_index=index,
            group_size=size,
            **overrides,
        )
        for index in range(1, size + 1)
    ]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        sendgrid_api_key="sendgrid-key",
        email_from="shootflow@studio.test",
        approver_email="approver@studio.test",
        finance_email="finance@studio.test",
        vendor_email="vendor@rentals.test",
        admin_email="admin@studio.test",
        quote_debounce_seconds=0.01,
        sweeps_enabled=False,
    )


@pytest.fixture
def repository() -> InMemoryShootRequestRepository:
    return InMemoryShootRequestRepository()


@pytest.fixture
def email_client() -> FakeEmailClient:
    return FakeEmailClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def container(
    settings: Settings,
    repository: InMemoryShootRequestRepository,
    email_client: FakeEmailClient,
    clock: FakeClock,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    app_container = wire_container(
        settings=settings,
        repository=repository,
        email_client=email_client,
        close_resources=close_resources,
    )
    app_container.lifecycle_service.clock = clock
    app_container.sweep_service.clock = clock
    return app_container


def seed(container: AppContainer, *requests: ShootRequest) -> None:
    """Place requests directly into the store and the repository."""
    for request in requests:
        container.gateway.apply(request)
