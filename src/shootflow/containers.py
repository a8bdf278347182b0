"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from shootflow.adapters.sendgrid_client import EmailClient, HttpxSendGridClient
from shootflow.adapters.supabase_shoot_repository import SupabaseShootRepository
from shootflow.config import Settings
from shootflow.services.groups import RequestGroupResolver
from shootflow.services.lifecycle import LifecycleService
from shootflow.services.notifications import (
    EmailNotificationDelivery,
    NotificationCorrelator,
    Recipients,
)
from shootflow.services.persistence import PersistenceGateway, ShootRequestRepository
from shootflow.services.store import ShootRequestStore
from shootflow.services.sweeps import SweepScheduler, SweepService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: ShootRequestStore
    gateway: PersistenceGateway
    resolver: RequestGroupResolver
    correlator: NotificationCorrelator
    lifecycle_service: LifecycleService
    sweep_service: SweepService
    sweep_scheduler: SweepScheduler
    close_resources: Callable[[], Awaitable[None]]


def wire_container(
    settings: Settings,
    repository: ShootRequestRepository,
    email_client: EmailClient,
    close_resources: Callable[[], Awaitable[None]],
) -> AppContainer:
    """Assemble the services around the given adapters."""
    store = ShootRequestStore()
    gateway = PersistenceGateway(store=store, repository=repository)
    resolver = RequestGroupResolver(store)
    correlator = NotificationCorrelator(
        delivery=EmailNotificationDelivery(
            client=email_client, subject_prefix=settings.email_subject_prefix
        ),
        resolver=resolver,
        gateway=gateway,
        recipients=Recipients(
            approver=settings.approver_email,
            finance=settings.finance_email,
            vendor=settings.vendor_email,
            admin=settings.admin_email,
        ),
        app_url=settings.app_url,
    )
    lifecycle_service = LifecycleService(
        gateway=gateway,
        resolver=resolver,
        correlator=correlator,
        quote_debounce_seconds=settings.quote_debounce_seconds,
    )
    sweep_service = SweepService(
        lifecycle=lifecycle_service,
        timezone=settings.timezone,
        reminder_after=timedelta(days=settings.invoice_reminder_days),
    )
    sweep_scheduler = SweepScheduler(
        sweeps=sweep_service,
        completion_interval=settings.completion_sweep_seconds,
        reminder_interval=settings.reminder_sweep_seconds,
    )
    return AppContainer(
        settings=settings,
        store=store,
        gateway=gateway,
        resolver=resolver,
        correlator=correlator,
        lifecycle_service=lifecycle_service,
        sweep_service=sweep_service,
        sweep_scheduler=sweep_scheduler,
        close_resources=close_resources,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    email_client = HttpxSendGridClient.create(
        api_key=resolved_settings.sendgrid_api_key,
        sender=resolved_settings.email_from,
        base_url=resolved_settings.sendgrid_base_url,
    )

    async def close_resources() -> None:
        await email_client.close()

    return wire_container(
        settings=resolved_settings,
        repository=SupabaseShootRepository(supabase_client),
        email_client=email_client,
        close_resources=close_resources,
    )
