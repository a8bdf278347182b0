"""Time-driven completion and invoice-reminder sweeps."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from shootflow.domain.dates import parse_end_date
from shootflow.domain.errors import TransitionError
from shootflow.domain.requests import Activity, ShootRequest, ShootStatus
from shootflow.services.lifecycle import (
    REMINDER_SENT,
    SHOOT_COMPLETED,
    LifecycleService,
)

logger = logging.getLogger(__name__)

# Older records mark completion with an action mentioning the new status.
_LEGACY_COMPLETION_MARKER = "Pending Invoice"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SweepService:
    """Scans the whole collection and fires time-based transitions."""

    lifecycle: LifecycleService
    timezone: str = "Asia/Kolkata"
    reminder_after: timedelta = timedelta(days=7)
    clock: Callable[[], datetime] = _utcnow

    def today(self) -> date:
        """Return the current calendar date in the configured timezone."""
        return self.clock().astimezone(ZoneInfo(self.timezone)).date()

    async def run_completion_sweep(self) -> list[str]:
        """Move ready shoots whose last day has passed to pending invoice."""
        today = self.today()
        completed = []
        for request in self._with_status(ShootStatus.READY_FOR_SHOOT):
            end_date = self._end_date(request, today)
            if end_date is None:
                logger.warning(
                    "Skipping request with unparseable shoot date",
                    extra={"request_id": request.id, "date": request.date},
                )
                continue
            if end_date >= today:
                continue
            try:
                self.lifecycle.auto_complete(request.id)
            except TransitionError:
                logger.warning(
                    "Request changed during completion sweep",
                    extra={"request_id": request.id},
                )
                continue
            completed.append(request.id)
        if completed:
            logger.info("Completion sweep finished", extra={"count": len(completed)})
        return completed

    async def run_reminder_sweep(self) -> list[str]:
        """Send one invoice reminder per shoot left without an invoice."""
        now = self.clock()
        reminded = []
        for request in self._with_status(ShootStatus.PENDING_INVOICE):
            # Re-read: an earlier reminder in this run may have awaited.
            current = self.lifecycle.gateway.store.get(request.id)
            if current is None or not _reminder_due(current, now, self.reminder_after):
                continue
            try:
                outcome = await self.lifecycle.send_invoice_reminder(current.id)
            except TransitionError:
                continue
            if outcome.notification is not None and not outcome.notification.ok:
                logger.warning(
                    "Invoice reminder marked but not delivered",
                    extra={"request_id": current.id},
                )
            reminded.append(current.id)
        if reminded:
            logger.info("Reminder sweep finished", extra={"count": len(reminded)})
        return reminded

    def _with_status(self, status: ShootStatus) -> list[ShootRequest]:
        return self.lifecycle.gateway.store.with_status(status)

    def _end_date(self, request: ShootRequest, today: date) -> date | None:
        end_date = parse_end_date(request.date, today)
        if end_date is None and request.shoot_date is not None:
            end_date = request.shoot_date.astimezone(ZoneInfo(self.timezone)).date()
        return end_date


def completion_activity(request: ShootRequest) -> Activity | None:
    """Return the most recent activity marking the shoot as finished."""
    for activity in reversed(request.activities):
        if (
            activity.action == SHOOT_COMPLETED
            or _LEGACY_COMPLETION_MARKER in activity.action
        ):
            return activity
    return None


def _reminder_due(request: ShootRequest, now: datetime, after: timedelta) -> bool:
    if request.status != ShootStatus.PENDING_INVOICE or request.invoice is not None:
        return False
    if request.has_activity(REMINDER_SENT):
        return False
    completed = completion_activity(request)
    if completed is None:
        return False
    return now - completed.timestamp >= after


SweepRunner = Callable[[], Awaitable[list[str]]]


@dataclass
class SweepScheduler:
    """Runs both sweeps on independent intervals inside the event loop."""

    sweeps: SweepService
    completion_interval: float = 60
    reminder_interval: float = 3600
    _tasks: list[asyncio.Task[None]] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Start the sweep loops; a second call is a no-op."""
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(
                self._run_every(
                    "completion",
                    self.completion_interval,
                    self.sweeps.run_completion_sweep,
                )
            ),
            loop.create_task(
                self._run_every(
                    "reminder", self.reminder_interval, self.sweeps.run_reminder_sweep
                )
            ),
        ]
        logger.info("Sweep scheduler started")

    async def stop(self) -> None:
        """Cancel the sweep loops and wait for them to exit."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_every(self, name: str, interval: float, sweep: SweepRunner) -> None:
        while True:
            try:
                await sweep()
            except Exception:
                logger.exception("Sweep run failed", extra={"sweep": name})
            await asyncio.sleep(interval)
