"""Debounced batching of vendor quote submissions."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from shootflow.domain.requests import ShootRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteSubmission:
    """A vendor submission waiting to be announced."""

    request_id: str
    request: ShootRequest
    amount: float


FlushHandler = Callable[[list[QuoteSubmission]], Awaitable[None]]


@dataclass
class QuoteSubmissionAggregator:
    """Collects near-simultaneous submissions and flushes them as one batch.

    Every ``add`` restarts a single delay timer. When the timer elapses
    without another arrival, the pending submissions are handed to
    ``on_flush`` in arrival order. Submissions arriving after a flush has
    begun start a new batch.
    """

    on_flush: FlushHandler
    delay_seconds: float = 0.5
    _pending: list[QuoteSubmission] = field(default_factory=list)
    _timer: asyncio.Task[None] | None = None
    _flushes: set[asyncio.Task[None]] = field(default_factory=set)

    @property
    def pending(self) -> list[QuoteSubmission]:
        return list(self._pending)

    def add(self, submission: QuoteSubmission) -> None:
        """Queue a submission and restart the debounce timer."""
        self._pending.append(submission)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_and_flush())

    async def flush_now(self) -> None:
        """Cancel the timer and flush whatever is pending immediately."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        await self._flush()

    async def aclose(self) -> None:
        """Flush the final batch and wait for in-flight flushes."""
        await self.flush_now()
        if self._flushes:
            await asyncio.gather(*self._flushes, return_exceptions=True)

    async def _wait_and_flush(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        # Past this point the batch is settled; later arrivals re-arm a new timer.
        self._timer = None
        task = asyncio.current_task()
        if task is not None:
            self._flushes.add(task)
        try:
            await self._flush()
        finally:
            if task is not None:
                self._flushes.discard(task)

    async def _flush(self) -> None:
        batch, self._pending = self._pending, []
        if not batch:
            return
        logger.info("Flushing quote submissions", extra={"count": len(batch)})
        try:
            await self.on_flush(batch)
        except Exception:
            logger.exception(
                "Quote submission flush failed",
                extra={"request_ids": [item.request_id for item in batch]},
            )
