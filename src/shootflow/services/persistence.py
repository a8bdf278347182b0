"""Local-first persistence of shoot requests."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from shootflow.domain.requests import ShootRequest
from shootflow.services.store import ShootRequestStore

logger = logging.getLogger(__name__)


class ShootRequestRepository(Protocol):
    """Durable storage for shoot requests."""

    def load_all(self) -> list[ShootRequest]:
        """Return every stored request."""

    def save(self, request: ShootRequest) -> ShootRequest:
        """Insert or update a request and return the stored copy."""


@dataclass(frozen=True)
class SaveOutcome:
    """Result of applying a change: always applied locally, maybe persisted."""

    request: ShootRequest
    persisted: bool
    error: str | None = None

    @property
    def warning(self) -> str | None:
        if self.persisted:
            return None
        return (
            f"Request {self.request.id} saved locally but not persisted: "
            f"{self.error}"
        )


@dataclass
class PersistenceGateway:
    """Applies changes to the store first, then syncs them to the repository."""

    store: ShootRequestStore
    repository: ShootRequestRepository
    _unsynced: set[str] = field(default_factory=set)

    @property
    def unsynced_ids(self) -> set[str]:
        return set(self._unsynced)

    def load(self) -> int:
        """Replace the in-memory collection with the repository's contents."""
        requests = self.repository.load_all()
        self.store.replace_all(requests)
        self._unsynced.clear()
        logger.info("Loaded shoot requests", extra={"count": len(requests)})
        return len(requests)

    def apply(self, request: ShootRequest) -> SaveOutcome:
        """Store a change in memory and attempt the durable write."""
        self.store.put(request)
        return self._sync(request)

    def retry_unsynced(self) -> list[SaveOutcome]:
        """Retry durable writes for every request whose last write failed."""
        outcomes = []
        for request_id in sorted(self._unsynced):
            request = self.store.get(request_id)
            if request is None:
                self._unsynced.discard(request_id)
                continue
            outcomes.append(self._sync(request))
        return outcomes

    def _sync(self, request: ShootRequest) -> SaveOutcome:
        try:
            self.repository.save(request)
        except Exception as exc:
            logger.exception(
                "Failed to persist shoot request", extra={"request_id": request.id}
            )
            self._unsynced.add(request.id)
            return SaveOutcome(request=request, persisted=False, error=str(exc))
        self._unsynced.discard(request.id)
        return SaveOutcome(request=request, persisted=True)
