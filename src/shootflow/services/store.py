"""In-memory collection of shoot requests."""

from shootflow.domain.errors import ShootRequestNotFoundError
from shootflow.domain.requests import ShootRequest, ShootStatus


class ShootRequestStore:
    """Single owner of the in-memory request collection.

    Keeps a group index keyed by group id; a request's group id is fixed at
    creation and may not change afterwards.
    """

    def __init__(self) -> None:
        self._requests: dict[str, ShootRequest] = {}
        self._groups: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._requests

    def get(self, request_id: str) -> ShootRequest | None:
        """Return a request by id, if present."""
        return self._requests.get(request_id)

    def require(self, request_id: str) -> ShootRequest:
        """Return a request by id or raise ShootRequestNotFoundError."""
        request = self._requests.get(request_id)
        if request is None:
            raise ShootRequestNotFoundError(request_id)
        return request

    def put(self, request: ShootRequest) -> None:
        """Insert or replace a request, keeping the group index consistent."""
        current = self._requests.get(request.id)
        if current is not None and current.group_id != request.group_id:
            raise ValueError(f"Group of request {request.id} cannot change")
        self._requests[request.id] = request
        if current is None and request.group_id is not None:
            self._groups.setdefault(request.group_id, []).append(request.id)

    def replace_all(self, requests: list[ShootRequest]) -> None:
        """Reset the collection to the given requests."""
        self._requests = {}
        self._groups = {}
        for request in requests:
            self.put(request)

    def all(self) -> list[ShootRequest]:
        """Return every request in insertion order."""
        return list(self._requests.values())

    def with_status(self, status: ShootStatus) -> list[ShootRequest]:
        """Return requests currently in the given status."""
        return [
            request for request in self._requests.values() if request.status == status
        ]

    def group_member_ids(self, group_id: str) -> list[str]:
        """Return ids of every request sharing a group id."""
        return list(self._groups.get(group_id, []))
