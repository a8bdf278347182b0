"""Errors raised by the request lifecycle."""

from shootflow.domain.requests import ShootStatus


class ShootRequestNotFoundError(LookupError):
    """Raised when an operation references an unknown request id."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Shoot request not found: {request_id}")
        self.request_id = request_id


class TransitionError(ValueError):
    """Raised when a transition is invoked from a state that forbids it."""

    def __init__(
        self, request_id: str, transition: str, status: ShootStatus, detail: str
    ) -> None:
        super().__init__(
            f"Cannot {transition} request {request_id} in status "
            f"{status.value}: {detail}"
        )
        self.request_id = request_id
        self.transition = transition
        self.status = status
