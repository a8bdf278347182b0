"""Domain models for outbound notifications."""

from dataclasses import dataclass
from enum import Enum

from shootflow.domain.requests import ShootRequest


class TemplateKind(str, Enum):
    """Notification templates, one per lifecycle event."""

    NEW_REQUEST = "new_request"
    NEW_REQUEST_MULTI = "new_request_multi"
    SENT_TO_VENDOR = "sent_to_vendor"
    QUOTE_SUBMITTED = "quote_submitted"
    QUOTE_SUBMITTED_MULTI = "quote_submitted_multi"
    QUOTE_APPROVED = "quote_approved"
    QUOTE_REJECTED = "quote_rejected"
    INVOICE_REMINDER = "invoice_reminder"
    INVOICE_UPLOADED = "invoice_uploaded"
    PAYMENT_COMPLETE = "payment_complete"


@dataclass(frozen=True)
class NotificationEvent:
    """A lifecycle event that should produce one outbound message.

    ``anchor`` is the request the event is raised for; it decides the
    recipient and the conversation thread. ``batch`` holds every request the
    message summarises and is empty for single-request events.
    """

    template: TemplateKind
    anchor: ShootRequest
    batch: tuple[ShootRequest, ...] = ()
    amount: float | None = None


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a delivery attempt."""

    provider_message_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.provider_message_id is not None
