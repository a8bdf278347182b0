"""Notification routing, delivery and email threading."""

import logging
from dataclasses import dataclass, replace
from typing import Protocol

import httpx

from shootflow.adapters.sendgrid_client import EmailClient
from shootflow.domain.notifications import (
    DeliveryResult,
    NotificationEvent,
    TemplateKind,
)
from shootflow.domain.requests import EquipmentLine, ShootRequest
from shootflow.services.groups import RequestGroupResolver
from shootflow.services.persistence import PersistenceGateway
from shootflow.services.templates import render

logger = logging.getLogger(__name__)

_APPROVAL_TEMPLATES = {TemplateKind.NEW_REQUEST, TemplateKind.NEW_REQUEST_MULTI}
_QUOTE_TEMPLATES = {TemplateKind.QUOTE_SUBMITTED, TemplateKind.QUOTE_SUBMITTED_MULTI}
_REQUESTOR_TEMPLATES = {
    TemplateKind.SENT_TO_VENDOR,
    TemplateKind.QUOTE_APPROVED,
    TemplateKind.QUOTE_REJECTED,
    TemplateKind.INVOICE_REMINDER,
}


class NotificationDelivery(Protocol):
    """Delivers a rendered notification through an external provider."""

    async def send(
        self,
        recipient: str,
        template: TemplateKind,
        payload: dict[str, object],
        thread_id: str | None = None,
    ) -> DeliveryResult:
        """Send a notification and report the provider's message id."""


@dataclass
class EmailNotificationDelivery(NotificationDelivery):
    """Renders templates to HTML email and sends them."""

    client: EmailClient
    subject_prefix: str = "ShootFlow"

    async def send(
        self,
        recipient: str,
        template: TemplateKind,
        payload: dict[str, object],
        thread_id: str | None = None,
    ) -> DeliveryResult:
        """Send an email, replying into ``thread_id`` when given."""
        _, html = render(template, payload)
        # Every message of a conversation shares one subject line.
        subject = f"{self.subject_prefix}: {payload.get('thread_subject')}"
        try:
            message_id = await self.client.send_email(
                to=recipient, subject=subject, html=html, thread_id=thread_id
            )
        except httpx.HTTPError as exc:
            return DeliveryResult(error=f"{type(exc).__name__}: {exc}")
        return DeliveryResult(provider_message_id=message_id)


@dataclass(frozen=True)
class Recipients:
    """Fallback recipients for each workflow role."""

    approver: str
    finance: str
    vendor: str
    admin: str


@dataclass
class NotificationCorrelator:
    """Chooses recipient, template payload and thread for lifecycle events."""

    delivery: NotificationDelivery
    resolver: RequestGroupResolver
    gateway: PersistenceGateway
    recipients: Recipients
    app_url: str | None = None

    def recipient_for(self, template: TemplateKind, request: ShootRequest) -> str:
        """Return the address a template is sent to for a request."""
        if template in _APPROVAL_TEMPLATES:
            return request.approval_email or self.recipients.approver
        if template in _QUOTE_TEMPLATES:
            return (
                request.approval_email
                or request.requestor.email
                or self.recipients.approver
            )
        if template in _REQUESTOR_TEMPLATES:
            return request.requestor.email or self.recipients.admin
        if template == TemplateKind.INVOICE_UPLOADED:
            return self.recipients.finance
        return self.recipients.vendor

    async def notify(self, event: NotificationEvent) -> DeliveryResult:
        """Send one message for an event, keeping the group in one thread."""
        anchor_id = event.anchor.id
        recipient = self.recipient_for(event.template, event.anchor)
        thread_id = self.resolver.thread_id_for(anchor_id)
        payload = self.build_payload(event, recipient)
        try:
            result = await self.delivery.send(
                recipient, event.template, payload, thread_id=thread_id
            )
        except Exception as exc:
            logger.exception(
                "Notification delivery raised",
                extra={"request_id": anchor_id, "template": event.template.value},
            )
            return DeliveryResult(error=f"{type(exc).__name__}: {exc}")
        if not result.ok:
            logger.warning(
                "Notification delivery failed",
                extra={
                    "request_id": anchor_id,
                    "template": event.template.value,
                    "error": result.error,
                },
            )
            return result
        logger.info(
            "Notification sent",
            extra={
                "request_id": anchor_id,
                "template": event.template.value,
                "threaded": thread_id is not None,
            },
        )
        if thread_id is None and result.provider_message_id:
            self._capture_thread(anchor_id, result.provider_message_id)
        return result

    def build_payload(
        self, event: NotificationEvent, recipient: str
    ) -> dict[str, object]:
        """Build the template payload for an event."""
        anchor = event.anchor
        payload: dict[str, object] = {
            "request_id": anchor.id,
            "name": anchor.name,
            "date": anchor.date,
            "location": anchor.location,
            "requestor_name": anchor.requestor.name,
            "recipient_name": _recipient_name(recipient),
            "equipment": [_line_payload(line) for line in anchor.equipment],
            "amount": _event_amount(event),
            "notes": anchor.vendor_quote.notes if anchor.vendor_quote else None,
            "rejection_reason": anchor.rejection_reason,
            "invoice_name": anchor.invoice.name if anchor.invoice else None,
            "thread_subject": self.resolver.thread_subject(anchor.id),
            "group_id": anchor.group_id,
            "app_url": self.app_url,
        }
        if event.batch:
            payload["shoots"] = [_shoot_payload(request) for request in event.batch]
        return payload

    def _capture_thread(self, request_id: str, thread_id: str) -> None:
        group = self.resolver.group_for(request_id)
        if group.thread_id is not None:
            # Another message of this group captured a thread first.
            return
        for member in group.members:
            self.gateway.apply(replace(member, email_thread_id=thread_id))
        logger.info(
            "Captured email thread",
            extra={"request_id": request_id, "group_id": group.group_id},
        )


def _event_amount(event: NotificationEvent) -> float | None:
    if event.amount is not None:
        return event.amount
    anchor = event.anchor
    if anchor.approved_amount is not None:
        return anchor.approved_amount
    if anchor.vendor_quote is not None:
        return anchor.vendor_quote.amount
    return anchor.expected_total()


def _line_payload(line: EquipmentLine) -> dict[str, object]:
    return {
        "name": line.name,
        "quantity": line.quantity,
        "category": line.category,
        "expected_rate": line.expected_rate,
        "vendor_rate": line.vendor_rate,
    }


def _shoot_payload(request: ShootRequest) -> dict[str, object]:
    return {
        "id": request.id,
        "name": request.name,
        "date": request.date,
        "equipment": [_line_payload(line) for line in request.equipment],
        "amount": request.vendor_quote.amount if request.vendor_quote else None,
    }


def _recipient_name(email: str) -> str:
    """Derive a display name like "Jane Doe" from "jane.doe@example.com"."""
    local = email.split("@", maxsplit=1)[0]
    return " ".join(part.capitalize() for part in local.split(".") if part)
