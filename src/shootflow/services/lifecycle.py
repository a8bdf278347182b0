"""Lifecycle state machine for shoot requests."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

from shootflow.domain.errors import TransitionError
from shootflow.domain.notifications import (
    DeliveryResult,
    NotificationEvent,
    TemplateKind,
)
from shootflow.domain.requests import (
    Activity,
    EquipmentLine,
    InvoiceRecord,
    ShootRequest,
    ShootStatus,
    VendorQuote,
)
from shootflow.services.aggregator import QuoteSubmission, QuoteSubmissionAggregator
from shootflow.services.groups import RequestGroup, RequestGroupResolver
from shootflow.services.notifications import NotificationCorrelator
from shootflow.services.persistence import PersistenceGateway, SaveOutcome
from shootflow.services.templates import format_amount

logger = logging.getLogger(__name__)

SHOOT_COMPLETED = "Shoot Completed"
REMINDER_SENT = "Invoice Reminder Sent"

_SEND_TO_VENDOR_FROM = {ShootStatus.NEW_REQUEST, ShootStatus.WITH_VENDOR}
_VENDOR_SUBMIT_FROM = {ShootStatus.WITH_VENDOR, ShootStatus.WITH_SWATI}


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class LifecycleOutcome:
    """Result of a lifecycle operation over one request or a whole group."""

    outcomes: list[SaveOutcome]
    notification: DeliveryResult | None = None

    @property
    def request(self) -> ShootRequest:
        return self.outcomes[0].request

    @property
    def requests(self) -> list[ShootRequest]:
        return [outcome.request for outcome in self.outcomes]

    @property
    def consistent(self) -> bool:
        """Return true when every affected request was durably written."""
        return all(outcome.persisted for outcome in self.outcomes)

    @property
    def warnings(self) -> list[str]:
        messages = [outcome.warning for outcome in self.outcomes if outcome.warning]
        if self.notification is not None and not self.notification.ok:
            messages.append(f"Notification not delivered: {self.notification.error}")
        return messages


@dataclass
class LifecycleService:
    """Validates and applies status transitions.

    Every status change appends exactly one Activity. Changes are applied to
    the in-memory store before the durable write is attempted, and
    notifications are sent last; neither a failed write nor a failed
    delivery undoes a transition.
    """

    gateway: PersistenceGateway
    resolver: RequestGroupResolver
    correlator: NotificationCorrelator
    quote_debounce_seconds: float = 0.5
    clock: Callable[[], datetime] = _utcnow
    aggregator: QuoteSubmissionAggregator = field(init=False)

    def __post_init__(self) -> None:
        self.aggregator = QuoteSubmissionAggregator(
            on_flush=self._announce_quotes,
            delay_seconds=self.quote_debounce_seconds,
        )

    def list_requests(self) -> list[ShootRequest]:
        """Return the full request collection."""
        return self.gateway.store.all()

    def get_request(self, request_id: str) -> ShootRequest:
        """Return a request or raise ShootRequestNotFoundError."""
        return self.gateway.store.require(request_id)

    def get_group(self, request_id: str) -> RequestGroup:
        """Return the group a request belongs to."""
        return self.resolver.group_for(request_id)

    async def register_requests(
        self, requests: list[ShootRequest]
    ) -> LifecycleOutcome:
        """Accept newly created requests from intake and announce them."""
        _validate_new_requests(requests, self.gateway.store.all())
        outcomes = []
        for request in requests:
            record = request
            if not record.activities:
                created = self._activity(
                    "Request Created",
                    f"New equipment request created by {record.requestor.name}",
                    notification_triggered=True,
                )
                record = replace(record, activities=[created])
            outcomes.append(self.gateway.apply(record))
        stored = [outcome.request for outcome in outcomes]
        if len(stored) == 1:
            event = NotificationEvent(TemplateKind.NEW_REQUEST, stored[0])
        else:
            event = NotificationEvent(
                TemplateKind.NEW_REQUEST_MULTI,
                stored[0],
                batch=tuple(stored),
                amount=sum(request.expected_total() for request in stored),
            )
        notification = await self.correlator.notify(event)
        return LifecycleOutcome(outcomes, notification)

    async def send_to_vendor(self, request_id: str) -> LifecycleOutcome:
        """Hand a request to the vendor for quotation."""
        request = self.get_request(request_id)
        _require_status(request, "send to vendor", _SEND_TO_VENDOR_FROM)
        updated = self._transition(
            request,
            ShootStatus.WITH_VENDOR,
            "Sent to Vendor",
            "Equipment request sent to the vendor for quotation",
        )
        outcome = self.gateway.apply(updated)
        notification = await self.correlator.notify(
            NotificationEvent(TemplateKind.SENT_TO_VENDOR, updated)
        )
        return LifecycleOutcome([outcome], notification)

    async def vendor_submit(
        self,
        request_id: str,
        amount: float,
        notes: str = "",
        itemized: dict[str, float] | None = None,
    ) -> LifecycleOutcome:
        """Record a vendor quote and queue the batched approval notice."""
        request = self.get_request(request_id)
        _require_status(request, "submit a quote for", _VENDOR_SUBMIT_FROM)
        equipment = request.equipment
        if itemized:
            equipment = [
                replace(line, vendor_rate=itemized[line.id])
                if line.id in itemized
                else line
                for line in request.equipment
            ]
        updated = self._transition(
            request,
            ShootStatus.WITH_SWATI,
            "Quote Submitted",
            f"Vendor submitted quote: {format_amount(amount)}",
            equipment=equipment,
            vendor_quote=VendorQuote(amount=amount, notes=notes),
            rejection_reason=None,
        )
        outcome = self.gateway.apply(updated)
        self.aggregator.add(
            QuoteSubmission(request_id=request_id, request=updated, amount=amount)
        )
        return LifecycleOutcome([outcome])

    async def approve(self, request_id: str) -> LifecycleOutcome:
        """Approve the quotes of every active member of the request's group."""
        members = self._active_group_members(request_id, "approve")
        for member in members:
            _require_status(member, "approve", {ShootStatus.WITH_SWATI})
            if member.vendor_quote is None:
                raise TransitionError(
                    member.id, "approve", member.status, "no vendor quote present"
                )
        outcomes = []
        for member in members:
            amount = member.vendor_quote.amount if member.vendor_quote else 0.0
            updated = self._transition(
                member,
                ShootStatus.READY_FOR_SHOOT,
                "Quote Approved",
                f"Approved. Amount: {format_amount(amount)}",
                approved=True,
                approved_amount=amount,
            )
            outcomes.append(self.gateway.apply(updated))
        return await self._finish_group_operation(
            TemplateKind.QUOTE_APPROVED, outcomes, "approve"
        )

    async def reject(self, request_id: str, reason: str) -> LifecycleOutcome:
        """Send every active member of the group back to the vendor."""
        members = self._active_group_members(request_id, "reject")
        reason = reason.strip()
        for member in members:
            _require_status(member, "reject", {ShootStatus.WITH_SWATI})
            if not reason:
                raise TransitionError(
                    member.id, "reject", member.status, "a reason is required"
                )
        outcomes = []
        for member in members:
            updated = self._transition(
                member,
                ShootStatus.WITH_VENDOR,
                "Quote Rejected",
                f"Reason: {reason}. Sent back to vendor for revision.",
                rejection_reason=reason,
                vendor_quote=None,
                approved=False,
            )
            outcomes.append(self.gateway.apply(updated))
        return await self._finish_group_operation(
            TemplateKind.QUOTE_REJECTED, outcomes, "reject"
        )

    async def upload_invoice(
        self, request_id: str, name: str, raw_document: str | None = None
    ) -> LifecycleOutcome:
        """Attach the vendor invoice and tell finance."""
        request = self.get_request(request_id)
        _require_active(request, "upload an invoice for")
        updated = self._append(
            request,
            self._activity(
                "Invoice Uploaded", f"File: {name}", notification_triggered=True
            ),
            invoice=InvoiceRecord(name=name, raw_document=raw_document),
        )
        outcome = self.gateway.apply(updated)
        notification = await self.correlator.notify(
            NotificationEvent(TemplateKind.INVOICE_UPLOADED, updated)
        )
        return LifecycleOutcome([outcome], notification)

    async def mark_paid(self, request_id: str) -> LifecycleOutcome:
        """Close a request once its invoice has been paid."""
        request = self.get_request(request_id)
        _require_active(request, "mark paid")
        if request.invoice is None:
            raise TransitionError(
                request.id, "mark paid", request.status, "no invoice uploaded"
            )
        updated = self._transition(
            request,
            ShootStatus.COMPLETED,
            "Payment Completed",
            "Invoice verified and payment processed",
            paid=True,
        )
        outcome = self.gateway.apply(updated)
        notification = await self.correlator.notify(
            NotificationEvent(TemplateKind.PAYMENT_COMPLETE, updated)
        )
        return LifecycleOutcome([outcome], notification)

    def cancel(self, request_id: str, reason: str) -> LifecycleOutcome:
        """Cancel a request from any non-terminal state."""
        request = self.get_request(request_id)
        _require_active(request, "cancel")
        reason = reason.strip() or "No reason provided"
        updated = self._transition(
            request,
            ShootStatus.CANCELLED,
            "Request Cancelled",
            f"Reason: {reason}",
            notification_triggered=False,
            cancellation_reason=reason,
            rejection_reason=None,
        )
        return LifecycleOutcome([self.gateway.apply(updated)])

    def auto_complete(self, request_id: str) -> LifecycleOutcome:
        """Move a shoot whose dates have passed to pending invoice."""
        request = self.get_request(request_id)
        _require_status(request, "complete", {ShootStatus.READY_FOR_SHOOT})
        updated = self._transition(
            request,
            ShootStatus.PENDING_INVOICE,
            SHOOT_COMPLETED,
            "Shoot date has passed. Moved to Pending Invoice.",
            notification_triggered=False,
        )
        return LifecycleOutcome([self.gateway.apply(updated)])

    async def send_invoice_reminder(self, request_id: str) -> LifecycleOutcome:
        """Mark the reminder as sent, then nag the requestor for the invoice."""
        request = self.get_request(request_id)
        _require_status(request, "remind about", {ShootStatus.PENDING_INVOICE})
        updated = self._append(
            request,
            self._activity(
                REMINDER_SENT,
                "Automated reminder sent - shoot completed without invoice",
                notification_triggered=True,
            ),
        )
        outcome = self.gateway.apply(updated)
        notification = await self.correlator.notify(
            NotificationEvent(TemplateKind.INVOICE_REMINDER, updated)
        )
        return LifecycleOutcome([outcome], notification)

    def correct_pricing(
        self,
        request_id: str,
        equipment: list[EquipmentLine],
        amount: float | None = None,
        editor: str = "Admin",
    ) -> LifecycleOutcome:
        """Apply an explicit admin correction to equipment and quoted amount.

        When ``amount`` is given the vendor quote changes with it, and so does
        the approved amount if the request has already been approved.
        """
        request = self.get_request(request_id)
        _require_active(request, "correct pricing for")
        changes: dict[str, object] = {"equipment": list(equipment)}
        description = f"Equipment list modified by {editor}."
        if amount is not None:
            notes = request.vendor_quote.notes if request.vendor_quote else ""
            changes["vendor_quote"] = VendorQuote(amount=amount, notes=notes)
            if request.approved:
                changes["approved_amount"] = amount
            description = f"{description} New amount: {format_amount(amount)}"
        updated = self._append(
            request, self._activity("Equipment Updated", description), **changes
        )
        return LifecycleOutcome([self.gateway.apply(updated)])

    async def aclose(self) -> None:
        """Flush any pending quote notifications."""
        await self.aggregator.aclose()

    async def _announce_quotes(self, batch: list[QuoteSubmission]) -> None:
        first = batch[0]
        if len(batch) == 1:
            event = NotificationEvent(
                TemplateKind.QUOTE_SUBMITTED, first.request, amount=first.amount
            )
        else:
            event = NotificationEvent(
                TemplateKind.QUOTE_SUBMITTED_MULTI,
                first.request,
                batch=tuple(item.request for item in batch),
                amount=sum(item.amount for item in batch),
            )
        await self.correlator.notify(event)

    async def _finish_group_operation(
        self, template: TemplateKind, outcomes: list[SaveOutcome], transition: str
    ) -> LifecycleOutcome:
        updated = [outcome.request for outcome in outcomes]
        if not all(outcome.persisted for outcome in outcomes):
            logger.warning(
                "Group %s left members unsynced",
                transition,
                extra={
                    "request_ids": [
                        outcome.request.id
                        for outcome in outcomes
                        if not outcome.persisted
                    ]
                },
            )
        if len(updated) == 1:
            event = NotificationEvent(template, updated[0])
        else:
            event = NotificationEvent(
                template,
                updated[0],
                batch=tuple(updated),
                amount=sum(
                    request.approved_amount or 0.0 for request in updated
                )
                or None,
            )
        notification = await self.correlator.notify(event)
        return LifecycleOutcome(outcomes, notification)

    def _active_group_members(
        self, request_id: str, transition: str
    ) -> list[ShootRequest]:
        group = self.resolver.group_for(request_id)
        members = group.active_members()
        if not members:
            request = self.get_request(request_id)
            raise TransitionError(
                request_id, transition, request.status, "request is closed"
            )
        return members

    def _transition(  # noqa: PLR0913
        self,
        request: ShootRequest,
        status: ShootStatus,
        action: str,
        description: str,
        notification_triggered: bool = True,
        **changes: object,
    ) -> ShootRequest:
        activity = self._activity(action, description, notification_triggered)
        return self._append(request, activity, status=status, **changes)

    def _append(
        self, request: ShootRequest, activity: Activity, **changes: object
    ) -> ShootRequest:
        return replace(request, activities=[*request.activities, activity], **changes)

    def _activity(
        self, action: str, description: str, notification_triggered: bool = False
    ) -> Activity:
        return Activity(
            id=uuid4().hex,
            action=action,
            description=description,
            timestamp=self.clock(),
            notification_triggered=notification_triggered,
        )


def _require_status(
    request: ShootRequest, transition: str, allowed: Iterable[ShootStatus]
) -> None:
    allowed = set(allowed)
    if request.status not in allowed:
        expected = ", ".join(sorted(status.value for status in allowed))
        raise TransitionError(
            request.id, transition, request.status, f"expected one of: {expected}"
        )


def _require_active(request: ShootRequest, transition: str) -> None:
    if request.status.is_terminal:
        raise TransitionError(
            request.id, transition, request.status, "request is closed"
        )


def _validate_new_requests(
    requests: list[ShootRequest], existing: list[ShootRequest]
) -> None:
    if not requests:
        raise ValueError("At least one request is required")
    known_ids = {request.id for request in existing}
    for request in requests:
        if request.id in known_ids:
            raise ValueError(f"Request {request.id} already exists")
        if request.status != ShootStatus.NEW_REQUEST:
            raise TransitionError(
                request.id,
                "register",
                request.status,
                f"expected {ShootStatus.NEW_REQUEST.value}",
            )
    if len(requests) > 1:
        group_ids = {request.group_id for request in requests}
        if len(group_ids) != 1 or None in group_ids:
            raise ValueError("Multiple requests must share one group id")
