"""Domain models for shoot requests."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ShootStatus(str, Enum):
    """Workflow states of a shoot request."""

    NEW_REQUEST = "new_request"
    WITH_VENDOR = "with_vendor"
    WITH_SWATI = "with_swati"
    READY_FOR_SHOOT = "ready_for_shoot"
    PENDING_INVOICE = "pending_invoice"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return true when no transition may leave this state."""
        return self in {ShootStatus.COMPLETED, ShootStatus.CANCELLED}


@dataclass(frozen=True)
class EquipmentLine:
    """A single rented item with catalog and vendor pricing."""

    id: str
    name: str
    quantity: int = 1
    category: str | None = None
    expected_rate: float = 0.0
    vendor_rate: float | None = None

    @property
    def expected_total(self) -> float:
        return self.quantity * self.expected_rate

    @property
    def vendor_total(self) -> float:
        rate = self.vendor_rate if self.vendor_rate is not None else self.expected_rate
        return self.quantity * rate


@dataclass(frozen=True)
class VendorQuote:
    """Quote submitted by the vendor."""

    amount: float
    notes: str = ""


@dataclass(frozen=True)
class InvoiceRecord:
    """Uploaded vendor invoice."""

    name: str
    raw_document: str | None = None


@dataclass(frozen=True)
class Requestor:
    """Person who raised the request."""

    name: str
    email: str | None = None


@dataclass(frozen=True)
class Activity:
    """Entry in a request's append-only activity log."""

    id: str
    action: str
    description: str
    timestamp: datetime
    notification_triggered: bool = False


@dataclass(frozen=True)
class ShootRequest:
    """Equipment rental request tracked through the approval workflow."""

    id: str
    name: str
    date: str
    status: ShootStatus
    requestor: Requestor
    equipment: list[EquipmentLine] = field(default_factory=list)
    duration: str | None = None
    location: str | None = None
    vendor_quote: VendorQuote | None = None
    approved: bool = False
    approved_amount: float | None = None
    approval_email: str | None = None
    rejection_reason: str | None = None
    cancellation_reason: str | None = None
    invoice: InvoiceRecord | None = None
    paid: bool = False
    activities: list[Activity] = field(default_factory=list)
    email_thread_id: str | None = None
    group_id: str | None = None
    group_index: int | None = None
    group_size: int | None = None
    created_at: datetime | None = None
    shoot_date: datetime | None = None

    @property
    def is_grouped(self) -> bool:
        return self.group_id is not None

    def expected_total(self) -> float:
        """Return the catalog estimate for all equipment lines."""
        return sum(line.expected_total for line in self.equipment)

    def vendor_total(self) -> float:
        """Return the vendor-rate total for all equipment lines."""
        return sum(line.vendor_total for line in self.equipment)

    def has_activity(self, action: str) -> bool:
        return any(action in activity.action for activity in self.activities)
