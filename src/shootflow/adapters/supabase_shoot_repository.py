"""Supabase-backed shoot request repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from shootflow.domain.requests import (
    Activity,
    EquipmentLine,
    InvoiceRecord,
    Requestor,
    ShootRequest,
    ShootStatus,
    VendorQuote,
)
from shootflow.services.persistence import ShootRequestRepository

_COLUMNS = (
    "id, name, date, duration, location, equipment, status, requestor, "
    "vendor_quote, approved, approved_amount, invoice_file, paid, "
    "rejection_reason, approval_email, cancellation_reason, activities, "
    "email_thread_id, created_at, shoot_date, request_group_id, is_multi_shoot, "
    "multi_shoot_index, total_shoots_in_request"
)


@dataclass
class SupabaseShootRepository(ShootRequestRepository):
    """Supabase implementation for the shoots table."""

    client: Client

    def load_all(self) -> list[ShootRequest]:
        """Return every shoot, oldest first."""
        response = (
            self.client.table("shoots")
            .select(_COLUMNS)
            .order("created_at", desc=False)
            .execute()
        )
        return [_from_row(row) for row in response.data or []]

    def save(self, request: ShootRequest) -> ShootRequest:
        """Upsert a shoot row keyed by id."""
        response = (
            self.client.table("shoots")
            .upsert(_to_row(request), on_conflict="id")
            .execute()
        )
        if not response.data:
            raise RuntimeError(f"Failed to save shoot {request.id}")
        return _from_row(response.data[0])


def _to_row(request: ShootRequest) -> dict[str, object]:
    return {
        "id": request.id,
        "name": request.name,
        "date": request.date,
        "duration": request.duration,
        "location": request.location,
        "equipment": [_line_to_json(line) for line in request.equipment],
        "status": request.status.value,
        "requestor": {
            "name": request.requestor.name,
            "email": request.requestor.email,
        },
        "vendor_quote": (
            {
                "amount": request.vendor_quote.amount,
                "notes": request.vendor_quote.notes,
            }
            if request.vendor_quote
            else None
        ),
        "approved": request.approved,
        "approved_amount": request.approved_amount,
        "invoice_file": (
            {"name": request.invoice.name, "data": request.invoice.raw_document}
            if request.invoice
            else None
        ),
        "paid": request.paid,
        "rejection_reason": request.rejection_reason,
        "approval_email": request.approval_email,
        "cancellation_reason": request.cancellation_reason,
        "activities": [_activity_to_json(activity) for activity in request.activities],
        "email_thread_id": request.email_thread_id,
        "created_at": request.created_at.isoformat() if request.created_at else None,
        "shoot_date": request.shoot_date.isoformat() if request.shoot_date else None,
        "request_group_id": request.group_id,
        "is_multi_shoot": request.is_grouped,
        "multi_shoot_index": request.group_index,
        "total_shoots_in_request": request.group_size,
    }


def _from_row(row: dict[str, object]) -> ShootRequest:
    requestor = row.get("requestor") or {}
    quote = row.get("vendor_quote")
    invoice = row.get("invoice_file")
    return ShootRequest(
        id=str(row["id"]),
        name=str(row["name"]),
        date=str(row.get("date") or ""),
        status=ShootStatus(row["status"]),
        requestor=Requestor(
            name=str(requestor.get("name", "")),
            email=requestor.get("email"),
        ),
        equipment=[_line_from_json(line) for line in row.get("equipment") or []],
        duration=row.get("duration"),
        location=row.get("location"),
        vendor_quote=(
            VendorQuote(
                amount=float(quote.get("amount") or 0),
                notes=quote.get("notes") or "",
            )
            if quote
            else None
        ),
        approved=bool(row.get("approved")),
        approved_amount=_optional_float(row.get("approved_amount")),
        approval_email=row.get("approval_email"),
        rejection_reason=row.get("rejection_reason"),
        cancellation_reason=row.get("cancellation_reason"),
        invoice=(
            InvoiceRecord(
                name=str(invoice.get("name", "")), raw_document=invoice.get("data")
            )
            if invoice
            else None
        ),
        paid=bool(row.get("paid")),
        activities=[
            _activity_from_json(activity) for activity in row.get("activities") or []
        ],
        email_thread_id=row.get("email_thread_id"),
        group_id=row.get("request_group_id"),
        group_index=row.get("multi_shoot_index"),
        group_size=row.get("total_shoots_in_request"),
        created_at=_parse_timestamp(row.get("created_at")),
        shoot_date=_parse_timestamp(row.get("shoot_date")),
    )


def _line_to_json(line: EquipmentLine) -> dict[str, object]:
    return {
        "id": line.id,
        "name": line.name,
        "quantity": line.quantity,
        "category": line.category,
        "expectedRate": line.expected_rate,
        "vendorRate": line.vendor_rate,
    }


def _line_from_json(data: dict[str, object]) -> EquipmentLine:
    # Legacy rows carry only a dailyRate.
    expected = data.get("expectedRate", data.get("dailyRate"))
    return EquipmentLine(
        id=str(data["id"]),
        name=str(data.get("name", "")),
        quantity=int(data.get("quantity") or 1),
        category=data.get("category"),
        expected_rate=float(expected or 0),
        vendor_rate=_optional_float(data.get("vendorRate")),
    )


def _activity_to_json(activity: Activity) -> dict[str, object]:
    return {
        "id": activity.id,
        "action": activity.action,
        "description": activity.description,
        "timestamp": activity.timestamp.isoformat(),
        "emailTriggered": activity.notification_triggered,
    }


def _activity_from_json(data: dict[str, object]) -> Activity:
    return Activity(
        id=str(data["id"]),
        action=str(data.get("action", "")),
        description=str(data.get("description", "")),
        timestamp=_parse_timestamp(data.get("timestamp")) or datetime.now(tz=UTC),
        notification_triggered=bool(data.get("emailTriggered")),
    )


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO timestamp, treating naive values as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
