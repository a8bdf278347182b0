"""HTML email templates for lifecycle notifications."""

from collections.abc import Callable
from html import escape

from shootflow.domain.notifications import TemplateKind

Payload = dict[str, object]


def render(template: TemplateKind, payload: Payload) -> tuple[str, str]:
    """Return the headline and HTML body for a template."""
    headline, paragraphs = _RENDERERS[template](payload)
    return headline, _wrap(payload, headline, paragraphs)


def format_amount(amount: object) -> str:
    """Format a rupee amount with thousands separators."""
    if isinstance(amount, int | float):
        return f"₹{amount:,.0f}"
    return "₹0"


def _new_request(payload: Payload) -> tuple[str, list[str]]:
    return (
        f"ACTION REQUIRED: New Shoot Request - {payload.get('name')}",
        [
            "The Pre-Production team has submitted a new equipment requirement.",
            _details_table(payload),
            _equipment_table(payload.get("equipment")),
            "Please review the list and forward it to the vendor for a final quote.",
        ],
    )


def _new_request_multi(payload: Payload) -> tuple[str, list[str]]:
    shoots = _shoots(payload)
    return (
        f"ACTION REQUIRED: New Equipment Request - {len(shoots)} Shoots Request",
        [
            "The Pre-Production team has submitted a new equipment requirement "
            f"for <strong>{len(shoots)} shoots</strong>.",
            *_shoot_sections(shoots),
            f"Estimated budget: <strong>{format_amount(payload.get('amount'))}"
            "</strong>",
            "Please review the list and forward it to the vendor for a final quote.",
        ],
    )


def _sent_to_vendor(payload: Payload) -> tuple[str, list[str]]:
    return (
        f"Action Required: Send vendor link for {payload.get('name')}",
        [
            "Your equipment request has been sent to the vendor for quotation.",
            _details_table(payload),
            _equipment_table(payload.get("equipment")),
        ],
    )


def _quote_submitted(payload: Payload) -> tuple[str, list[str]]:
    return (
        f"Quote Received: {payload.get('name')} - "
        f"{format_amount(payload.get('amount'))}",
        [
            "The vendor has submitted a quote and it is waiting for your approval.",
            _details_table(payload),
            _equipment_table(payload.get("equipment"), vendor_rates=True),
            _notes(payload),
        ],
    )


def _quote_submitted_multi(payload: Payload) -> tuple[str, list[str]]:
    shoots = _shoots(payload)
    return (
        f"Quote Received: {len(shoots)} Shoots Quote - "
        f"{format_amount(payload.get('amount'))}",
        [
            f"The vendor has submitted quotes for {len(shoots)} shoots.",
            *_shoot_sections(shoots, vendor_rates=True),
            f"Grand total: <strong>{format_amount(payload.get('amount'))}</strong>",
        ],
    )


def _quote_approved(payload: Payload) -> tuple[str, list[str]]:
    return (
        f"Budget Approved: {payload.get('name')} - Ready for Shoot",
        [
            "The vendor quote has been approved.",
            f"Approved amount: <strong>{format_amount(payload.get('amount'))}"
            "</strong>",
            _details_table(payload),
        ],
    )


def _quote_rejected(payload: Payload) -> tuple[str, list[str]]:
    reason = escape(str(payload.get("rejection_reason") or "No reason provided"))
    return (
        f"Quote Rejected: {payload.get('name')} - Revision Required",
        [
            "The vendor quote was rejected and sent back for revision.",
            f"Reason: <em>{reason}</em>",
        ],
    )


def _invoice_reminder(payload: Payload) -> tuple[str, list[str]]:
    return (
        f"Invoice Pending: {payload.get('name')} - Action Required",
        [
            "The shoot finished over a week ago and no invoice has been uploaded.",
            _details_table(payload),
            "Please upload the vendor invoice so payment can be processed.",
        ],
    )


def _invoice_uploaded(payload: Payload) -> tuple[str, list[str]]:
    invoice = escape(str(payload.get("invoice_name") or "invoice"))
    return (
        f"Invoice Uploaded: {payload.get('name')}",
        [
            f"An invoice (<code>{invoice}</code>) has been uploaded for payment.",
            f"Approved amount: <strong>{format_amount(payload.get('amount'))}"
            "</strong>",
        ],
    )


def _payment_complete(payload: Payload) -> tuple[str, list[str]]:
    return (
        f"Payment Completed: {payload.get('name')} - "
        f"{format_amount(payload.get('amount'))}",
        ["The invoice has been verified and payment processed."],
    )


_RENDERERS: dict[TemplateKind, Callable[[Payload], tuple[str, list[str]]]] = {
    TemplateKind.NEW_REQUEST: _new_request,
    TemplateKind.NEW_REQUEST_MULTI: _new_request_multi,
    TemplateKind.SENT_TO_VENDOR: _sent_to_vendor,
    TemplateKind.QUOTE_SUBMITTED: _quote_submitted,
    TemplateKind.QUOTE_SUBMITTED_MULTI: _quote_submitted_multi,
    TemplateKind.QUOTE_APPROVED: _quote_approved,
    TemplateKind.QUOTE_REJECTED: _quote_rejected,
    TemplateKind.INVOICE_REMINDER: _invoice_reminder,
    TemplateKind.INVOICE_UPLOADED: _invoice_uploaded,
    TemplateKind.PAYMENT_COMPLETE: _payment_complete,
}


def _wrap(payload: Payload, headline: str, paragraphs: list[str]) -> str:
    recipient = escape(str(payload.get("recipient_name") or "Team"))
    body = "".join(f"<p>{paragraph}</p>" for paragraph in paragraphs if paragraph)
    link = ""
    if payload.get("app_url"):
        url = escape(str(payload["app_url"]))
        link = f'<p><a href="{url}">Open ShootFlow</a></p>'
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 650px;">'
        f"<h2>{escape(headline)}</h2>"
        f"<p>Hi {recipient},</p>"
        f"{body}{link}"
        '<p style="color: #999; font-size: 12px;">'
        "This is an automated message from ShootFlow.</p>"
        "</div>"
    )


def _details_table(payload: Payload) -> str:
    rows = [
        ("Shoot Name", payload.get("name")),
        ("Dates", payload.get("date") or "TBD"),
        ("Location", payload.get("location") or "TBD"),
        ("Requested By", payload.get("requestor_name")),
    ]
    cells = "".join(
        f"<tr><td>{label}:</td><td>{escape(str(value))}</td></tr>"
        for label, value in rows
        if value
    )
    return f"<table>{cells}</table>"


def _equipment_table(equipment: object, vendor_rates: bool = False) -> str:
    if not isinstance(equipment, list) or not equipment:
        return "No equipment listed."
    rows = []
    for line in equipment:
        if not isinstance(line, dict):
            continue
        rate = line.get("expected_rate", 0)
        if vendor_rates and line.get("vendor_rate") is not None:
            rate = line["vendor_rate"]
        rows.append(
            f"<tr><td>{escape(str(line.get('name', '-')))}</td>"
            f"<td>{line.get('quantity', 1)}</td>"
            f"<td>{format_amount(rate)}</td></tr>"
        )
    header = "<tr><th>Item</th><th>Qty</th><th>Rate/Day</th></tr>"
    return f"<table>{header}{''.join(rows)}</table>"


def _notes(payload: Payload) -> str:
    notes = payload.get("notes")
    if not notes:
        return ""
    return f"Vendor notes: <em>{escape(str(notes))}</em>"


def _shoots(payload: Payload) -> list[dict[str, object]]:
    shoots = payload.get("shoots", [])
    if not isinstance(shoots, list):
        return []
    return [shoot for shoot in shoots if isinstance(shoot, dict)]


def _shoot_sections(
    shoots: list[dict[str, object]], vendor_rates: bool = False
) -> list[str]:
    sections = []
    for index, shoot in enumerate(shoots, start=1):
        title = f"Shoot {index} ({escape(str(shoot.get('name', '')))})"
        if vendor_rates and shoot.get("amount") is not None:
            title = f"{title} - {format_amount(shoot.get('amount'))}"
        sections.append(
            f"<strong>{title}</strong>"
            f"{_equipment_table(shoot.get('equipment'), vendor_rates=vendor_rates)}"
        )
    return sections
