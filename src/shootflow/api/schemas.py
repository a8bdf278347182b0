"""Pydantic models for request bodies."""

from datetime import datetime

from pydantic import BaseModel, Field

from shootflow.domain.requests import EquipmentLine, Requestor


class EquipmentLineIn(BaseModel):
    """Equipment line payload."""

    id: str
    name: str
    quantity: int = Field(default=1, ge=1)
    category: str | None = None
    expected_rate: float = Field(default=0.0, ge=0)
    vendor_rate: float | None = Field(default=None, ge=0)

    def to_domain(self) -> EquipmentLine:
        return EquipmentLine(
            id=self.id,
            name=self.name,
            quantity=self.quantity,
            category=self.category,
            expected_rate=self.expected_rate,
            vendor_rate=self.vendor_rate,
        )


class RequestorIn(BaseModel):
    """Requestor payload."""

    name: str
    email: str | None = None

    def to_domain(self) -> Requestor:
        return Requestor(name=self.name, email=self.email)


class ShootIn(BaseModel):
    """One shoot of an intake submission."""

    id: str | None = None
    name: str = Field(min_length=1)
    date: str
    duration: str | None = None
    location: str | None = None
    requestor: RequestorIn
    equipment: list[EquipmentLineIn] = Field(default_factory=list)
    approval_email: str | None = None
    shoot_date: datetime | None = None


class NewRequestsBody(BaseModel):
    """Intake hand-off of one or more shoots raised together."""

    shoots: list[ShootIn] = Field(min_length=1)


class VendorQuoteBody(BaseModel):
    """Vendor quote submission."""

    amount: float = Field(ge=0)
    notes: str = ""
    itemized: dict[str, float] | None = None


class RejectBody(BaseModel):
    reason: str = Field(min_length=1)


class InvoiceBody(BaseModel):
    """Uploaded invoice reference."""

    name: str = Field(min_length=1)
    data: str | None = None


class CancelBody(BaseModel):
    reason: str = ""


class PricingBody(BaseModel):
    """Admin pricing correction."""

    equipment: list[EquipmentLineIn]
    amount: float | None = Field(default=None, ge=0)
    editor: str = "Admin"
