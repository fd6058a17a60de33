"""Typed records exchanged between the payroll engine and the ledger store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from models import PaymentStatus, StaffStatus

from .errors import InvalidState


def to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise InvalidState("Salary amount is required.")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise InvalidState("Salary amount must be numeric.") from exc


def round_to_minor_unit(amount: Decimal) -> int:
    """Round ``amount`` half-up to a whole minor currency unit."""

    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PayPeriod:
    year: int
    month: int

    def __post_init__(self):
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise InvalidState("Pay period month must be between 1 and 12.")
        if not isinstance(self.year, int) or self.year < 1:
            raise InvalidState("Pay period year must be a positive integer.")

    @classmethod
    def from_date(cls, value: date | datetime) -> "PayPeriod":
        return cls(year=value.year, month=value.month)

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d}"

    def already_paid_reason(self) -> str:
        return f"Salary already paid for {self.label}"


@dataclass
class StaffMember:
    id: str
    name: str
    salary: Decimal
    status: StaffStatus = StaffStatus.active

    def __post_init__(self):
        self.id = str(self.id)
        self.salary = to_decimal(self.salary)
        if not isinstance(self.status, StaffStatus):
            try:
                self.status = StaffStatus(str(self.status))
            except ValueError as exc:
                raise InvalidState(f"Unknown staff status: {self.status}") from exc

    @property
    def is_active(self) -> bool:
        return self.status == StaffStatus.active


@dataclass
class PurchaseRecord:
    name: str
    description: str
    total_amount: int
    status: PaymentStatus
    supplier_name: str
    purchase_date: datetime
    notes: str | None = None
    user_id: int | None = None
    id: str | None = None


@dataclass
class SalaryPaymentRecord:
    staff_id: str
    amount: Decimal
    payment_date: datetime
    purchase_id: str
    month: int
    year: int
    status: PaymentStatus = PaymentStatus.completed
    notes: str | None = None
    id: str | None = None
