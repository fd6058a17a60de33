from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from .records import PayPeriod


@dataclass
class DisbursedEntry:
    staff_id: str
    staff_name: str
    amount: Decimal
    salary_payment_id: str
    purchase_id: str


@dataclass
class SkippedEntry:
    staff_id: str
    staff_name: str
    reason: str


@dataclass
class FailedEntry:
    staff_id: str
    staff_name: str
    error: str


@dataclass
class DisbursementResult:
    """Outcome of one bulk run. Built per call and never persisted.

    When the final commit fails the engine raises instead of returning, so a
    returned result always reflects durable state.
    """

    period: PayPeriod
    successful: list[DisbursedEntry] = field(default_factory=list)
    skipped: list[SkippedEntry] = field(default_factory=list)
    failed: list[FailedEntry] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.successful) + len(self.skipped) + len(self.failed)

    @property
    def total_amount(self) -> Decimal:
        return sum((entry.amount for entry in self.successful), Decimal("0"))

    def summary(self) -> dict[str, object]:
        return {
            "period": self.period.label,
            "totalStaff": self.total_processed,
            "successful": len(self.successful),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "totalAmount": float(self.total_amount),
        }

    def message(self) -> str:
        return (
            f"Bulk salary payment processed. {len(self.successful)} successful, "
            f"{len(self.skipped)} skipped, {len(self.failed)} failed"
        )
