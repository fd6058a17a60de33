"""Salary disbursement workflow.

Each disbursement books two rows: a completed purchase (the expense) and a
salary payment linked to it. At most one salary payment exists per staff
member and pay period.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from models import PaymentStatus

from .errors import AlreadyPaid, InvalidState, NotFound, PayrollError, PersistenceFailure, TransactionFailure
from .ledger import LedgerStore
from .records import (
    PayPeriod,
    PurchaseRecord,
    SalaryPaymentRecord,
    StaffMember,
    round_to_minor_unit,
)
from .results import DisbursedEntry, DisbursementResult, FailedEntry, SkippedEntry

INACTIVE_STAFF_MESSAGE = "Only active staff can receive salary payments"


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, PayrollError):
        return exc.message
    return str(exc) or "Unknown error"


class PayrollEngine:
    def __init__(
        self,
        ledger: LedgerStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.ledger = ledger
        self._clock = clock or datetime.utcnow
        self.logger = logger or logging.getLogger(__name__)

    # --- public API -----------------------------------------------------

    def disburse(
        self,
        period: PayPeriod,
        roster: Iterable[StaffMember],
        notes: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        created_by: Optional[int] = None,
    ) -> DisbursementResult:
        """Pay every member of ``roster`` for ``period`` inside one transaction.

        Members are processed in input order. Already paid members are
        skipped, and a failure for one member is recorded without aborting
        the others; that member's partial writes are undone. If the final
        commit fails the whole run is rolled back and
        :class:`TransactionFailure` is raised.
        """

        if not isinstance(period, PayPeriod):
            raise InvalidState("A pay period is required.")
        paid_at = payment_date or self._clock()
        result = DisbursementResult(period=period)

        self.ledger.begin()
        for member in roster:
            self._disburse_in_run(member, period, paid_at, notes, created_by, result)

        try:
            self.ledger.commit()
        except Exception as exc:  # noqa: BLE001
            self.ledger.rollback()
            self.logger.exception(
                {
                    "event": "payroll_commit_failed",
                    "period": period.label,
                    "successful": len(result.successful),
                }
            )
            raise TransactionFailure("Failed to process bulk salary payments") from exc

        self.logger.info({"event": "payroll_bulk_done", **result.summary()})
        return result

    def disburse_active(
        self,
        notes: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        created_by: Optional[int] = None,
    ) -> DisbursementResult:
        """Pay all active staff for the period containing ``payment_date``."""

        paid_at = payment_date or self._clock()
        period = PayPeriod.from_date(paid_at)
        roster = self.ledger.list_active_staff()
        if not roster:
            raise InvalidState("No active staff found")
        return self.disburse(period, roster, notes=notes, payment_date=paid_at, created_by=created_by)

    def disburse_one(
        self,
        staff_id: str,
        payment_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> tuple[SalaryPaymentRecord, PurchaseRecord]:
        member = self.ledger.get_staff(staff_id)
        if member is None:
            raise NotFound("Staff not found")
        if not member.is_active:
            raise InvalidState(INACTIVE_STAFF_MESSAGE)

        paid_at = payment_date or self._clock()
        period = PayPeriod.from_date(paid_at)
        existing = self.ledger.find_payment(member.id, period.year, period.month)
        if existing is not None:
            raise AlreadyPaid(period.already_paid_reason(), existing_payment=existing)

        self.ledger.begin()
        try:
            payment, purchase = self._record_payment(member, period, paid_at, notes, created_by)
        except PayrollError:
            self.ledger.rollback()
            raise
        except Exception as exc:  # noqa: BLE001
            self.ledger.rollback()
            raise PersistenceFailure("Failed to process salary payment") from exc

        try:
            self.ledger.commit()
        except Exception as exc:  # noqa: BLE001
            self.ledger.rollback()
            self.logger.exception(
                {"event": "payroll_commit_failed", "period": period.label, "staff_id": member.id}
            )
            raise TransactionFailure("Failed to process salary payment") from exc

        self.logger.info(
            {
                "event": "payroll_member_paid",
                "staff_id": member.id,
                "period": period.label,
                "salary_payment_id": payment.id,
                "purchase_id": purchase.id,
            }
        )
        return payment, purchase

    # --- internals --------------------------------------------------------

    def _disburse_in_run(
        self,
        member: StaffMember,
        period: PayPeriod,
        paid_at: datetime,
        notes: Optional[str],
        created_by: Optional[int],
        result: DisbursementResult,
    ) -> None:
        try:
            if not member.is_active:
                raise InvalidState(INACTIVE_STAFF_MESSAGE)
            # The lookup runs inside the member savepoint too.
            with self.ledger.member_scope():
                existing = self.ledger.find_payment(member.id, period.year, period.month)
                if existing is None:
                    payment, purchase = self._record_payment(member, period, paid_at, notes, created_by)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(
                {
                    "event": "payroll_member_failed",
                    "staff_id": member.id,
                    "period": period.label,
                    "error_type": exc.__class__.__name__,
                    "message": str(exc),
                },
                exc_info=not isinstance(exc, PayrollError),
            )
            result.failed.append(
                FailedEntry(staff_id=member.id, staff_name=member.name, error=_describe_error(exc))
            )
            return

        if existing is not None:
            result.skipped.append(
                SkippedEntry(
                    staff_id=member.id,
                    staff_name=member.name,
                    reason=period.already_paid_reason(),
                )
            )
            return

        result.successful.append(
            DisbursedEntry(
                staff_id=member.id,
                staff_name=member.name,
                amount=payment.amount,
                salary_payment_id=payment.id,
                purchase_id=purchase.id,
            )
        )

    def _record_payment(
        self,
        member: StaffMember,
        period: PayPeriod,
        paid_at: datetime,
        notes: Optional[str],
        created_by: Optional[int],
    ) -> tuple[SalaryPaymentRecord, PurchaseRecord]:
        if member.salary <= 0:
            raise InvalidState("Salary must be a positive amount")

        purchase = PurchaseRecord(
            name=f"Salary Payment - {member.name}",
            description=f"Salary payment for {member.name}",
            total_amount=round_to_minor_unit(member.salary),
            status=PaymentStatus.completed,
            supplier_name=member.name,
            purchase_date=paid_at,
            notes=notes or f"Monthly salary payment for {member.name}",
            user_id=created_by,
        )
        purchase_id = self.ledger.insert_purchase(purchase)
        if not purchase_id:
            raise PersistenceFailure("Purchase was created but could not retrieve ID")
        purchase = replace(purchase, id=purchase_id)

        payment = SalaryPaymentRecord(
            staff_id=member.id,
            amount=member.salary,
            payment_date=paid_at,
            purchase_id=purchase_id,
            month=period.month,
            year=period.year,
            status=PaymentStatus.completed,
            notes=notes,
        )
        payment_id = self.ledger.insert_salary_payment(payment)
        if not payment_id:
            raise PersistenceFailure("Salary payment was created but could not retrieve ID")
        return replace(payment, id=payment_id), purchase
