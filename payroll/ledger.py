"""Ledger stores used by the payroll engine.

``LedgerStore`` lists the operations the engine needs. ``SqlAlchemyLedger``
implements them on top of the Flask-SQLAlchemy session and only ever hands
typed records back to the engine, never ORM rows.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import scoped_session

from extensions import db
from models import Purchase, SalaryPayment, Staff, StaffStatus, coerce_uuid

from .errors import AlreadyPaid, PersistenceFailure
from .records import PayPeriod, PurchaseRecord, SalaryPaymentRecord, StaffMember

DUPLICATE_PAYMENT_CONSTRAINT = "uq_salary_payment_staff_month_year"


class LedgerStore:
    """Storage operations required by :class:`payroll.engine.PayrollEngine`."""

    def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        raise NotImplementedError

    def list_active_staff(self) -> list[StaffMember]:
        raise NotImplementedError

    def find_payment(self, staff_id: str, year: int, month: int) -> Optional[SalaryPaymentRecord]:
        raise NotImplementedError

    def get_purchase(self, purchase_id: str) -> Optional[PurchaseRecord]:
        raise NotImplementedError

    def insert_purchase(self, record: PurchaseRecord) -> str:
        raise NotImplementedError

    def insert_salary_payment(self, record: SalaryPaymentRecord) -> str:
        raise NotImplementedError

    def begin(self) -> None:
        raise NotImplementedError

    def member_scope(self):
        """Context manager undoing the writes made inside it when it exits with an error."""
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


def staff_record(staff: Staff) -> StaffMember:
    return StaffMember(id=str(staff.id), name=staff.name, salary=staff.salary, status=staff.status)


def purchase_record(purchase: Purchase) -> PurchaseRecord:
    return PurchaseRecord(
        id=str(purchase.id),
        name=purchase.name,
        description=purchase.description,
        total_amount=purchase.total_amount,
        status=purchase.status,
        supplier_name=purchase.supplier_name,
        purchase_date=purchase.purchase_date,
        notes=purchase.notes,
        user_id=purchase.user_id,
    )


def payment_record(payment: SalaryPayment) -> SalaryPaymentRecord:
    return SalaryPaymentRecord(
        id=str(payment.id),
        staff_id=str(payment.staff_id),
        amount=payment.amount,
        payment_date=payment.payment_date,
        purchase_id=str(payment.purchase_id),
        month=payment.month,
        year=payment.year,
        status=payment.status,
        notes=payment.notes,
    )


def _is_duplicate_payment(exc: IntegrityError) -> bool:
    text = str(getattr(exc, "orig", exc)).lower()
    if DUPLICATE_PAYMENT_CONSTRAINT in text:
        return True
    # SQLite reports the column list instead of the constraint name.
    return "unique" in text and "salary_payments.staff_id" in text


class SqlAlchemyLedger(LedgerStore):
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        key = coerce_uuid(staff_id)
        if key is None:
            return None
        try:
            staff = self.session.get(Staff, key)
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Failed to load staff member") from exc
        return staff_record(staff) if staff is not None else None

    def list_active_staff(self) -> list[StaffMember]:
        try:
            rows = (
                self.session.query(Staff)
                .filter(Staff.status == StaffStatus.active)
                .order_by(Staff.created_at.asc(), Staff.name.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Failed to load active staff") from exc
        return [staff_record(row) for row in rows]

    def find_payment(self, staff_id: str, year: int, month: int) -> Optional[SalaryPaymentRecord]:
        key = coerce_uuid(staff_id)
        if key is None:
            return None
        try:
            payment = (
                self.session.query(SalaryPayment)
                .filter_by(staff_id=key, year=year, month=month)
                .one_or_none()
            )
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Failed to look up salary payments") from exc
        return payment_record(payment) if payment is not None else None

    def get_purchase(self, purchase_id: str) -> Optional[PurchaseRecord]:
        key = coerce_uuid(purchase_id)
        if key is None:
            return None
        purchase = self.session.get(Purchase, key)
        return purchase_record(purchase) if purchase is not None else None

    def insert_purchase(self, record: PurchaseRecord) -> str:
        purchase = Purchase(
            name=record.name,
            description=record.description,
            total_amount=record.total_amount,
            status=record.status,
            supplier_name=record.supplier_name,
            purchase_date=record.purchase_date,
            notes=record.notes,
            user_id=record.user_id,
        )
        try:
            self.session.add(purchase)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Failed to create purchase: {exc.__class__.__name__}") from exc
        if purchase.id is None:
            raise PersistenceFailure("Purchase was created but could not retrieve ID")
        return str(purchase.id)

    def insert_salary_payment(self, record: SalaryPaymentRecord) -> str:
        payment = SalaryPayment(
            staff_id=coerce_uuid(record.staff_id),
            amount=record.amount,
            payment_date=record.payment_date,
            purchase_id=coerce_uuid(record.purchase_id),
            month=record.month,
            year=record.year,
            status=record.status,
            notes=record.notes,
        )
        try:
            self.session.add(payment)
            self.session.flush()
        except IntegrityError as exc:
            if _is_duplicate_payment(exc):
                reason = PayPeriod(record.year, record.month).already_paid_reason()
                raise AlreadyPaid(reason) from exc
            raise PersistenceFailure(f"Failed to create salary payment: {exc.__class__.__name__}") from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Failed to create salary payment: {exc.__class__.__name__}") from exc
        return str(payment.id)

    def _current_session(self):
        # scoped_session does not proxy in_transaction()
        if isinstance(self.session, scoped_session):
            return self.session()
        return self.session

    def begin(self) -> None:
        session = self._current_session()
        if not session.in_transaction():
            session.begin()

    @contextmanager
    def member_scope(self) -> Iterator[None]:
        with self.session.begin_nested():
            yield

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
