"""In-memory ledger used by the payroll unit tests and local experiments."""

from __future__ import annotations

import copy
import uuid
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from .errors import AlreadyPaid
from .ledger import LedgerStore
from .records import PayPeriod, PurchaseRecord, SalaryPaymentRecord, StaffMember


class InMemoryLedger(LedgerStore):
    """Dict-backed ledger with snapshot based transactions.

    ``begin`` and ``member_scope`` push a snapshot of the purchases and
    payments; ``rollback`` restores the oldest one and ``commit`` drops them.
    The (staff, year, month) uniqueness rule is enforced on insert like the
    database constraint.
    """

    def __init__(self, staff: Iterable[StaffMember] = ()):
        self.staff: dict[str, StaffMember] = {}
        self.purchases: dict[str, PurchaseRecord] = {}
        self.payments: dict[str, SalaryPaymentRecord] = {}
        self.commit_count = 0
        self.rollback_count = 0
        self._snapshots: list[tuple[dict, dict]] = []
        for member in staff:
            self.add_staff(member)

    # --- seeding helpers -------------------------------------------------

    def add_staff(self, member: StaffMember) -> StaffMember:
        self.staff[member.id] = member
        return member

    def add_payment(self, record: SalaryPaymentRecord) -> SalaryPaymentRecord:
        """Store a payment as if it had been committed by an earlier run."""

        stored = copy.copy(record)
        if stored.id is None:
            stored.id = str(uuid.uuid4())
        self.payments[stored.id] = stored
        return stored

    # --- LedgerStore -----------------------------------------------------

    def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        return self.staff.get(str(staff_id))

    def list_active_staff(self) -> list[StaffMember]:
        return [member for member in self.staff.values() if member.is_active]

    def find_payment(self, staff_id: str, year: int, month: int) -> Optional[SalaryPaymentRecord]:
        return self._stored_payment(staff_id, year, month)

    def _stored_payment(self, staff_id, year, month):
        for payment in self.payments.values():
            if payment.staff_id == str(staff_id) and payment.year == year and payment.month == month:
                return payment
        return None

    def get_purchase(self, purchase_id: str) -> Optional[PurchaseRecord]:
        return self.purchases.get(str(purchase_id))

    def insert_purchase(self, record: PurchaseRecord) -> str:
        stored = copy.copy(record)
        stored.id = str(uuid.uuid4())
        self.purchases[stored.id] = stored
        return stored.id

    def insert_salary_payment(self, record: SalaryPaymentRecord) -> str:
        if self._stored_payment(record.staff_id, record.year, record.month) is not None:
            raise AlreadyPaid(PayPeriod(record.year, record.month).already_paid_reason())
        stored = copy.copy(record)
        stored.id = str(uuid.uuid4())
        self.payments[stored.id] = stored
        return stored.id

    def begin(self) -> None:
        self._snapshots.append(self._snapshot())

    @contextmanager
    def member_scope(self) -> Iterator[None]:
        snapshot = self._snapshot()
        try:
            yield
        except Exception:
            self._restore(snapshot)
            raise

    def commit(self) -> None:
        self._snapshots.clear()
        self.commit_count += 1

    def rollback(self) -> None:
        if self._snapshots:
            self._restore(self._snapshots[0])
        self._snapshots.clear()
        self.rollback_count += 1

    # --- internals -------------------------------------------------------

    def _snapshot(self) -> tuple[dict, dict]:
        return dict(self.purchases), dict(self.payments)

    def _restore(self, snapshot: tuple[dict, dict]) -> None:
        purchases, payments = snapshot
        self.purchases = dict(purchases)
        self.payments = dict(payments)
