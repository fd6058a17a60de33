from datetime import datetime
from decimal import Decimal

import pytest

from models import PaymentStatus, StaffStatus
from payroll import (
    AlreadyPaid,
    InMemoryLedger,
    InvalidState,
    NotFound,
    PayPeriod,
    PayrollEngine,
    SalaryPaymentRecord,
    StaffMember,
    TransactionFailure,
)

MAY_15 = datetime(2024, 5, 15, 9, 30)


def _engine(ledger, clock=None):
    return PayrollEngine(ledger, clock=clock or (lambda: MAY_15))


def _member(name, salary, status=StaffStatus.active, staff_id=None):
    return StaffMember(id=staff_id or f"staff-{name.lower()}", name=name, salary=salary, status=status)


def _previous_payment(member, period, amount=None):
    return SalaryPaymentRecord(
        staff_id=member.id,
        amount=Decimal(str(amount if amount is not None else member.salary)),
        payment_date=datetime(period.year, period.month, 1),
        purchase_id="purchase-earlier",
        month=period.month,
        year=period.year,
    )


class PaymentInsertFails(InMemoryLedger):
    def insert_salary_payment(self, record):
        raise RuntimeError("disk full")


class CommitFails(InMemoryLedger):
    def commit(self):
        raise RuntimeError("connection lost")


class PurchaseWithoutId(InMemoryLedger):
    def insert_purchase(self, record):
        super().insert_purchase(record)
        return None


class LookupFailsFor(InMemoryLedger):
    def __init__(self, staff, failing_id):
        super().__init__(staff)
        self.failing_id = failing_id

    def find_payment(self, staff_id, year, month):
        if staff_id == self.failing_id:
            raise RuntimeError("lookup failed")
        return super().find_payment(staff_id, year, month)


class PaidConcurrently(InMemoryLedger):
    """Another run pays the member between the lookup and the insert."""

    def find_payment(self, staff_id, year, month):
        return None


def test_disburse_one_books_purchase_and_payment():
    alice = _member("Alice", "15000.00")
    ledger = InMemoryLedger([alice])

    payment, purchase = _engine(ledger).disburse_one(alice.id, created_by=7)

    assert payment.id in ledger.payments
    assert purchase.id in ledger.purchases
    assert payment.purchase_id == purchase.id
    assert (payment.year, payment.month) == (2024, 5)
    assert payment.amount == Decimal("15000.00")
    assert payment.status == PaymentStatus.completed
    assert payment.notes is None

    assert purchase.name == "Salary Payment - Alice"
    assert purchase.description == "Salary payment for Alice"
    assert purchase.supplier_name == "Alice"
    assert purchase.total_amount == 15000
    assert purchase.status == PaymentStatus.completed
    assert purchase.notes == "Monthly salary payment for Alice"
    assert purchase.user_id == 7
    assert ledger.commit_count == 1


def test_disburse_one_is_idempotent_per_period():
    alice = _member("Alice", "15000")
    ledger = InMemoryLedger([alice])
    engine = _engine(ledger)
    first, _ = engine.disburse_one(alice.id)

    with pytest.raises(AlreadyPaid) as excinfo:
        engine.disburse_one(alice.id, payment_date=datetime(2024, 5, 28))

    assert excinfo.value.message == "Salary already paid for 2024-05"
    assert excinfo.value.existing_payment.id == first.id
    assert len(ledger.payments) == 1
    assert len(ledger.purchases) == 1


def test_disburse_one_pays_again_in_the_next_month():
    alice = _member("Alice", "15000")
    ledger = InMemoryLedger([alice])
    engine = _engine(ledger)

    engine.disburse_one(alice.id)
    payment, _ = engine.disburse_one(alice.id, payment_date=datetime(2024, 6, 1))

    assert (payment.year, payment.month) == (2024, 6)
    assert len(ledger.payments) == 2


def test_disburse_one_unknown_staff():
    with pytest.raises(NotFound) as excinfo:
        _engine(InMemoryLedger()).disburse_one("missing")
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Staff not found"


def test_disburse_one_rejects_inactive_staff():
    bob = _member("Bob", "20000", status=StaffStatus.inactive)
    ledger = InMemoryLedger([bob])

    with pytest.raises(InvalidState) as excinfo:
        _engine(ledger).disburse_one(bob.id)

    assert excinfo.value.message == "Only active staff can receive salary payments"
    assert ledger.payments == {}
    assert ledger.purchases == {}


def test_disburse_one_rolls_back_purchase_when_payment_insert_fails():
    alice = _member("Alice", "15000")
    ledger = PaymentInsertFails([alice])

    with pytest.raises(Exception):
        _engine(ledger).disburse_one(alice.id)

    assert ledger.purchases == {}
    assert ledger.payments == {}
    assert ledger.rollback_count == 1


def test_disburse_one_commit_failure_raises_transaction_failure():
    alice = _member("Alice", "15000")
    ledger = CommitFails([alice])

    with pytest.raises(TransactionFailure):
        _engine(ledger).disburse_one(alice.id)

    assert ledger.purchases == {}
    assert ledger.payments == {}


def test_purchase_total_rounds_half_up_but_payment_keeps_exact_amount():
    alice = _member("Alice", "15000.7")
    half = _member("Half", "100.50")
    ledger = InMemoryLedger([alice, half])
    engine = _engine(ledger)

    payment, purchase = engine.disburse_one(alice.id)
    assert purchase.total_amount == 15001
    assert payment.amount == Decimal("15000.7")

    _, purchase = engine.disburse_one(half.id)
    assert purchase.total_amount == 101


def test_bulk_run_pays_skips_and_fails_in_input_order():
    period = PayPeriod(2024, 5)
    alice = _member("Alice", "15000")
    bob = _member("Bob", "20000", status=StaffStatus.inactive)
    cara = _member("Cara", "18000")
    ledger = InMemoryLedger([alice, bob, cara])
    ledger.add_payment(_previous_payment(cara, period))

    result = _engine(ledger).disburse(period, [alice, bob, cara])

    assert [entry.staff_name for entry in result.successful] == ["Alice"]
    assert [entry.staff_name for entry in result.skipped] == ["Cara"]
    assert [entry.staff_name for entry in result.failed] == ["Bob"]
    assert result.skipped[0].reason == "Salary already paid for 2024-05"
    assert result.failed[0].error == "Only active staff can receive salary payments"
    assert result.total_processed == 3
    assert result.total_amount == Decimal("15000")
    assert result.summary() == {
        "period": "2024-05",
        "totalStaff": 3,
        "successful": 1,
        "skipped": 1,
        "failed": 1,
        "totalAmount": 15000.0,
    }
    assert result.message() == "Bulk salary payment processed. 1 successful, 1 skipped, 1 failed"
    assert len(ledger.payments) == 2
    assert len(ledger.purchases) == 1


def test_bulk_run_twice_skips_everyone_the_second_time():
    period = PayPeriod(2024, 5)
    roster = [_member("Alice", "15000"), _member("Dan", "12000")]
    ledger = InMemoryLedger(roster)
    engine = _engine(ledger)

    first = engine.disburse(period, roster)
    second = engine.disburse(period, roster)

    assert len(first.successful) == 2
    assert second.successful == []
    assert len(second.skipped) == 2
    assert len(ledger.payments) == 2
    assert len(ledger.purchases) == 2


def test_bulk_member_failure_leaves_no_orphan_purchase():
    period = PayPeriod(2024, 5)
    alice = _member("Alice", "15000")
    ledger = PaymentInsertFails([alice])

    result = _engine(ledger).disburse(period, [alice])

    assert result.successful == []
    assert result.failed[0].staff_id == alice.id
    assert result.failed[0].error == "disk full"
    assert ledger.purchases == {}
    assert ledger.commit_count == 1


def test_bulk_member_without_purchase_id_is_failed():
    period = PayPeriod(2024, 5)
    alice = _member("Alice", "15000")
    ledger = PurchaseWithoutId([alice])

    result = _engine(ledger).disburse(period, [alice])

    assert result.failed[0].error == "Purchase was created but could not retrieve ID"
    assert ledger.purchases == {}
    assert ledger.payments == {}


def test_bulk_member_paid_concurrently_is_failed_not_duplicated():
    period = PayPeriod(2024, 5)
    alice = _member("Alice", "15000")
    ledger = PaidConcurrently([alice])
    ledger.add_payment(_previous_payment(alice, period))

    result = _engine(ledger).disburse(period, [alice])

    assert result.successful == []
    assert result.failed[0].error == "Salary already paid for 2024-05"
    assert len(ledger.payments) == 1
    assert ledger.purchases == {}


def test_bulk_lookup_failure_only_fails_that_member():
    period = PayPeriod(2024, 5)
    roster = [_member("Alice", "15000"), _member("Dan", "12000"), _member("Eve", "9000")]
    ledger = LookupFailsFor(roster, failing_id=roster[0].id)
    ledger.add_payment(_previous_payment(roster[2], period))

    result = _engine(ledger).disburse(period, roster)

    assert [entry.staff_name for entry in result.failed] == ["Alice"]
    assert result.failed[0].error == "lookup failed"
    assert [entry.staff_name for entry in result.successful] == ["Dan"]
    assert [entry.staff_name for entry in result.skipped] == ["Eve"]
    assert len(ledger.purchases) == 1
    assert ledger.commit_count == 1


def test_bulk_member_with_zero_salary_is_failed():
    period = PayPeriod(2024, 5)
    unpaid = _member("Intern", "0")
    ledger = InMemoryLedger([unpaid])

    result = _engine(ledger).disburse(period, [unpaid])

    assert result.failed[0].error == "Salary must be a positive amount"


def test_bulk_commit_failure_rolls_back_the_whole_run():
    period = PayPeriod(2024, 5)
    roster = [_member("Alice", "15000"), _member("Dan", "12000")]
    ledger = CommitFails(roster)

    with pytest.raises(TransactionFailure) as excinfo:
        _engine(ledger).disburse(period, roster)

    assert excinfo.value.message == "Failed to process bulk salary payments"
    assert excinfo.value.status_code == 500
    assert ledger.purchases == {}
    assert ledger.payments == {}
    assert ledger.rollback_count == 1


def test_bulk_notes_apply_to_purchase_and_payment():
    period = PayPeriod(2024, 5)
    alice = _member("Alice", "15000")
    ledger = InMemoryLedger([alice])

    result = _engine(ledger).disburse(period, [alice], notes="May payroll")

    entry = result.successful[0]
    assert ledger.payments[entry.salary_payment_id].notes == "May payroll"
    assert ledger.purchases[entry.purchase_id].notes == "May payroll"


def test_bulk_uses_given_period_for_payment_rows():
    alice = _member("Alice", "15000")
    ledger = InMemoryLedger([alice])

    result = _engine(ledger).disburse(PayPeriod(2023, 12), [alice], payment_date=datetime(2024, 1, 2))

    payment = ledger.payments[result.successful[0].salary_payment_id]
    assert (payment.year, payment.month) == (2023, 12)
    assert payment.payment_date == datetime(2024, 1, 2)


def test_disburse_active_derives_period_from_payment_date():
    alice = _member("Alice", "15000")
    bob = _member("Bob", "20000", status=StaffStatus.inactive)
    ledger = InMemoryLedger([alice, bob])

    result = _engine(ledger).disburse_active(payment_date=datetime(2024, 2, 29))

    assert result.period == PayPeriod(2024, 2)
    assert [entry.staff_name for entry in result.successful] == ["Alice"]
    assert result.failed == []


def test_disburse_active_without_active_staff():
    ledger = InMemoryLedger([_member("Bob", "20000", status=StaffStatus.inactive)])

    with pytest.raises(InvalidState) as excinfo:
        _engine(ledger).disburse_active()

    assert excinfo.value.message == "No active staff found"
    assert ledger.commit_count == 0


@pytest.mark.parametrize("month", [0, 13, -1])
def test_pay_period_rejects_invalid_month(month):
    with pytest.raises(InvalidState):
        PayPeriod(2024, month)


def test_pay_period_label_is_zero_padded():
    assert PayPeriod(2024, 3).label == "2024-03"
    assert PayPeriod.from_date(datetime(2025, 11, 30)).label == "2025-11"


def test_staff_member_coerces_salary_and_status():
    member = StaffMember(id=42, name="Eve", salary=1250.5, status="inactive")
    assert member.id == "42"
    assert member.salary == Decimal("1250.5")
    assert member.status == StaffStatus.inactive
    assert not member.is_active


def test_staff_member_rejects_non_numeric_salary():
    with pytest.raises(InvalidState):
        StaffMember(id="1", name="Eve", salary="lots")


def test_staff_member_rejects_unknown_status():
    with pytest.raises(InvalidState) as excinfo:
        StaffMember(id="1", name="Eve", salary="100", status="ACTIVE")
    assert excinfo.value.message == "Unknown staff status: ACTIVE"
