import importlib
import os
import sys
import unittest
from datetime import datetime
from decimal import Decimal

from models import PaymentStatus, Purchase, SalaryPayment, Staff, StaffStatus
from payroll import AlreadyPaid, PayPeriod, PayrollEngine, PurchaseRecord, SalaryPaymentRecord, SqlAlchemyLedger


class SqlLedgerTestCase(unittest.TestCase):
    def setUp(self):
        os.environ["DATABASE_URL"] = "sqlite:///:memory:"
        if "app" in sys.modules:
            self.app_module = importlib.reload(sys.modules["app"])
        else:
            self.app_module = importlib.import_module("app")

        self.app = self.app_module.create_app()
        self.app.testing = True
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.db = self.app_module.db
        self.db.create_all()

        self.alice = Staff(name="Alice", address="1 Beach Road", phone="0712000001", salary=Decimal("15000.00"))
        self.bob = Staff(
            name="Bob",
            address="2 Beach Road",
            phone="0712000002",
            salary=Decimal("20000.00"),
            status=StaffStatus.inactive,
        )
        self.db.session.add_all([self.alice, self.bob])
        self.db.session.commit()
        self.ledger = SqlAlchemyLedger()

    def tearDown(self):
        self.db.session.remove()
        self.db.drop_all()
        self.ctx.pop()
        os.environ.pop("DATABASE_URL", None)
        if "app" in sys.modules:
            del sys.modules["app"]

    def _purchase(self, name="Salary Payment - Alice"):
        return PurchaseRecord(
            name=name,
            description="Salary payment for Alice",
            total_amount=15000,
            status=PaymentStatus.completed,
            supplier_name="Alice",
            purchase_date=datetime(2024, 5, 15),
        )

    def _payment(self, purchase_id):
        return SalaryPaymentRecord(
            staff_id=str(self.alice.id),
            amount=Decimal("15000.00"),
            payment_date=datetime(2024, 5, 15),
            purchase_id=purchase_id,
            month=5,
            year=2024,
        )

    def test_records_are_returned_instead_of_rows(self):
        member = self.ledger.get_staff(str(self.alice.id))
        self.assertEqual(member.name, "Alice")
        self.assertEqual(member.salary, Decimal("15000.00"))
        self.assertTrue(member.is_active)

        self.assertEqual([m.name for m in self.ledger.list_active_staff()], ["Alice"])
        self.assertIsNone(self.ledger.get_staff("not-a-uuid"))

    def test_insert_returns_ids_and_find_payment_sees_them(self):
        self.ledger.begin()
        purchase_id = self.ledger.insert_purchase(self._purchase())
        payment_id = self.ledger.insert_salary_payment(self._payment(purchase_id))
        self.ledger.commit()

        found = self.ledger.find_payment(str(self.alice.id), 2024, 5)
        self.assertEqual(found.id, payment_id)
        self.assertEqual(found.purchase_id, purchase_id)
        self.assertEqual(self.ledger.get_purchase(purchase_id).total_amount, 15000)
        self.assertIsNone(self.ledger.find_payment(str(self.alice.id), 2024, 6))

    def test_duplicate_payment_maps_to_already_paid(self):
        self.ledger.begin()
        first = self.ledger.insert_purchase(self._purchase())
        self.ledger.insert_salary_payment(self._payment(first))
        self.ledger.commit()

        self.ledger.begin()
        second = self.ledger.insert_purchase(self._purchase("Salary Payment - Alice again"))
        with self.assertRaises(AlreadyPaid) as ctx:
            self.ledger.insert_salary_payment(self._payment(second))
        self.ledger.rollback()

        self.assertEqual(ctx.exception.message, "Salary already paid for 2024-05")
        self.assertEqual(SalaryPayment.query.count(), 1)
        self.assertEqual(Purchase.query.count(), 1)

    def test_member_scope_discards_partial_writes(self):
        self.ledger.begin()
        with self.assertRaises(RuntimeError):
            with self.ledger.member_scope():
                self.ledger.insert_purchase(self._purchase())
                raise RuntimeError("payment insert failed")
        self.ledger.commit()

        self.assertEqual(Purchase.query.count(), 0)

    def test_engine_bulk_run_against_database(self):
        period = PayPeriod(2024, 5)
        engine = PayrollEngine(self.ledger)
        roster = [self.ledger.get_staff(str(self.alice.id)), self.ledger.get_staff(str(self.bob.id))]

        result = engine.disburse(period, roster, payment_date=datetime(2024, 5, 20))

        self.assertEqual(len(result.successful), 1)
        self.assertEqual(result.failed[0].staff_name, "Bob")
        payment = SalaryPayment.query.one()
        self.assertEqual(str(payment.purchase_id), result.successful[0].purchase_id)
        self.assertEqual(payment.purchase.total_amount, 15000)
        self.assertEqual(payment.purchase.status, PaymentStatus.completed)


if __name__ == "__main__":
    unittest.main()
