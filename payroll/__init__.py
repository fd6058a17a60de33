"""Payroll disbursement domain."""

from .engine import PayrollEngine
from .errors import (
    AlreadyPaid,
    InvalidState,
    NotFound,
    PayrollError,
    PersistenceFailure,
    TransactionFailure,
)
from .ledger import LedgerStore, SqlAlchemyLedger
from .memory import InMemoryLedger
from .records import PayPeriod, PurchaseRecord, SalaryPaymentRecord, StaffMember
from .results import DisbursedEntry, DisbursementResult, FailedEntry, SkippedEntry


def sql_payroll_engine(logger=None) -> PayrollEngine:
    """Engine bound to the application's database session."""

    return PayrollEngine(SqlAlchemyLedger(), logger=logger)


__all__ = [
    "AlreadyPaid",
    "DisbursedEntry",
    "DisbursementResult",
    "FailedEntry",
    "InMemoryLedger",
    "InvalidState",
    "LedgerStore",
    "NotFound",
    "PayPeriod",
    "PayrollEngine",
    "PayrollError",
    "PersistenceFailure",
    "PurchaseRecord",
    "SalaryPaymentRecord",
    "SkippedEntry",
    "SqlAlchemyLedger",
    "StaffMember",
    "TransactionFailure",
    "sql_payroll_engine",
]
