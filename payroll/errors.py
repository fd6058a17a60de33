"""Errors raised by the payroll disbursement engine."""

from __future__ import annotations


class PayrollError(Exception):
    """Base class; carries the message shown to API callers and an HTTP status."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(PayrollError):
    status_code = 404


class InvalidState(PayrollError):
    pass


class AlreadyPaid(PayrollError):
    """A salary payment already exists for the staff member and pay period."""

    def __init__(self, message: str, existing_payment=None):
        super().__init__(message)
        self.existing_payment = existing_payment


class PersistenceFailure(PayrollError):
    status_code = 500


class TransactionFailure(PayrollError):
    status_code = 500
