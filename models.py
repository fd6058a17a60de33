import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.types import CHAR, TypeDecorator

from extensions import db
from werkzeug.security import generate_password_hash, check_password_hash


class GUID(TypeDecorator):
    """Platform-independent GUID type.

    Stored as ``CHAR(36)`` on every backend so SQLite test databases and the
    production database bind identifiers the same way.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # pragma: no cover - SQLAlchemy hook
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):  # pragma: no cover - SQLAlchemy hook
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):  # pragma: no cover - SQLAlchemy hook
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


def coerce_uuid(value) -> uuid.UUID | None:
    """Return ``value`` as a UUID, or ``None`` when it is not a valid identifier."""

    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


class RoleEnum(str, Enum):
    admin = "Admin"
    manager = "Manager"
    staff = "Staff"


class StaffStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(
        db.Enum(RoleEnum, values_callable=_enum_values, name="user_role"),
        nullable=False,
        default=RoleEnum.staff,
    )
    active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, pw): self.password_hash = generate_password_hash(pw)
    def check_password(self, pw): return check_password_hash(self.password_hash, pw)


class Staff(db.Model):
    """A restaurant employee on the payroll."""

    __tablename__ = "staff"

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.Text, nullable=False)
    phone = db.Column(db.String(20), nullable=False, unique=True)
    salary = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    status = db.Column(
        db.Enum(StaffStatus, values_callable=_enum_values, name="staff_status"),
        nullable=False,
        default=StaffStatus.active,
        index=True,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("salary >= 0", name="ck_staff_salary_non_negative"),
    )

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<Staff {self.name}>"


class Purchase(db.Model):
    """Expense ledger entry; salary disbursements are booked here as completed purchases."""

    __tablename__ = "purchases"

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255))
    description = db.Column(db.Text)
    total_amount = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.Enum(PaymentStatus, values_callable=_enum_values, name="purchase_status"),
        nullable=False,
        default=PaymentStatus.pending,
        index=True,
    )
    supplier_name = db.Column(db.String(100))
    purchase_date = db.Column(db.DateTime, default=datetime.utcnow)
    notes = db.Column(db.Text)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_purchase_total_non_negative"),
    )


class SalaryPayment(db.Model):
    __tablename__ = "salary_payments"
    __table_args__ = (
        UniqueConstraint("staff_id", "month", "year", name="uq_salary_payment_staff_month_year"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_salary_payment_month"),
        CheckConstraint("amount >= 0", name="ck_salary_payment_amount_non_negative"),
    )

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    staff_id = db.Column(GUID(), db.ForeignKey("staff.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    purchase_id = db.Column(GUID(), db.ForeignKey("purchases.id"), nullable=False, unique=True)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    status = db.Column(
        db.Enum(PaymentStatus, values_callable=_enum_values, name="salary_payment_status"),
        nullable=False,
        default=PaymentStatus.completed,
    )
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    staff = db.relationship("Staff", backref=db.backref("salary_payments", lazy="dynamic"))
    purchase = db.relationship("Purchase", backref=db.backref("salary_payment", uselist=False))
