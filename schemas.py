from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_load, validates
from marshmallow.validate import Length, OneOf

from models import PaymentStatus, StaffStatus

# --- helpers ---------------------------------------------------------------

VALID_STAFF_STATUSES = [status.value for status in StaffStatus]
VALID_PAYMENT_STATUSES = [status.value for status in PaymentStatus]


def _enum_value(value):
    if isinstance(value, Enum):
        return value.value
    return value


def _to_naive_utc(value):
    """Drop timezone info after converting to UTC; columns store naive UTC."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _normalize_date_text(value):
    """Accept ``YYYY-MM-DD`` as well as full ISO datetimes for payment dates."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return None
    if len(text) == 10:
        return f"{text}T00:00:00"
    if text.endswith("Z"):
        return f"{text[:-1]}+00:00"
    return text


class UserSchema(Schema):
    id = fields.Int()
    username = fields.Str()
    name = fields.Str()
    email = fields.Str()
    role = fields.Method("get_role")

    def get_role(self, obj):
        return _enum_value(getattr(obj, "role", None))


# --- staff -----------------------------------------------------------------

class StaffSchema(Schema):
    """Serialize Staff rows for API responses."""
    id = fields.Str(dump_only=True)
    name = fields.Str()
    address = fields.Str()
    phone = fields.Str()
    salary = fields.Float()
    status = fields.Method("get_status")
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)

    class Meta:
        ordered = True

    def get_status(self, obj):
        return _enum_value(getattr(obj, "status", None))


class StaffCreateSchema(Schema):
    """Validate staff payloads for creates; load with ``partial=True`` for updates."""

    name = fields.Str(required=True, validate=Length(min=2, max=100))
    address = fields.Str(required=True, validate=Length(min=1))
    phone = fields.Str(required=True, validate=Length(min=7, max=20))
    salary = fields.Decimal(required=True)
    status = fields.Str(load_default=StaffStatus.active.value, validate=OneOf(VALID_STAFF_STATUSES))

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def strip_strings(self, in_data, **kwargs):
        data = dict(in_data or {})
        for key in ("name", "address", "phone", "status"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        if isinstance(data.get("status"), str):
            data["status"] = data["status"].lower()
        if isinstance(data.get("salary"), bool):
            # ``True`` would otherwise load as Decimal("1")
            data["salary"] = "invalid"
        return data

    @validates("salary")
    def validate_salary(self, value, **kwargs):
        if value is None or value <= Decimal("0"):
            raise ValidationError("Salary must be a positive number")
        if value >= Decimal("100000000"):
            raise ValidationError("Salary is too large")


# --- purchases -------------------------------------------------------------

class PurchaseSchema(Schema):
    id = fields.Str()
    name = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    total_amount = fields.Int()
    status = fields.Method("get_status")
    supplier_name = fields.Str(allow_none=True)
    purchase_date = fields.DateTime(allow_none=True)
    notes = fields.Str(allow_none=True)
    user_id = fields.Int(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    class Meta:
        ordered = True

    def get_status(self, obj):
        return _enum_value(getattr(obj, "status", None))


class PurchaseStatusUpdateSchema(Schema):
    status = fields.Str(required=True, validate=OneOf(VALID_PAYMENT_STATUSES))

    class Meta:
        unknown = EXCLUDE


# --- salary payments -------------------------------------------------------

class SalaryPaymentSchema(Schema):
    id = fields.Str()
    staff_id = fields.Str()
    amount = fields.Float()
    payment_date = fields.DateTime()
    month = fields.Int()
    year = fields.Int()
    status = fields.Method("get_status")
    notes = fields.Str(allow_none=True)
    purchase_id = fields.Str()

    class Meta:
        ordered = True

    def get_status(self, obj):
        return _enum_value(getattr(obj, "status", None))


class SalaryHistorySchema(SalaryPaymentSchema):
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
    purchase = fields.Nested(
        PurchaseSchema,
        only=("id", "name", "description", "total_amount", "status", "created_at"),
        allow_none=True,
    )


class SalaryDisbursementRequestSchema(Schema):
    """Body accepted by the single and bulk pay-salary endpoints."""

    payment_date = fields.DateTime(data_key="paymentDate", allow_none=True, load_default=None)
    notes = fields.Str(allow_none=True, load_default=None, validate=Length(max=2000))

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def normalize_inputs(self, in_data, **kwargs):
        data = dict(in_data or {})
        if "paymentDate" in data:
            data["paymentDate"] = _normalize_date_text(data.get("paymentDate"))
        if isinstance(data.get("notes"), str):
            data["notes"] = data["notes"].strip() or None
        return data

    @post_load
    def naive_payment_date(self, data, **kwargs):
        data["payment_date"] = _to_naive_utc(data.get("payment_date"))
        return data


# --- disbursement results --------------------------------------------------

class DisbursedEntrySchema(Schema):
    staff_id = fields.Str()
    staff_name = fields.Str()
    amount = fields.Float()
    salary_payment_id = fields.Str()
    purchase_id = fields.Str()


class SkippedEntrySchema(Schema):
    staff_id = fields.Str()
    staff_name = fields.Str()
    reason = fields.Str()


class FailedEntrySchema(Schema):
    staff_id = fields.Str()
    staff_name = fields.Str()
    error = fields.Str()


class DisbursementResultSchema(Schema):
    successful = fields.List(fields.Nested(DisbursedEntrySchema))
    skipped = fields.List(fields.Nested(SkippedEntrySchema))
    failed = fields.List(fields.Nested(FailedEntrySchema))
