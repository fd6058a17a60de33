"""Salary disbursement endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from payroll import AlreadyPaid, PayrollError, sql_payroll_engine
from routes.auth import current_role, current_user_id
from schemas import (
    DisbursementResultSchema,
    PurchaseSchema,
    SalaryDisbursementRequestSchema,
    SalaryPaymentSchema,
)

bp = Blueprint("payroll", __name__, url_prefix="/api/v1/staff")
request_schema = SalaryDisbursementRequestSchema()
salary_payment_schema = SalaryPaymentSchema()
existing_payment_schema = SalaryPaymentSchema(only=("id", "amount", "payment_date", "status"))
purchase_schema = PurchaseSchema(only=("id", "name", "description", "total_amount", "status"))
result_schema = DisbursementResultSchema()


def _error(message: str, status: int, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


def _can_disburse() -> bool:
    role = current_role()
    return role is not None and role.value in current_app.config.get("PAYROLL_ALLOWED_ROLES", ())


def _load_request():
    payload = request.get_json(silent=True) or {}
    return request_schema.load(payload)


@bp.post("/<staff_id>/pay-salary")
@jwt_required()
def pay_salary(staff_id: str):
    if not _can_disburse():
        return _error("Only administrators or managers can pay salaries", 403)
    try:
        data = _load_request()
    except ValidationError as error:
        return _error("Validation failed", 400, errors=error.normalized_messages())

    engine = sql_payroll_engine(logger=current_app.logger)
    try:
        payment, purchase = engine.disburse_one(
            staff_id,
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
            created_by=current_user_id(),
        )
    except AlreadyPaid as exc:
        extra = {}
        if exc.existing_payment is not None:
            extra["existingPayment"] = existing_payment_schema.dump(exc.existing_payment)
        return _error(exc.message, 400, **extra)
    except PayrollError as exc:
        if exc.status_code >= 500:
            current_app.logger.exception(
                {"event": "salary_payment_failed", "staff_id": staff_id, "message": exc.message}
            )
            return _error("Failed to process salary payment", 500)
        return _error(exc.message, exc.status_code)

    return (
        jsonify(
            {
                "success": True,
                "message": "Salary payment processed successfully",
                "salaryPayment": salary_payment_schema.dump(payment),
                "purchase": purchase_schema.dump(purchase),
            }
        ),
        201,
    )


@bp.post("/pay-salaries")
@jwt_required()
def pay_salaries():
    if not _can_disburse():
        return _error("Only administrators or managers can pay salaries", 403)
    try:
        data = _load_request()
    except ValidationError as error:
        return _error("Validation failed", 400, errors=error.normalized_messages())

    engine = sql_payroll_engine(logger=current_app.logger)
    try:
        result = engine.disburse_active(
            notes=data.get("notes"),
            payment_date=data.get("payment_date"),
            created_by=current_user_id(),
        )
    except PayrollError as exc:
        if exc.status_code >= 500:
            current_app.logger.exception({"event": "salary_bulk_failed", "message": exc.message})
            return _error("Failed to process bulk salary payments", 500)
        return _error(exc.message, exc.status_code)

    return jsonify(
        {
            "success": True,
            "message": result.message(),
            "summary": result.summary(),
            "results": result_schema.dump(result),
        }
    )
