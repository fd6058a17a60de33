from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from extensions import db
from models import PaymentStatus, SalaryPayment, Staff, StaffStatus, coerce_uuid
from pagination import paginate, pagination_payload, parse_pagination
from schemas import SalaryHistorySchema, StaffCreateSchema, StaffSchema

bp = Blueprint("staff", __name__, url_prefix="/api/v1/staff")
staff_schema = StaffSchema()
staff_list_schema = StaffSchema(many=True)
staff_create_schema = StaffCreateSchema()
salary_history_schema = SalaryHistorySchema(many=True)


def _error(message: str, status: int, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


def _page_args():
    return parse_pagination(
        request.args,
        default_page_size=current_app.config.get("DEFAULT_PAGE_SIZE", 10),
        max_page_size=current_app.config.get("MAX_PAGE_SIZE", 100),
    )


def _find_staff(staff_id: str) -> Staff | None:
    key = coerce_uuid(staff_id)
    if key is None:
        return None
    return db.session.get(Staff, key)


def _phone_taken(phone: str, exclude_id=None) -> bool:
    query = Staff.query.filter(Staff.phone == phone)
    if exclude_id is not None:
        query = query.filter(Staff.id != exclude_id)
    return db.session.query(query.exists()).scalar()


@bp.get("")
@jwt_required()
def list_staff():
    page, page_size = _page_args()
    query = Staff.query

    status = (request.args.get("status") or "").strip().lower()
    if status:
        try:
            query = query.filter(Staff.status == StaffStatus(status))
        except ValueError:
            return _error("Invalid status filter", 400)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Staff.name.ilike(like), Staff.phone.ilike(like), Staff.address.ilike(like)))

    try:
        members, total_items = paginate(query.order_by(Staff.created_at.desc()), page, page_size)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception({"event": "staff_list_failed"})
        return _error("Database error", 500)

    return jsonify(
        {
            "success": True,
            "message": "Staff retrieved successfully",
            "staff": staff_list_schema.dump(members),
            "pagination": pagination_payload(page, page_size, total_items),
        }
    )


@bp.post("")
@jwt_required()
def create_staff():
    payload = request.get_json(silent=True) or {}
    try:
        data = staff_create_schema.load(payload)
    except ValidationError as error:
        return _error("Validation failed", 400, errors=error.normalized_messages())

    if _phone_taken(data["phone"]):
        return _error("Phone number already exists", 400)

    staff = Staff(
        name=data["name"],
        address=data["address"],
        phone=data["phone"],
        salary=data["salary"],
        status=StaffStatus(data["status"]),
    )
    db.session.add(staff)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _error("Phone number already exists", 400)

    current_app.logger.info({"event": "staff_created", "staff_id": str(staff.id)})
    return jsonify({"success": True, "message": "Staff created successfully", "staff": staff_schema.dump(staff)}), 201


@bp.get("/<staff_id>")
@jwt_required()
def get_staff(staff_id: str):
    staff = _find_staff(staff_id)
    if staff is None:
        return _error("Staff not found", 404)
    return jsonify({"success": True, "staff": staff_schema.dump(staff)})


@bp.put("/<staff_id>")
@jwt_required()
def update_staff(staff_id: str):
    staff = _find_staff(staff_id)
    if staff is None:
        return _error("Staff not found", 404)

    payload = request.get_json(silent=True) or {}
    # Omitted keys keep their stored values; explicit nulls are ignored the same way.
    payload = {key: value for key, value in payload.items() if value is not None}
    try:
        data = staff_create_schema.load(payload, partial=True)
    except ValidationError as error:
        return _error("Validation failed", 400, errors=error.normalized_messages())

    phone = data.get("phone")
    if phone and phone != staff.phone and _phone_taken(phone, exclude_id=staff.id):
        return _error("Phone number already exists", 400)

    for field in ("name", "address", "phone", "salary"):
        if field in data:
            setattr(staff, field, data[field])
    if "status" in data:
        staff.status = StaffStatus(data["status"])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _error("Phone number already exists", 400)

    return jsonify({"success": True, "message": "Staff updated successfully", "staff": staff_schema.dump(staff)})


@bp.delete("/<staff_id>")
@jwt_required()
def delete_staff(staff_id: str):
    staff = _find_staff(staff_id)
    if staff is None:
        return _error("Staff not found", 404)

    if staff.salary_payments.count():
        return _error("Staff with salary payments cannot be deleted; set them inactive instead", 400)

    db.session.delete(staff)
    db.session.commit()
    current_app.logger.info({"event": "staff_deleted", "staff_id": staff_id})
    return jsonify({"success": True, "message": "Staff deleted successfully"})


@bp.get("/<staff_id>/salaries")
@jwt_required()
def salary_history(staff_id: str):
    staff = _find_staff(staff_id)
    if staff is None:
        return _error("Staff not found", 404)

    page, page_size = _page_args()
    filters = [SalaryPayment.staff_id == staff.id]
    for key in ("year", "month"):
        raw = request.args.get(key)
        if raw:
            try:
                filters.append(getattr(SalaryPayment, key) == int(raw))
            except ValueError:
                return _error(f"Invalid {key} filter", 400)
    status = (request.args.get("status") or "").strip().lower()
    if status:
        try:
            filters.append(SalaryPayment.status == PaymentStatus(status))
        except ValueError:
            return _error("Invalid status filter", 400)

    try:
        query = (
            SalaryPayment.query.options(joinedload(SalaryPayment.purchase))
            .filter(*filters)
            .order_by(SalaryPayment.payment_date.desc())
        )
        payments, total_items = paginate(query, page, page_size)
        total_paid = (
            db.session.query(func.coalesce(func.sum(SalaryPayment.amount), 0)).filter(*filters).scalar()
        )
        yearly_rows = (
            db.session.query(
                SalaryPayment.year,
                func.count(SalaryPayment.id),
                func.coalesce(func.sum(SalaryPayment.amount), 0),
            )
            .filter(SalaryPayment.staff_id == staff.id)
            .group_by(SalaryPayment.year)
            .order_by(SalaryPayment.year.desc())
            .all()
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception({"event": "salary_history_failed", "staff_id": staff_id})
        return _error("Database error", 500)

    total_paid = float(total_paid or 0)
    return jsonify(
        {
            "success": True,
            "message": "Salary history retrieved successfully",
            "staff": {
                "id": str(staff.id),
                "name": staff.name,
                "current_salary": float(staff.salary),
                "status": staff.status.value,
            },
            "salaryPayments": salary_history_schema.dump(payments),
            "summary": {
                "totalPayments": total_items,
                "totalPaid": total_paid,
                "averagePayment": total_paid / total_items if total_items else 0,
                "yearlyStats": [
                    {"year": year, "payment_count": int(count), "total_amount": float(amount or 0)}
                    for year, count, amount in yearly_rows
                ],
            },
            "pagination": pagination_payload(page, page_size, total_items),
        }
    )
