from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from extensions import db
from models import PaymentStatus, Purchase, coerce_uuid
from pagination import paginate, pagination_payload, parse_pagination
from schemas import PurchaseSchema, PurchaseStatusUpdateSchema

bp = Blueprint("purchases", __name__, url_prefix="/api/v1/purchase")
purchase_schema = PurchaseSchema()
purchases_schema = PurchaseSchema(many=True)
status_update_schema = PurchaseStatusUpdateSchema()


def _error(message: str, status: int, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


def _find_purchase(purchase_id: str):
    key = coerce_uuid(purchase_id)
    return db.session.get(Purchase, key) if key is not None else None


@bp.get("")
@jwt_required()
def list_purchases():
    page, page_size = parse_pagination(
        request.args,
        default_page_size=current_app.config.get("DEFAULT_PAGE_SIZE", 10),
        max_page_size=current_app.config.get("MAX_PAGE_SIZE", 100),
    )
    query = Purchase.query

    status = (request.args.get("status") or "").strip().lower()
    if status:
        try:
            query = query.filter(Purchase.status == PaymentStatus(status))
        except ValueError:
            return _error("Invalid status filter", 400)

    supplier = (request.args.get("supplier") or "").strip()
    if supplier:
        query = query.filter(Purchase.supplier_name.ilike(f"%{supplier}%"))

    purchases, total_items = paginate(query.order_by(Purchase.created_at.desc()), page, page_size)
    return jsonify(
        {
            "success": True,
            "purchases": purchases_schema.dump(purchases),
            "pagination": pagination_payload(page, page_size, total_items),
        }
    )


@bp.get("/<purchase_id>")
@jwt_required()
def get_purchase(purchase_id: str):
    purchase = _find_purchase(purchase_id)
    if purchase is None:
        return _error("Purchase not found", 404)
    return jsonify({"success": True, "purchase": purchase_schema.dump(purchase)})


@bp.put("/<purchase_id>")
@jwt_required()
def update_purchase_status(purchase_id: str):
    purchase = _find_purchase(purchase_id)
    if purchase is None:
        return _error("Purchase not found", 404)

    try:
        data = status_update_schema.load(request.get_json(silent=True) or {})
    except ValidationError:
        return _error("Status is required and must be pending, completed, or cancelled", 400)

    purchase.status = PaymentStatus(data["status"])
    db.session.commit()
    current_app.logger.info(
        {"event": "purchase_status_updated", "purchase_id": purchase_id, "status": purchase.status.value}
    )
    return jsonify({"success": True, "message": "Purchase updated successfully", "purchase": purchase_schema.dump(purchase)})
