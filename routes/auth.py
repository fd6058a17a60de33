from flask import Blueprint, jsonify, request
from flask_jwt_extended import create_access_token, get_jwt, jwt_required
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import RoleEnum, User
from schemas import UserSchema

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
user_schema = UserSchema()


def current_role() -> RoleEnum | None:
    claims = get_jwt() or {}
    try:
        return RoleEnum(claims.get("role"))
    except (ValueError, TypeError):
        return None


def require_role(*roles):
    role = current_role()
    return role is not None and role in roles


def current_user_id() -> int | None:
    try:
        return int(get_jwt().get("sub"))
    except (TypeError, ValueError):
        return None


@bp.post("/login")
def login():
    payload = request.get_json(silent=True)
    if not payload:
        payload = request.form.to_dict() if request.form else {}

    username = (payload.get("username") or payload.get("email") or "").strip()
    password = payload.get("password") or ""

    if not username or not password:
        return jsonify({"success": False, "error": "Username and password are required"}), 400

    lowered = username.lower()
    u = User.query.filter(
        or_(func.lower(User.username) == lowered, func.lower(User.email) == lowered)
    ).first()
    if not u or not u.check_password(password) or not u.active:
        return jsonify({"success": False, "error": "Invalid username or password"}), 401

    token = create_access_token(identity=str(u.id), additional_claims={"role": u.role.value})
    return jsonify(
        {
            "success": True,
            "message": "Authentication successful",
            "data": {"token": token, "user": user_schema.dump(u)},
        }
    )


@bp.post("/register")
@jwt_required()  # only admins can register
def register():
    if not require_role(RoleEnum.admin):
        return jsonify({"success": False, "error": "Admins only"}), 403

    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    name = (data.get("name") or "").strip() or username
    role = data.get("role") or RoleEnum.staff.value
    password = data.get("password")

    if not username or not email or not password:
        return jsonify({"success": False, "error": "Username, email, and password are required"}), 400

    try:
        role_enum = RoleEnum(role)
    except ValueError:
        return jsonify({"success": False, "error": "Invalid role"}), 400

    u = User(username=username, name=name, email=email, role=role_enum)
    u.set_password(password)
    db.session.add(u)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"success": False, "error": "Username or email already exists"}), 400
    return jsonify({"success": True, "user": user_schema.dump(u)}), 201
