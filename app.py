import os
from datetime import datetime
from typing import Optional, Tuple

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from alembic.script import ScriptDirectory
from flask import Flask, jsonify
from sqlalchemy import create_engine, func, or_, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, ProgrammingError

from config import Config, current_database_url
from extensions import db, enable_sqlite_savepoints, migrate, jwt
from models import RoleEnum, User
from payroll import PayrollError, sql_payroll_engine
from routes import (
    auth,
    payroll,
    purchases,
    staff,
)


if os.name != "nt":  # pragma: no cover - platform dependent import
    import fcntl  # type: ignore[import-not-found]
else:  # pragma: no cover - Windows fallback
    fcntl = None  # type: ignore[assignment]


def _ensure_database_exists(database_url: str | None) -> None:
    if not database_url:
        return

    url = make_url(database_url)
    backend = (url.get_backend_name() or "").lower()

    if backend.startswith("sqlite"):
        database_path = url.database
        if database_path and database_path not in {":memory:", ""}:
            directory = os.path.dirname(os.path.abspath(database_path))
            if directory:
                os.makedirs(directory, exist_ok=True)
        return

    database_name = url.database
    if not database_name:
        return

    engine = create_engine(url)
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return
    except OperationalError:
        pass
    finally:
        engine.dispose()

    if not backend.startswith("postgresql"):
        return

    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
    try:
        with admin_engine.connect() as connection:
            exists = connection.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": database_name},
            ).scalar()
            if not exists:
                connection.execute(text(f'CREATE DATABASE "{database_name}"'))
    finally:
        admin_engine.dispose()


def _run_database_migrations(app: Flask) -> None:
    """Apply Alembic migrations if the schema is not up-to-date."""

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        return

    if database_uri.startswith("sqlite") and ":memory:" in database_uri:
        return

    migrations_dir = os.path.join(app.root_path, "migrations")
    alembic_ini = os.path.join(migrations_dir, "alembic.ini")
    if not os.path.exists(alembic_ini):
        return

    config = AlembicConfig(alembic_ini)
    config.set_main_option("script_location", migrations_dir)
    config.set_main_option("sqlalchemy.url", database_uri)

    script = ScriptDirectory.from_config(config)
    head_revision = script.get_current_head()
    if not head_revision:
        return

    def _current_revision() -> str | None:
        try:
            with db.engine.connect() as connection:
                return connection.execute(text("SELECT version_num FROM alembic_version")).scalar()
        except (OperationalError, ProgrammingError):
            return None

    with app.app_context():
        if _current_revision() == head_revision:
            return

        lock_path = os.path.join(app.instance_path, "alembic.lock")
        os.makedirs(app.instance_path, exist_ok=True)
        lock_file = open(lock_path, "w")
        try:
            if fcntl is not None:
                fcntl.flock(lock_file, fcntl.LOCK_EX)

            if _current_revision() == head_revision:
                return

            app.logger.info("Applying database migrations…")
            try:
                command.upgrade(config, "head")
            except Exception:
                if _current_revision() != head_revision:
                    raise
        finally:
            if fcntl is not None:
                fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def _register_jwt_handlers() -> None:
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"success": False, "error": "Authentication required"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"success": False, "error": "Invalid token"}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"success": False, "error": "Token has expired"}), 401


def create_app():
    app = Flask(__name__)
    app.config.from_object(Config)
    database_url = current_database_url()
    _ensure_database_exists(database_url)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    db.init_app(app)
    enable_sqlite_savepoints(app)
    migrate.init_app(app, db)
    _run_database_migrations(app)
    jwt.init_app(app)
    _register_jwt_handlers()

    app.register_blueprint(auth.bp)
    app.register_blueprint(staff.bp)
    app.register_blueprint(payroll.bp)
    app.register_blueprint(purchases.bp)

    @app.get("/api/health")
    def health(): return jsonify({"ok": True})

    return app


app = create_app()


def _normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def _ensure_admin_user(
    flask_app=None,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    name: Optional[str] = None,
    ensure_if_missing: bool = True,
    force_reset: bool = False,
) -> Tuple[str, str]:
    """Ensure an admin user exists and optionally reset its password.

    Returns a tuple of (status, username) where status is one of
    ``{"created", "reset", "updated", "skipped"}``.
    """

    target_username = (username or os.getenv("ADMIN_USERNAME", "admin")).strip()
    target_app = flask_app or globals().get("app")
    if target_app is None:
        return "skipped", target_username

    normalized_email = _normalize_email(email or os.getenv("ADMIN_EMAIL", "admin@restaurant.local"))
    password = password or os.getenv("ADMIN_PASSWORD", "Admin@123")
    provided_name = name if name is not None else os.getenv("ADMIN_NAME")
    target_name = (provided_name or "").strip() or None

    with target_app.app_context():
        try:
            admin = User.query.filter(
                or_(func.lower(User.username) == target_username.lower(), func.lower(User.email) == normalized_email)
            ).first()
        except (OperationalError, ProgrammingError):
            # Tables might not be ready yet (e.g. before migrations run)
            return "skipped", target_username

        if admin:
            status = "skipped"
            if admin.role != RoleEnum.admin:
                admin.role = RoleEnum.admin
                status = "updated"
            if target_name and admin.name != target_name:
                admin.name = target_name
                status = "updated"
            if force_reset:
                admin.set_password(password)
                status = "reset"

            if status != "skipped":
                db.session.commit()
            return status, admin.username

        if not ensure_if_missing:
            return "skipped", target_username

        if not force_reset:
            # Avoid creating duplicate admins when one already exists
            existing_admin = User.query.filter_by(role=RoleEnum.admin).first()
            if existing_admin:
                return "skipped", target_username

        admin = User(
            username=target_username,
            name=target_name or "Admin",
            email=normalized_email,
            role=RoleEnum.admin,
            active=True,
        )
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        return "created", target_username


def _bootstrap_admin_user(flask_app=None):
    status, username = _ensure_admin_user(
        flask_app=flask_app,
        force_reset=os.getenv("RUN_SEED_ADMIN") == "1",
    )
    if status == "created":
        print(f"✅ Admin created: {username}")
    elif status == "reset":
        print(f"✅ Admin password reset: {username}")
    elif status == "updated":
        print(f"✅ Admin role updated: {username}")


# Call the hook at startup (idempotent)
_bootstrap_admin_user(flask_app=app)


# ---- CLI: seed or reset admin ----
@app.cli.command("seed-admin")
@click.option("--username", default="admin", help="Admin username")
@click.option("--email", default="admin@restaurant.local", help="Admin email")
@click.option("--password", default="Admin@123", help="Admin password")
@click.option("--name", default="Admin", help="Admin display name")
def seed_admin(username, email, password, name):
    """Create or reset the admin user."""
    with app.app_context():
        status, username = _ensure_admin_user(
            flask_app=app,
            username=username,
            email=email,
            password=password,
            name=name,
            ensure_if_missing=True,
            force_reset=True,
        )

        if status == "created":
            click.echo(f"✅ Admin created: {username}")
        elif status == "reset":
            click.echo(f"✅ Admin password reset: {username}")
        elif status == "updated":
            click.echo(f"✅ Admin role updated: {username}")
        else:
            click.echo(f"ℹ️ Admin already up-to-date: {username}")


# ---- CLI: bulk salary run ----
@app.cli.command("pay-salaries")
@click.option("--date", "payment_date", help="Payment date in YYYY-MM-DD format (defaults to today)")
@click.option("--notes", default=None, help="Notes stored on every payment")
def pay_salaries(payment_date, notes):
    """Pay all active staff for the month of the payment date."""

    if payment_date:
        try:
            paid_at = datetime.strptime(payment_date, "%Y-%m-%d")
        except ValueError as exc:  # pragma: no cover - CLI validation
            raise click.BadParameter("Date must use YYYY-MM-DD format.") from exc
    else:
        paid_at = None

    # Flask CLI commands already run inside an application context.
    engine = sql_payroll_engine(logger=app.logger)
    try:
        result = engine.disburse_active(notes=notes, payment_date=paid_at)
    except PayrollError as exc:
        raise click.ClickException(exc.message) from exc

    click.echo(f"✅ {result.message()} ({result.period.label})")
    for entry in result.skipped:
        click.echo(f"  skipped {entry.staff_name}: {entry.reason}")
    for entry in result.failed:
        click.echo(f"  failed {entry.staff_name}: {entry.error}")


if __name__ == "__main__":
    app.run(debug=True, port=int(os.getenv("PORT", 5000)))
