"""create users, staff, purchases and salary payment tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2025-01-10 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


ROLE_VALUES = ("Admin", "Manager", "Staff")
STAFF_STATUS_VALUES = ("active", "inactive")
PAYMENT_STATUS_VALUES = ("pending", "completed", "cancelled")


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=80), nullable=False, unique=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("role", sa.Enum(*ROLE_VALUES, name="user_role"), nullable=False, server_default="Staff"),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.CHAR(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False, unique=True),
        sa.Column("salary", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(*STAFF_STATUS_VALUES, name="staff_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("salary >= 0", name="ck_staff_salary_non_negative"),
    )
    op.create_index("ix_staff_status", "staff", ["status"])

    op.create_table(
        "purchases",
        sa.Column("id", sa.CHAR(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*PAYMENT_STATUS_VALUES, name="purchase_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("supplier_name", sa.String(length=100), nullable=True),
        sa.Column("purchase_date", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_amount >= 0", name="ck_purchase_total_non_negative"),
    )
    op.create_index("ix_purchases_status", "purchases", ["status"])

    op.create_table(
        "salary_payments",
        sa.Column("id", sa.CHAR(length=36), primary_key=True),
        sa.Column("staff_id", sa.CHAR(length=36), sa.ForeignKey("staff.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_date", sa.DateTime(), nullable=False),
        sa.Column("purchase_id", sa.CHAR(length=36), sa.ForeignKey("purchases.id"), nullable=False, unique=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*PAYMENT_STATUS_VALUES, name="salary_payment_status"),
            nullable=False,
            server_default="completed",
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("staff_id", "month", "year", name="uq_salary_payment_staff_month_year"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_salary_payment_month"),
        sa.CheckConstraint("amount >= 0", name="ck_salary_payment_amount_non_negative"),
    )
    op.create_index("ix_salary_payments_staff_id", "salary_payments", ["staff_id"])


def downgrade():
    op.drop_index("ix_salary_payments_staff_id", table_name="salary_payments")
    op.drop_table("salary_payments")
    op.drop_index("ix_purchases_status", table_name="purchases")
    op.drop_table("purchases")
    op.drop_index("ix_staff_status", table_name="staff")
    op.drop_table("staff")
    op.drop_table("user")

    bind = op.get_bind()
    for enum_name in ("salary_payment_status", "purchase_status", "staff_status", "user_role"):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
