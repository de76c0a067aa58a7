"""Initial schema: profiles, catalog, bookings, payments and audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUSES = "'Confirmed', 'Occupied', 'Reserved', 'Pending Payment', 'Pending Verification'"
ALL_STATUSES = (
    "'Reserved', 'Pending Payment', 'Pending Verification', 'Confirmed', "
    "'Occupied', 'Completed', 'Cancelled', 'Maintenance'"
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # btree_gist lets the exclusion constraint mix "=" on room_id with "&&" on ranges
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'student'")),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('student', 'staff', 'proprietor')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("room_number", sa.String(20), nullable=False, unique=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("price_per_month", sa.Numeric(10, 2), nullable=False),
        sa.Column("gender_restriction", sa.String(10), nullable=False, server_default=sa.text("'Any'")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("amenities", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        *_timestamps(),
        sa.CheckConstraint("price_per_month >= 0", name="check_room_price_non_negative"),
        sa.CheckConstraint("type IN ('Single', 'Double', 'Suite')", name="check_room_type"),
        sa.CheckConstraint(
            "gender_restriction IN ('Male', 'Female', 'Any')", name="check_room_gender_restriction"
        ),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])

    op.create_table(
        "academic_terms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("term_name", sa.String(100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("end_date > start_date", name="check_term_dates"),
    )
    op.create_index("ix_academic_terms_id", "academic_terms", ["id"])

    op.create_table(
        "booking_packages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("description", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("duration_months > 0", name="check_package_duration_positive"),
        sa.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="check_package_discount_range",
        ),
    )
    op.create_index("ix_booking_packages_id", "booking_packages", ["id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("academic_term_id", sa.Integer(), sa.ForeignKey("academic_terms.id"), nullable=False),
        sa.Column("booking_package_id", sa.Integer(), sa.ForeignKey("booking_packages.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_date > start_date", name="check_booking_dates"),
        sa.CheckConstraint("total_price >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint(f"status IN ({ALL_STATUSES})", name="check_booking_status"),
        sa.CheckConstraint(
            "payment_method IN ('Online', 'Bank Transfer')", name="check_booking_payment_method"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"])
    op.create_index("ix_bookings_room_id", "bookings", ["room_id"])
    op.create_index("ix_bookings_status_dates", "bookings", ["status", "start_date", "end_date"])
    # NO DOUBLE BOOKING: the only thing standing between two concurrent
    # requests for the same room. The second overlapping insert waits for the
    # first transaction and fails with SQLSTATE 23P01 if it commits.
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT no_double_booking "
        "EXCLUDE USING gist (room_id WITH =, daterange(start_date, end_date, '[)') WITH &&) "
        f"WHERE (status IN ({ACTIVE_STATUSES}))"
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("provider_transaction_id", sa.String(255), nullable=True, unique=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        sa.CheckConstraint("method IN ('Online', 'Bank Transfer')", name="check_payment_method"),
        sa.CheckConstraint(
            "status IN ('Pending', 'Pending Verification', 'Succeeded', 'Failed')",
            name="check_payment_status",
        ),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    # At most one open payment per booking
    op.create_index(
        "uq_payments_one_open_per_booking",
        "payments",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('Pending', 'Pending Verification')"),
    )

    op.create_table(
        "admin_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("target_id", sa.String(64), nullable=False),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_admin_audit_log_id", "admin_audit_log", ["id"])
    op.create_index("ix_admin_audit_log_user_id", "admin_audit_log", ["user_id"])
    op.create_index("ix_admin_audit_log_target_id", "admin_audit_log", ["target_id"])


def downgrade() -> None:
    op.drop_table("admin_audit_log")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("booking_packages")
    op.drop_table("academic_terms")
    op.drop_table("rooms")
    op.drop_table("users")
