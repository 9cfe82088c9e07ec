"""Initial schema: users, tickets, bookings, commission ledger, notifications,
email outbox and backup logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_BOOKING = sa.text("booking_status IN ('pending', 'confirmed')")


def upgrade() -> None:
    # Users table: admins, managers and agents
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'agent'")),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("5")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('admin', 'manager', 'agent')", name="check_user_role"),
        sa.CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="check_commission_rate_range",
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Tickets table. No status column: available/locked/sold is derived from bookings.
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("airline", sa.String(120), nullable=False),
        sa.Column("flight_number", sa.String(20), nullable=False),
        sa.Column("country", sa.String(80), nullable=False),
        sa.Column("departure_city", sa.String(80), nullable=False),
        sa.Column("arrival_city", sa.String(80), nullable=False),
        sa.Column("departure_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("buying_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("selling_price > 0", name="check_ticket_selling_price_positive"),
        sa.CheckConstraint("buying_price >= 0", name="check_ticket_buying_price_non_negative"),
    )
    op.create_index("ix_tickets_id", "tickets", ["id"])
    # Inventory pages browse one country at a time, ordered by departure
    op.create_index("ix_tickets_country_departure", "tickets", ["country", "departure_at"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_reference", sa.String(32), nullable=False),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id"), nullable=False),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("passenger_name", sa.String(255), nullable=False),
        sa.Column("passport_number", sa.String(32), nullable=False),
        sa.Column("mobile_number", sa.String(20), nullable=False),
        sa.Column("passenger_email", sa.String(255), nullable=True),
        sa.Column("pax_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("passengers", sa.JSON(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(40), nullable=True),
        sa.Column("transaction_id", sa.String(120), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("booking_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comments", sa.String(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("pax_count BETWEEN 1 AND 9", name="check_booking_pax_count"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'cancelled', 'expired')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'partial', 'full')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint(
            "(booking_status = 'confirmed') = (confirmed_at IS NOT NULL)",
            name="check_booking_confirmed_at",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"], unique=True)
    op.create_index("ix_bookings_ticket_id", "bookings", ["ticket_id"])
    op.create_index("ix_bookings_agent_id", "bookings", ["agent_id"])
    op.create_index("ix_bookings_passport_number", "bookings", ["passport_number"])
    op.create_index("ix_bookings_mobile_number", "bookings", ["mobile_number"])
    # ONE ACTIVE BOOKING PER TICKET: the partial unique index is what makes
    # concurrent creates safe. The second INSERT for a held ticket fails with
    # a unique violation no matter how the two transactions interleave.
    op.create_index(
        "uq_bookings_active_ticket",
        "bookings",
        ["ticket_id"],
        unique=True,
        postgresql_where=ACTIVE_BOOKING,
        sqlite_where=ACTIVE_BOOKING,
    )
    # Sweep query: WHERE booking_status = 'pending' AND expires_at <= now
    op.create_index("ix_bookings_status_expires", "bookings", ["booking_status", "expires_at"])
    # "My bookings, newest first"
    op.create_index("ix_bookings_agent_created", "bookings", ["agent_id", "created_at"])

    # Commission ledger, one row per confirmed booking
    op.create_table(
        "commission_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_commission_records_id", "commission_records", ["id"])
    op.create_index("ix_commission_records_agent_id", "commission_records", ["agent_id"])

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.String(1024), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("booking_id", "type", name="uq_notification_booking_type"),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    # Delivery scan: WHERE scheduled_for <= now AND sent_at IS NULL
    op.create_index("ix_notifications_due", "notifications", ["scheduled_for", "sent_at"])

    # Email outbox
    op.create_table(
        "email_dispatches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("template", sa.String(60), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.String(1000), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("booking_id", "template", name="uq_email_dispatch_booking_template"),
    )
    op.create_index("ix_email_dispatches_id", "email_dispatches", ["id"])
    op.create_index("ix_email_dispatches_status", "email_dispatches", ["status"])

    # Backup logs
    op.create_table(
        "backup_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("backup_type", sa.String(20), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("error_message", sa.String(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_backup_logs_id", "backup_logs", ["id"])
    op.create_index("ix_backup_logs_created_at", "backup_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("backup_logs")
    op.drop_table("email_dispatches")
    op.drop_table("notifications")
    op.drop_table("commission_records")
    op.drop_table("bookings")
    op.drop_table("tickets")
    op.drop_table("users")
