"""Initial schema: staff, ticket catalog, purchases, gate log, finance and circles.

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


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'staff')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "ticket_types",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False, server_default=""),
        sa.Column("price_idr", sa.BigInteger(), nullable=False),
        sa.Column("price_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("day", sa.String(20), nullable=True),
        sa.Column("benefits", sa.JSON(), nullable=False),
        sa.Column("max_quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("early_bird_price_idr", sa.BigInteger(), nullable=True),
        sa.Column("early_bird_price_usd", sa.Numeric(10, 2), nullable=True),
        sa.Column("early_bird_end_date", sa.Date(), nullable=True),
        sa.Column("age_restriction", sa.String(20), nullable=True),
        sa.Column("requires_id", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("available_quantity >= 0", name="check_ticket_available_non_negative"),
        sa.CheckConstraint("available_quantity <= max_quantity", name="check_ticket_available_lte_max"),
        sa.CheckConstraint("price_idr >= 0", name="check_ticket_price_idr_non_negative"),
        sa.CheckConstraint("price_usd >= 0", name="check_ticket_price_usd_non_negative"),
        sa.CheckConstraint(
            "category IN ('weekend', 'single_day', 'vip', 'special')",
            name="check_ticket_category",
        ),
    )

    op.create_table(
        "ticket_purchases",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "ticket_type_id",
            sa.String(64),
            sa.ForeignKey("ticket_types.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("attendee_name", sa.String(255), nullable=False),
        sa.Column("attendee_email", sa.String(255), nullable=False),
        sa.Column("attendee_phone", sa.String(50), nullable=False, server_default=""),
        sa.Column("attendee_age", sa.Integer(), nullable=True),
        sa.Column("attendee_id_number", sa.String(100), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_price_idr", sa.BigInteger(), nullable=False),
        sa.Column("total_price_usd", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="IDR"),
        sa.Column("discount_type", sa.String(20), nullable=True),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("discount_percentage", sa.Integer(), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("qr_code", sa.Text(), nullable=False),
        sa.Column("rfid_code", sa.String(12), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entry_gate", sa.String(50), nullable=True),
        sa.Column("special_access", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("qr_code", name="uq_ticket_purchases_qr_code"),
        sa.UniqueConstraint("rfid_code", name="uq_ticket_purchases_rfid_code"),
        sa.CheckConstraint("quantity > 0", name="check_purchase_quantity_positive"),
        sa.CheckConstraint("currency IN ('IDR', 'USD')", name="check_purchase_currency"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_purchase_payment_status",
        ),
    )
    op.create_index("ix_ticket_purchases_ticket_type_id", "ticket_purchases", ["ticket_type_id"])
    op.create_index("ix_ticket_purchases_attendee_email", "ticket_purchases", ["attendee_email"])
    # Sales statistics scan paid purchases by day
    op.create_index("ix_ticket_purchases_status_date", "ticket_purchases", ["payment_status", "purchase_date"])

    op.create_table(
        "ticket_validations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.String(64),
            sa.ForeignKey("ticket_purchases.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("scanned_code", sa.Text(), nullable=False),
        sa.Column("validation_type", sa.String(20), nullable=False, server_default="entry"),
        sa.Column("gate_id", sa.String(50), nullable=False),
        sa.Column("staff_id", sa.String(50), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("is_valid", sa.Boolean(), nullable=False),
        sa.Column("error_reason", sa.String(255), nullable=True),
        sa.CheckConstraint(
            "validation_type IN ('entry', 'exit', 'area_access')",
            name="check_validation_type",
        ),
    )
    op.create_index("ix_ticket_validations_id", "ticket_validations", ["id"])
    op.create_index("ix_ticket_validations_ticket_id", "ticket_validations", ["ticket_id"])
    op.create_index("ix_ticket_validations_gate_id", "ticket_validations", ["gate_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(16, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("description", sa.String(500), nullable=False, server_default=""),
        sa.Column("reference", sa.String(100), nullable=False, server_default=""),
        sa.Column("circle_id", sa.String(64), nullable=True),
        sa.Column("ticket_id", sa.String(64), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("exchange_rate", sa.Numeric(16, 8), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
        sa.CheckConstraint("currency IN ('IDR', 'USD')", name="check_transaction_currency"),
        sa.CheckConstraint(
            "type IN ('payment', 'refund', 'fee', 'commission')",
            name="check_transaction_type",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'cancelled')",
            name="check_transaction_status",
        ),
    )
    op.create_index("ix_transactions_circle_id", "transactions", ["circle_id"])
    op.create_index("ix_transactions_ticket_id", "transactions", ["ticket_id"])

    op.create_table(
        "refund_requests",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.String(64),
            sa.ForeignKey("transactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(16, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("reason", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("requested_by", sa.String(100), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(100), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.CheckConstraint("amount > 0", name="check_refund_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'processed')",
            name="check_refund_status",
        ),
    )
    op.create_index("ix_refund_requests_transaction_id", "refund_requests", ["transaction_id"])

    op.create_table(
        "exchange_rates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("from_currency", sa.String(3), nullable=False),
        sa.Column("to_currency", sa.String(3), nullable=False),
        sa.Column("rate", sa.Numeric(20, 10), nullable=False),
        sa.Column("source", sa.String(100), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("from_currency", "to_currency", name="uq_exchange_rate_pair"),
        sa.CheckConstraint("rate > 0", name="check_exchange_rate_positive"),
    )
    op.create_index("ix_exchange_rates_id", "exchange_rates", ["id"])

    op.create_table(
        "circles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("circle_code", sa.String(20), nullable=False),
        sa.Column("circle_name", sa.String(255), nullable=False),
        sa.Column("pen_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("genre", sa.String(100), nullable=True),
        sa.Column("fandom", sa.String(255), nullable=True),
        sa.Column("rating", sa.String(10), nullable=False, server_default="all_ages"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("twitter", sa.String(100), nullable=True),
        sa.Column("instagram", sa.String(100), nullable=True),
        sa.Column("pixiv", sa.String(100), nullable=True),
        sa.Column("circle_cut_file_url", sa.String(1000), nullable=True),
        sa.Column("sample_works_images", sa.JSON(), nullable=False),
        sa.Column("space_preference", sa.String(20), nullable=False),
        sa.Column("additional_table", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("additional_chair", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("additional_power", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("exhibitor_passes", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default="IDR"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("application_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("booth_number", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("circle_code", name="uq_circles_circle_code"),
        sa.CheckConstraint("rating IN ('all_ages', 'r15', 'r18')", name="check_circle_rating"),
        sa.CheckConstraint(
            "application_status IN ('pending', 'under_review', 'accepted', 'rejected', 'waitlisted')",
            name="check_circle_application_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'cancelled')",
            name="check_circle_payment_status",
        ),
    )
    op.create_index("ix_circles_event_id", "circles", ["event_id"])
    op.create_index("ix_circles_email", "circles", ["email"])
    # Review queue: applications of one event filtered by status
    op.create_index("ix_circles_event_status", "circles", ["event_id", "application_status"])


def downgrade() -> None:
    op.drop_table("circles")
    op.drop_table("exchange_rates")
    op.drop_table("refund_requests")
    op.drop_table("transactions")
    op.drop_table("ticket_validations")
    op.drop_table("ticket_purchases")
    op.drop_table("ticket_types")
    op.drop_table("users")
