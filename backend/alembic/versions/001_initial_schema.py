# backend/alembic/versions/001_initial_schema.py
"""Initial schema - events, bookings, vouchers and back-office tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Statuses are VARCHAR rather than native enums so SQLite and PostgreSQL share
one schema. Inventory and voucher balances carry CHECK constraints that back
up the guarded UPDATEs in the repositories.
"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables."""
    print("Creating initial schema for events, bookings and vouchers...")

    op.create_table(
        "email_templates",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("html_content", sa.Text(), nullable=False),
        sa.Column("text_content", sa.Text(), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("variables", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_email_templates_name", "email_templates", ["name"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="120"),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("available_tickets", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_tickets", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_tickets", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("calendar_event_id", sa.String(255), nullable=True),
        sa.Column(
            "confirmation_template_id",
            sa.String(26),
            sa.ForeignKey("email_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "reminder_template_id",
            sa.String(26),
            sa.ForeignKey("email_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "voucher_template_id",
            sa.String(26),
            sa.ForeignKey("email_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("available_tickets >= 0", name="ck_events_available_non_negative"),
        sa.CheckConstraint("available_tickets <= capacity", name="ck_events_available_within_capacity"),
        sa.CheckConstraint("capacity > 0", name="ck_events_capacity_positive"),
    )
    op.create_index("ix_events_category", "events", ["category"])
    op.create_index("ix_events_event_date", "events", ["event_date"])
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_status_date", "events", ["status", "event_date"])

    op.create_table(
        "event_form_fields",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("event_id", sa.String(26), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("field_name", sa.String(100), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("field_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("placeholder", sa.String(255), nullable=True),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("options", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_event_form_fields_event_id", "event_form_fields", ["event_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("total_bookings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_spent", sa.Numeric(10, 2), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_customers_email", "customers", ["email"], unique=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("booking_code", sa.String(32), nullable=False),
        sa.Column("event_id", sa.String(26), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("customer_id", sa.String(26), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("voucher_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("stripe_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="card"),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmation_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failure_reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_bookings_quantity_positive"),
        sa.CheckConstraint("total_amount >= 0", name="ck_bookings_total_non_negative"),
    )
    op.create_index("ix_bookings_booking_code", "bookings", ["booking_code"], unique=True)
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_payment_status", "bookings", ["payment_status"])
    op.create_index("ix_bookings_stripe_session_id", "bookings", ["stripe_session_id"])
    op.create_index("ix_bookings_status_created", "bookings", ["payment_status", "created_at"])

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("ticket_code", sa.String(40), nullable=False),
        sa.Column("booking_id", sa.String(26), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="valid"),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_tickets_ticket_code", "tickets", ["ticket_code"], unique=True)
    op.create_index("ix_tickets_booking_id", "tickets", ["booking_id"])

    op.create_table(
        "form_field_responses",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("booking_id", sa.String(26), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "field_id", sa.String(26), sa.ForeignKey("event_form_fields.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("field_name", sa.String(100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_form_field_responses_booking_id", "form_field_responses", ["booking_id"])

    op.create_table(
        "gift_vouchers",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="amount"),
        sa.Column("original_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("current_balance", sa.Numeric(10, 2), nullable=False),
        sa.Column("event_id", sa.String(26), sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True),
        sa.Column("ticket_quantity", sa.Integer(), nullable=True),
        sa.Column("purchaser_name", sa.String(255), nullable=False),
        sa.Column("purchaser_email", sa.String(255), nullable=False),
        sa.Column("purchaser_phone", sa.String(50), nullable=True),
        sa.Column("recipient_name", sa.String(255), nullable=True),
        sa.Column("recipient_email", sa.String(255), nullable=True),
        sa.Column("personal_message", sa.Text(), nullable=True),
        sa.Column("template_used", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_delivery_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recipient_email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recipient_email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchaser_email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("purchaser_email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiration_reminder_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expiration_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("current_balance >= 0", name="ck_vouchers_balance_non_negative"),
        sa.CheckConstraint("current_balance <= original_amount", name="ck_vouchers_balance_within_original"),
    )
    op.create_index("ix_gift_vouchers_code", "gift_vouchers", ["code"], unique=True)
    op.create_index("ix_gift_vouchers_purchaser_email", "gift_vouchers", ["purchaser_email"])
    op.create_index("ix_gift_vouchers_status", "gift_vouchers", ["status"])
    op.create_index("ix_gift_vouchers_stripe_session_id", "gift_vouchers", ["stripe_session_id"])
    op.create_index("ix_gift_vouchers_expiry_date", "gift_vouchers", ["expiry_date"])
    op.create_index("ix_gift_vouchers_scheduled_delivery_at", "gift_vouchers", ["scheduled_delivery_at"])
    op.create_index(
        "ix_vouchers_delivery", "gift_vouchers", ["status", "recipient_email_sent", "scheduled_delivery_at"]
    )

    op.create_table(
        "voucher_redemptions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("voucher_id", sa.String(26), sa.ForeignKey("gift_vouchers.id"), nullable=False),
        sa.Column("booking_id", sa.String(26), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("amount_used", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("voucher_id", "booking_id", name="uq_voucher_redemption_booking"),
        sa.CheckConstraint("amount_used > 0", name="ck_redemptions_amount_positive"),
    )
    op.create_index("ix_voucher_redemptions_voucher_id", "voucher_redemptions", ["voucher_id"])
    op.create_index("ix_voucher_redemptions_booking_id", "voucher_redemptions", ["booking_id"])

    op.create_table(
        "app_settings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="string"),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_app_settings_key", "app_settings", ["key"], unique=True)
    op.create_index("ix_app_settings_category", "app_settings", ["category"])

    print("Initial schema created.")


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        "app_settings",
        "voucher_redemptions",
        "gift_vouchers",
        "form_field_responses",
        "tickets",
        "bookings",
        "customers",
        "event_form_fields",
        "events",
        "email_templates",
    ):
        op.drop_table(table)
