"""create lead and satellite tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _money() -> sa.Numeric:
    return sa.Numeric(precision=14, scale=2, asdecimal=False)


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("updated_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _refund_columns() -> list[sa.Column]:
    return [
        sa.Column("refunded", _money(), nullable=True),
        sa.Column("dispute_category", sa.String(length=128), nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("dispute_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dispute_result", sa.String(length=128), nullable=True),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_tat", sa.String(length=64), nullable=True),
        sa.Column("arn", sa.String(length=64), nullable=True),
        sa.Column("refund_credited", _money(), nullable=True),
        sa.Column("chargeback_amount", _money(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "lead",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=False),
        sa.Column("lead_number", sa.String(length=32), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("month", sa.String(length=16), nullable=False),
        sa.Column("invoice_no", sa.String(length=64), nullable=True),
        sa.Column("order_no", sa.String(length=32), nullable=True),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("alternate_number", sa.String(length=32), nullable=True),
        sa.Column("customer_email", sa.String(length=320), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False),
        sa.Column("order_status", sa.String(length=64), nullable=True),
        sa.Column("assigned_agent", sa.String(length=64), nullable=False),
        sa.Column("billing_address", sa.Text(), nullable=True),
        sa.Column("shipping_address", sa.Text(), nullable=True),
        sa.Column("mechanic_name", sa.Text(), nullable=True),
        sa.Column("contact_phone", sa.String(length=32), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("zone", sa.String(length=64), nullable=True),
        sa.Column("call_type", sa.String(length=64), nullable=True),
        sa.Column("products", sa.JSON(), nullable=False),
        sa.Column("mode_of_payment", sa.String(length=64), nullable=True),
        sa.Column("payment_portal", sa.String(length=64), nullable=True),
        sa.Column("card_number", sa.String(length=32), nullable=True),
        sa.Column("expiry", sa.String(length=16), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sales_price", _money(), nullable=True),
        sa.Column("pending_balance", _money(), nullable=True),
        sa.Column("cost_price", _money(), nullable=True),
        sa.Column("total_margin", _money(), nullable=True),
        *_refund_columns(),
        sa.Column("history", sa.JSON(), nullable=False),
        sa.Column("notes", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_id"),
        sa.UniqueConstraint("lead_number"),
    )
    op.create_index("ix_lead_status", "lead", ["status"], unique=False)
    op.create_index("ix_lead_assigned_agent", "lead", ["assigned_agent"], unique=False)
    op.create_index("ix_lead_customer_email", "lead", ["customer_email"], unique=False)
    op.create_index("ix_lead_created_at", "lead", ["created_at"], unique=False)

    op.create_table(
        "payment_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("payment_id", sa.String(length=32), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("customer_phone", sa.String(length=32), nullable=True),
        sa.Column("customer_email", sa.String(length=320), nullable=True),
        sa.Column("mode_of_payment", sa.String(length=64), nullable=False),
        sa.Column("payment_portal", sa.String(length=64), nullable=False),
        sa.Column("card_number", sa.String(length=32), nullable=True),
        sa.Column("expiry", sa.String(length=16), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sales_price", _money(), nullable=False),
        sa.Column("pending_balance", _money(), nullable=True),
        sa.Column("cost_price", _money(), nullable=True),
        sa.Column("total_margin", _money(), nullable=True),
        *_refund_columns(),
        sa.Column("vendor_payment_mode", sa.String(length=64), nullable=True),
        sa.Column("vendor_payment_amount", _money(), nullable=True),
        sa.Column("vendor_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vendor_payment_status", sa.String(length=16), nullable=False),
        sa.Column("vendor_name", sa.Text(), nullable=True),
        sa.Column("vendor_address", sa.Text(), nullable=True),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("payment_notes", sa.Text(), nullable=True),
        sa.Column("processing_fee", _money(), nullable=True),
        sa.Column("payment_status", sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id"),
        sa.UniqueConstraint("lead_id"),
    )
    op.create_index("ix_payment_record_payment_status", "payment_record", ["payment_status"], unique=False)
    op.create_index("ix_payment_record_payment_date", "payment_record", ["payment_date"], unique=False)

    op.create_table(
        "vendor_order",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("vendor_id", sa.String(length=32), nullable=False),
        sa.Column("vendor_name", sa.Text(), nullable=False),
        sa.Column("vendor_location", sa.Text(), nullable=False),
        sa.Column("order_no", sa.String(length=32), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=True),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=True),
        sa.Column("order_status", sa.String(length=64), nullable=False),
        sa.Column("item_subtotal", _money(), nullable=True),
        sa.Column("shipping_handling", _money(), nullable=True),
        sa.Column("tax_collected", _money(), nullable=True),
        sa.Column("grand_total", _money(), nullable=False),
        sa.Column("courier_company", sa.String(length=128), nullable=True),
        sa.Column("tracking_id", sa.String(length=128), nullable=True),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("product_amount", _money(), nullable=True),
        sa.Column("shipping_address", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("vin", sa.String(length=32), nullable=True),
        sa.Column("mileage_quote", sa.String(length=64), nullable=True),
        sa.Column("year_of_mfg", sa.String(length=16), nullable=True),
        sa.Column("make", sa.String(length=64), nullable=True),
        sa.Column("model", sa.String(length=64), nullable=True),
        sa.Column("specification", sa.Text(), nullable=True),
        sa.Column("attention", sa.Text(), nullable=True),
        sa.Column("warranty", sa.String(length=64), nullable=True),
        sa.Column("miles", sa.String(length=32), nullable=True),
        sa.Column("recycler", sa.Text(), nullable=True),
        sa.Column("mode_of_payment_to_recycler", sa.String(length=64), nullable=True),
        sa.Column("date_of_booking", sa.DateTime(timezone=True), nullable=True),
        sa.Column("date_of_delivery", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        sa.Column("shipping_company", sa.String(length=128), nullable=True),
        sa.Column("mode_of_payment", sa.String(length=64), nullable=True),
        sa.Column("fedex_tracking", sa.String(length=128), nullable=True),
        sa.Column("payment_portal", sa.String(length=64), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_no"),
        sa.UniqueConstraint("customer_id", "product_name", name="uq_vendor_order_customer_product"),
    )
    op.create_index("ix_vendor_order_vendor_id", "vendor_order", ["vendor_id"], unique=False)
    op.create_index("ix_vendor_order_order_status", "vendor_order", ["order_status"], unique=False)
    op.create_index("ix_vendor_order_created_by", "vendor_order", ["created_by"], unique=False)

    op.create_table(
        "followup",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("followup_id", sa.String(length=32), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=False),
        sa.Column("lead_number", sa.String(length=32), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("customer_email", sa.String(length=320), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.Text(), nullable=True),
        sa.Column("sales_price", _money(), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False),
        sa.Column("assigned_agent", sa.String(length=64), nullable=False),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_done", sa.Boolean(), nullable=False),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("followup_id"),
    )
    op.create_index(op.f("ix_followup_lead_id"), "followup", ["lead_id"], unique=False)
    op.create_index(op.f("ix_followup_assigned_agent"), "followup", ["assigned_agent"], unique=False)

    op.create_table(
        "sale",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sale_id", sa.String(length=32), nullable=False),
        sa.Column("lead_id", sa.String(length=64), nullable=False),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("customer_email", sa.String(length=320), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.Text(), nullable=True),
        sa.Column("sales_price", _money(), nullable=True),
        sa.Column("order_confirmation_sent", sa.Boolean(), nullable=False),
        sa.Column("order_confirmation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_stage_updated", sa.Boolean(), nullable=False),
        sa.Column("order_stage_update_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_confirmation_sent", sa.Boolean(), nullable=False),
        sa.Column("delivery_confirmation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("assigned_agent", sa.String(length=64), nullable=False),
        sa.Column("notes", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sale_id"),
    )
    op.create_index(op.f("ix_sale_lead_id"), "sale", ["lead_id"], unique=False)
    op.create_index(op.f("ix_sale_assigned_agent"), "sale", ["assigned_agent"], unique=False)

    op.create_table(
        "target",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("target_id", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_amount", _money(), nullable=False),
        sa.Column("achieved_amount", _money(), nullable=False),
        sa.Column("remaining_amount", _money(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_users", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("target_id"),
    )
    op.create_index("ix_target_is_active", "target", ["is_active"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_target_is_active", table_name="target")
    op.drop_table("target")
    op.drop_index(op.f("ix_sale_assigned_agent"), table_name="sale")
    op.drop_index(op.f("ix_sale_lead_id"), table_name="sale")
    op.drop_table("sale")
    op.drop_index(op.f("ix_followup_assigned_agent"), table_name="followup")
    op.drop_index(op.f("ix_followup_lead_id"), table_name="followup")
    op.drop_table("followup")
    op.drop_index("ix_vendor_order_created_by", table_name="vendor_order")
    op.drop_index("ix_vendor_order_order_status", table_name="vendor_order")
    op.drop_index("ix_vendor_order_vendor_id", table_name="vendor_order")
    op.drop_table("vendor_order")
    op.drop_index("ix_payment_record_payment_date", table_name="payment_record")
    op.drop_index("ix_payment_record_payment_status", table_name="payment_record")
    op.drop_table("payment_record")
    op.drop_index("ix_lead_created_at", table_name="lead")
    op.drop_index("ix_lead_customer_email", table_name="lead")
    op.drop_index("ix_lead_assigned_agent", table_name="lead")
    op.drop_index("ix_lead_status", table_name="lead")
    op.drop_table("lead")
