from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.leads.statuses import LeadStatus, VendorOrderStage


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # Naive values are taken as UTC, which is what SQLite hands back.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Money = Numeric(14, 2, asdecimal=False)


class Lead(Base):
    __tablename__ = "lead"
    __table_args__ = (
        Index("ix_lead_status", "status"),
        Index("ix_lead_assigned_agent", "assigned_agent"),
        Index("ix_lead_customer_email", "customer_email"),
        Index("ix_lead_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lead_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    lead_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    month: Mapped[str] = mapped_column(String(16), nullable=False)
    invoice_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    order_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    alternate_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default=LeadStatus.NEW.value)
    order_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_agent: Mapped[str] = mapped_column(String(64), nullable=False)
    billing_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    mechanic_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    call_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    products: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    mode_of_payment: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_portal: Mapped[str | None] = mapped_column(String(64), nullable=True)
    card_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    expiry: Mapped[str | None] = mapped_column(String(16), nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sales_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    pending_balance: Mapped[float | None] = mapped_column(Money, nullable=True)
    cost_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    total_margin: Mapped[float | None] = mapped_column(Money, nullable=True, default=0)
    refunded: Mapped[float | None] = mapped_column(Money, nullable=True)
    dispute_category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispute_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispute_result: Mapped[str | None] = mapped_column(String(128), nullable=True)
    refund_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_tat: Mapped[str | None] = mapped_column(String(64), nullable=True)
    arn: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refund_credited: Mapped[float | None] = mapped_column(Money, nullable=True)
    chargeback_amount: Mapped[float | None] = mapped_column(Money, nullable=True)

    history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class PaymentRecord(Base):
    __tablename__ = "payment_record"
    __table_args__ = (
        Index("ix_payment_record_payment_status", "payment_status"),
        Index("ix_payment_record_payment_date", "payment_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    payment_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    lead_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    mode_of_payment: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_portal: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    card_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    expiry: Mapped[str | None] = mapped_column(String(16), nullable=True)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    sales_price: Mapped[float] = mapped_column(Money, nullable=False)
    pending_balance: Mapped[float | None] = mapped_column(Money, nullable=True)
    cost_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    total_margin: Mapped[float | None] = mapped_column(Money, nullable=True)
    refunded: Mapped[float | None] = mapped_column(Money, nullable=True)
    dispute_category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispute_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispute_result: Mapped[str | None] = mapped_column(String(128), nullable=True)
    refund_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_tat: Mapped[str | None] = mapped_column(String(64), nullable=True)
    arn: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refund_credited: Mapped[float | None] = mapped_column(Money, nullable=True)
    chargeback_amount: Mapped[float | None] = mapped_column(Money, nullable=True)
    vendor_payment_mode: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vendor_payment_amount: Mapped[float | None] = mapped_column(Money, nullable=True)
    vendor_payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    vendor_payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    vendor_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processing_fee: Mapped[float | None] = mapped_column(Money, nullable=True)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class VendorOrder(Base):
    __tablename__ = "vendor_order"
    __table_args__ = (
        UniqueConstraint("customer_id", "product_name", name="uq_vendor_order_customer_product"),
        Index("ix_vendor_order_vendor_id", "vendor_id"),
        Index("ix_vendor_order_order_status", "order_status"),
        Index("ix_vendor_order_created_by", "created_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    vendor_id: Mapped[str] = mapped_column(String(32), nullable=False)
    vendor_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    vendor_location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    order_no: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    lead_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_status: Mapped[str] = mapped_column(String(64), nullable=False, default=VendorOrderStage.ENGINE_PULL.value)
    item_subtotal: Mapped[float | None] = mapped_column(Money, nullable=True)
    shipping_handling: Mapped[float | None] = mapped_column(Money, nullable=True)
    tax_collected: Mapped[float | None] = mapped_column(Money, nullable=True)
    grand_total: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    courier_company: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tracking_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_amount: Mapped[float | None] = mapped_column(Money, nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int | None] = mapped_column(nullable=True)
    vin: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mileage_quote: Mapped[str | None] = mapped_column(String(64), nullable=True)
    year_of_mfg: Mapped[str | None] = mapped_column(String(16), nullable=True)
    make: Mapped[str | None] = mapped_column(String(64), nullable=True)
    model: Mapped[str | None] = mapped_column(String(64), nullable=True)
    specification: Mapped[str | None] = mapped_column(Text, nullable=True)
    attention: Mapped[str | None] = mapped_column(Text, nullable=True)
    warranty: Mapped[str | None] = mapped_column(String(64), nullable=True)
    miles: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recycler: Mapped[str | None] = mapped_column(Text, nullable=True)
    mode_of_payment_to_recycler: Mapped[str | None] = mapped_column(String(64), nullable=True)
    date_of_booking: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    date_of_delivery: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    shipping_company: Mapped[str | None] = mapped_column(String(128), nullable=True)
    mode_of_payment: Mapped[str | None] = mapped_column(String(64), nullable=True)
    fedex_tracking: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payment_portal: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class Followup(Base):
    __tablename__ = "followup"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    followup_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    lead_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    lead_number: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    product_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    sales_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_agent: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class Sale(Base):
    __tablename__ = "sale"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sale_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    lead_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    product_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    sales_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    order_confirmation_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order_confirmation_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    order_stage_updated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order_stage_update_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivery_confirmation_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivery_confirmation_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    assigned_agent: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    notes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class Target(Base):
    __tablename__ = "target"
    __table_args__ = (Index("ix_target_is_active", "is_active"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    target_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_amount: Mapped[float] = mapped_column(Money, nullable=False)
    achieved_amount: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    remaining_amount: Mapped[float] = mapped_column(Money, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assigned_users: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
