from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


T = TypeVar("T")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class VendorInfoIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vendor_id: str | None = None
    vendor_name: str | None = None
    vendor_location: str | None = None
    recycler: str | None = None
    mode_of_payment_to_recycler: str | None = None
    date_of_booking: datetime | None = None
    date_of_delivery: datetime | None = None
    tracking_number: str | None = None
    shipping_company: str | None = None
    fedex_tracking: str | None = None
    payment_portal: str | None = None
    mode_of_payment: str | None = None
    payment_date: datetime | None = None
    item_subtotal: float | None = None
    shipping_handling: float | None = None
    tax_collected: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _empty_strings_are_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def has_identity(self) -> bool:
        return bool(self.vendor_name or self.vendor_location)


class ProductIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: str | None = None
    product_name: str = Field(min_length=1)
    product_amount: float | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)
    vin: str | None = None
    mileage_quote: str | None = None
    year_of_mfg: str | None = None
    make: str | None = None
    model: str | None = None
    specification: str | None = None
    attention: str | None = None
    warranty: str | None = None
    miles: str | None = None
    vendor_info: VendorInfoIn | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _empty_strings_are_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)


class _LeadFields(BaseModel):
    """Fields a caller may write on a lead.

    ``order_no``, ``history`` and ``notes`` are maintained by the write path
    and are rejected as unknown fields.
    """

    model_config = ConfigDict(extra="forbid")

    invoice_no: str | None = None
    customer_id: str | None = None
    alternate_number: str | None = None
    customer_email: EmailStr | None = None
    order_status: str | None = None
    assigned_agent: str | None = None
    billing_address: str | None = None
    shipping_address: str | None = None
    mechanic_name: str | None = None
    contact_phone: str | None = None
    state: str | None = None
    zone: str | None = None
    call_type: str | None = None
    products: list[ProductIn] | None = None
    mode_of_payment: str | None = None
    payment_portal: str | None = None
    card_number: str | None = None
    expiry: str | None = None
    payment_date: datetime | None = None
    sales_price: float | None = Field(default=None, ge=0)
    pending_balance: float | None = None
    cost_price: float | None = Field(default=None, ge=0)
    total_margin: float | None = None
    refunded: float | None = None
    dispute_category: str | None = None
    dispute_reason: str | None = None
    dispute_date: datetime | None = None
    dispute_result: str | None = None
    refund_date: datetime | None = None
    refund_tat: str | None = None
    arn: str | None = None
    refund_credited: float | None = None
    chargeback_amount: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _empty_strings_are_unset(cls, value: Any) -> Any:
        return _blank_to_none(value)


class LeadCreate(_LeadFields):
    customer_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    status: str = Field(default="New", min_length=1, max_length=64)


class LeadUpdate(_LeadFields):
    customer_name: str | None = Field(default=None, min_length=1)
    phone_number: str | None = Field(default=None, min_length=1)
    status: str | None = Field(default=None, min_length=1, max_length=64)

    @model_validator(mode="after")
    def _required_fields_cannot_be_cleared(self) -> "LeadUpdate":
        # Omitted means unchanged; a null or blank value would violate the stored lead.
        cleared = sorted(
            name for name in ("customer_name", "phone_number", "status")
            if name in self.model_fields_set and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be empty")
        return self


class NoteCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(min_length=1)


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: str
    lead_number: str
    date: datetime
    month: str
    invoice_no: str | None
    order_no: str | None
    customer_id: str | None
    customer_name: str
    phone_number: str
    alternate_number: str | None
    customer_email: str | None
    status: str
    order_status: str | None
    assigned_agent: str
    billing_address: str | None
    shipping_address: str | None
    mechanic_name: str | None
    contact_phone: str | None
    state: str | None
    zone: str | None
    call_type: str | None
    products: list[dict[str, Any]]
    mode_of_payment: str | None
    payment_portal: str | None
    card_number: str | None
    expiry: str | None
    payment_date: datetime | None
    sales_price: float | None
    pending_balance: float | None
    cost_price: float | None
    total_margin: float | None
    refunded: float | None
    dispute_category: str | None
    dispute_reason: str | None
    dispute_date: datetime | None
    dispute_result: str | None
    refund_date: datetime | None
    refund_tat: str | None
    arn: str | None
    refund_credited: float | None
    chargeback_amount: float | None
    history: list[dict[str, Any]]
    notes: list[dict[str, Any]]
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime


class CascadeWarningRead(BaseModel):
    step: str
    message: str


class LeadWriteResponse(BaseModel):
    message: str
    lead: LeadRead
    warnings: list[CascadeWarningRead] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str


class Page(BaseModel, Generic[T]):
    records: list[T]
    page: int
    limit: int
    total: int
    pages: int


class PaymentRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_id: str
    lead_id: str
    customer_id: str | None
    customer_name: str
    customer_phone: str | None
    customer_email: str | None
    mode_of_payment: str
    payment_portal: str
    card_number: str | None
    expiry: str | None
    payment_date: datetime
    sales_price: float
    pending_balance: float | None
    cost_price: float | None
    total_margin: float | None
    refunded: float | None
    dispute_category: str | None
    dispute_reason: str | None
    dispute_date: datetime | None
    dispute_result: str | None
    refund_date: datetime | None
    refund_tat: str | None
    arn: str | None
    refund_credited: float | None
    chargeback_amount: float | None
    vendor_payment_mode: str | None
    vendor_payment_amount: float | None
    vendor_payment_date: datetime | None
    vendor_payment_status: str
    vendor_name: str | None
    vendor_address: str | None
    transaction_id: str | None
    payment_notes: str | None
    processing_fee: float | None
    payment_status: str
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime


class VendorOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: datetime
    vendor_id: str
    vendor_name: str
    vendor_location: str
    order_no: str
    lead_id: str | None
    customer_id: str
    customer_name: str | None
    order_status: str
    item_subtotal: float | None
    shipping_handling: float | None
    tax_collected: float | None
    grand_total: float
    courier_company: str | None
    tracking_id: str | None
    product_name: str
    product_amount: float | None
    shipping_address: str | None
    quantity: int | None
    vin: str | None
    make: str | None
    model: str | None
    year_of_mfg: str | None
    recycler: str | None
    mode_of_payment_to_recycler: str | None
    date_of_booking: datetime | None
    date_of_delivery: datetime | None
    tracking_number: str | None
    shipping_company: str | None
    mode_of_payment: str | None
    fedex_tracking: str | None
    payment_portal: str | None
    payment_date: datetime | None
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime


class FollowupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    followup_id: str
    lead_id: str
    lead_number: str
    customer_name: str
    customer_email: str | None
    phone_number: str
    product_name: str | None
    sales_price: float | None
    status: str
    assigned_agent: str
    date_created: datetime
    is_done: bool
    completed_date: datetime | None
    completed_by: str | None
    notes: list[str]
    created_at: datetime


class SaleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sale_id: str
    lead_id: str
    customer_name: str
    customer_email: str | None
    phone_number: str
    product_name: str | None
    sales_price: float | None
    order_confirmation_sent: bool
    order_stage_updated: bool
    delivery_confirmation_sent: bool
    status: str
    assigned_agent: str
    notes: list[str]
    created_at: datetime


class TargetCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: str | None = None
    target_amount: float = Field(gt=0)
    start_date: datetime
    end_date: datetime
    assigned_users: list[str] = Field(default_factory=list)
    is_active: bool = True


class TargetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_id: str
    title: str
    description: str | None
    target_amount: float
    achieved_amount: float
    remaining_amount: float
    start_date: datetime
    end_date: datetime
    assigned_users: list[str]
    is_active: bool
    created_by: str
    created_at: datetime


class StatusCount(BaseModel):
    status: str
    count: int


class MonthlyTrend(BaseModel):
    month: str
    leads: int
    sales: int
    revenue: float


class AgentPerformance(BaseModel):
    agent: str
    total_leads: int
    converted_leads: int
    total_revenue: float
    conversion_rate: float


class PaymentMethodCount(BaseModel):
    method: str
    count: int
    total_amount: float


class StateCount(BaseModel):
    state: str
    count: int


class AnalyticsSummary(BaseModel):
    total_leads: int
    total_revenue: float
    average_lead_value: float
    conversion_rate: float
    total_margin: float


class AnalyticsResponse(BaseModel):
    status_distribution: list[StatusCount]
    monthly_trends: list[MonthlyTrend]
    agent_performance: list[AgentPerformance]
    payment_methods: list[PaymentMethodCount]
    state_distribution: list[StateCount]
    summary: AnalyticsSummary
