from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import TypeAdapter
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.activity import describe_change, record_activity
from app.leads import identifiers
from app.leads.models import Followup, Lead, PaymentRecord, Sale, utcnow
from app.leads.repositories import backfill_order_no, increment_target_achievement, payment_records, vendor_orders
from app.leads.schemas import LeadCreate, LeadUpdate, ProductIn
from app.leads.statuses import DEFAULT_PIPELINE, StatusPipeline, VendorOrderStage
from app.metrics import observe_cascade_step
from app.platform.security.context import ActorUser


logger = logging.getLogger("app.leads.orchestrator")
tracer = trace.get_tracer("app.leads.orchestrator")

_json = TypeAdapter(Any)

# Lead fields mirrored onto the payment record, keyed by the payment record column.
_PAYMENT_MIRROR = {
    "customer_id": "customer_id",
    "customer_name": "customer_name",
    "customer_phone": "phone_number",
    "customer_email": "customer_email",
    "mode_of_payment": "mode_of_payment",
    "payment_portal": "payment_portal",
    "card_number": "card_number",
    "expiry": "expiry",
    "payment_date": "payment_date",
    "sales_price": "sales_price",
    "pending_balance": "pending_balance",
    "cost_price": "cost_price",
    "total_margin": "total_margin",
    "refunded": "refunded",
    "dispute_category": "dispute_category",
    "dispute_reason": "dispute_reason",
    "dispute_date": "dispute_date",
    "dispute_result": "dispute_result",
    "refund_date": "refund_date",
    "refund_tat": "refund_tat",
    "arn": "arn",
    "refund_credited": "refund_credited",
    "chargeback_amount": "chargeback_amount",
}

# An explicit null clears a mirrored payment column unless the column is required.
_PAYMENT_REQUIRED = frozenset(column.name for column in PaymentRecord.__table__.columns if not column.nullable)

_VENDOR_INFO_FIELDS = (
    "vendor_name",
    "vendor_location",
    "recycler",
    "mode_of_payment_to_recycler",
    "date_of_booking",
    "date_of_delivery",
    "tracking_number",
    "shipping_company",
    "fedex_tracking",
    "payment_portal",
    "payment_date",
    "mode_of_payment",
    "item_subtotal",
    "shipping_handling",
    "tax_collected",
)

_PRODUCT_FIELDS = (
    "product_amount",
    "quantity",
    "vin",
    "mileage_quote",
    "year_of_mfg",
    "make",
    "model",
    "specification",
    "attention",
    "warranty",
    "miles",
)


@dataclass(frozen=True)
class CascadeWarning:
    step: str
    message: str


@dataclass
class LeadWriteResult:
    lead: Lead
    warnings: list[CascadeWarning] = field(default_factory=list)


def normalize_products(products: list[ProductIn]) -> list[ProductIn]:
    """Give every product an id and drop vendor blocks without a name or location."""

    normalized: list[ProductIn] = []
    for product in products:
        vendor_info = product.vendor_info if product.vendor_info is not None and product.vendor_info.has_identity else None
        normalized.append(
            product.model_copy(
                update={
                    "product_id": product.product_id or identifiers.new_product_id(),
                    "vendor_info": vendor_info.model_copy() if vendor_info is not None else None,
                }
            )
        )
    return normalized


def derive_totals(changes: dict[str, Any], products: list[ProductIn] | None, current: dict[str, Any]) -> None:
    """Recompute ``sales_price`` from priced products and ``total_margin`` from sales and cost."""

    if products and any(product.product_amount is not None for product in products):
        changes["sales_price"] = sum((product.product_amount or 0) * (product.quantity or 1) for product in products)

    if "sales_price" not in changes and "cost_price" not in changes:
        return
    sales_price = changes.get("sales_price", current.get("sales_price"))
    cost_price = changes.get("cost_price", current.get("cost_price"))
    if sales_price and cost_price:
        changes["total_margin"] = sales_price - cost_price


def column_values(lead: Lead) -> dict[str, Any]:
    return {attr.key: getattr(lead, attr.key) for attr in inspect(Lead).column_attrs}


class LeadStatusOrchestrator:
    """Lead write path: primary save plus the best-effort satellite writes.

    Satellite steps commit independently. A failing step is rolled back,
    logged and reported as a :class:`CascadeWarning`; it never blocks the lead
    save.
    """

    def __init__(
        self,
        pipeline: StatusPipeline = DEFAULT_PIPELINE,
        *,
        timezone_name: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.pipeline = pipeline
        self.tz = ZoneInfo(timezone_name)
        self.clock = clock

    def create(self, session: Session, actor: ActorUser, dto: LeadCreate) -> LeadWriteResult:
        now = self.clock()
        changes = dto.model_dump(exclude_unset=True, exclude={"products"})
        changes.setdefault("status", dto.status)
        products = normalize_products(dto.products or [])
        derive_totals(changes, products, {})
        changes["products"] = self._dump_products(products)

        lead = Lead(
            lead_id=identifiers.new_lead_id(),
            lead_number=identifiers.new_lead_number(),
            date=now,
            month=now.astimezone(self.tz).strftime("%B %Y"),
            created_by=actor.user_id,
            updated_by=actor.user_id,
            created_at=now,
            updated_at=now,
            history=[
                {
                    "action": "created",
                    "changes": _json.dump_python(changes, mode="json"),
                    "performed_by": actor.user_id,
                    "timestamp": now.isoformat(),
                    "notes": "Lead created",
                }
            ],
            notes=[],
            **changes,
        )
        session.add(lead)
        session.commit()
        lead_pk = lead.id

        merged = column_values(lead)
        warnings = self._cascade(session, actor, lead_pk, merged, changes, products, old_status=None, now=now)
        if products and any(product.vendor_info is not None for product in products):
            lead = self._reload(session, lead_pk)
            lead.products = self._dump_products(products)
            session.commit()

        lead = self._reload(session, lead_pk)
        record_activity(
            actor,
            action="create",
            module="leads",
            description=describe_change("create", "leads", lead.customer_name),
            target_id=str(lead.id),
            target_type="Lead",
            changes=_json.dump_python(changes, mode="json"),
        )
        return LeadWriteResult(lead=lead, warnings=warnings)

    def apply_update(self, session: Session, lead: Lead, dto: LeadUpdate, actor: ActorUser) -> LeadWriteResult:
        now = self.clock()
        lead_pk = lead.id
        old_values = column_values(lead)
        old_status = lead.status

        changes = dto.model_dump(exclude_unset=True, exclude={"products"})
        products: list[ProductIn] | None = None
        if "products" in dto.model_fields_set:
            products = normalize_products(dto.products or [])
        derive_totals(changes, products, old_values)

        merged = {**old_values, **changes}
        warnings = self._cascade(session, actor, lead_pk, merged, changes, products or [], old_status=old_status, now=now)
        if products is not None:
            changes["products"] = self._dump_products(products)

        lead = self._reload(session, lead_pk)
        for field_name, value in changes.items():
            setattr(lead, field_name, value)
        lead.updated_by = actor.user_id
        lead.updated_at = now
        new_status = changes.get("status")
        note = (
            f"Status changed from {old_status} to {new_status}"
            if new_status is not None and new_status != old_status
            else "Lead updated"
        )
        lead.history = [
            *(lead.history or []),
            {
                "action": "updated",
                "changes": _json.dump_python(changes, mode="json"),
                "performed_by": actor.user_id,
                "timestamp": now.isoformat(),
                "notes": note,
            },
        ]
        session.commit()

        lead = self._reload(session, lead_pk)
        record_activity(
            actor,
            action="update",
            module="leads",
            description=describe_change("update", "leads", lead.customer_name),
            target_id=str(lead.id),
            target_type="Lead",
            changes={
                "old_values": _json.dump_python(old_values, mode="json"),
                "new_values": _json.dump_python(changes, mode="json"),
            },
        )
        return LeadWriteResult(lead=lead, warnings=warnings)

    def _cascade(
        self,
        session: Session,
        actor: ActorUser,
        lead_pk: uuid.UUID,
        merged: dict[str, Any],
        changes: dict[str, Any],
        products: list[ProductIn],
        *,
        old_status: str | None,
        now: datetime,
    ) -> list[CascadeWarning]:
        warnings: list[CascadeWarning] = []
        lead_id = merged["lead_id"]

        sales_price = changes.get("sales_price")
        if sales_price is not None and sales_price > 0:
            self._run_step(
                session,
                "payment_record",
                lead_id,
                warnings,
                lambda: self._upsert_payment_record(session, actor, merged, changes, now),
            )

        for product in products:
            if product.vendor_info is None:
                continue
            self._run_step(
                session,
                "vendor_order",
                lead_id,
                warnings,
                lambda product=product: self._upsert_vendor_order(session, actor, lead_pk, merged, product, now),
            )

        new_status = changes.get("status")
        if self.pipeline.entered_followup(old_status, new_status):
            self._run_step(
                session,
                "followup",
                lead_id,
                warnings,
                lambda: self._create_followup(session, actor, merged, products, now),
            )
        if self.pipeline.entered_sale_payment_done(old_status, new_status):
            self._run_step(
                session,
                "sale",
                lead_id,
                warnings,
                lambda: self._create_sale(session, actor, merged, products),
            )
        if self.pipeline.entered_sale_closed(old_status, new_status) and merged.get("total_margin"):
            self._run_step(
                session,
                "target",
                lead_id,
                warnings,
                lambda: increment_target_achievement(session, merged["assigned_agent"], float(merged["total_margin"]), now),
            )
        return warnings

    def _run_step(
        self,
        session: Session,
        step: str,
        lead_id: str,
        warnings: list[CascadeWarning],
        action: Callable[[], Any],
    ) -> None:
        with tracer.start_as_current_span(f"leads.cascade.{step}") as span:
            span.set_attribute("lead_id", lead_id)
            span.set_attribute("cascade.step", step)
            try:
                action()
            except Exception as exc:
                session.rollback()
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)[:200]))
                observe_cascade_step(step, "failed")
                logger.warning(
                    "lead_cascade_step_failed",
                    exc_info=True,
                    extra={"lead_id": lead_id, "step": step, "error": str(exc)},
                )
                warnings.append(CascadeWarning(step=step, message=f"{step} write failed; the lead was saved without it"))
                return
            observe_cascade_step(step, "succeeded")

    def _upsert_payment_record(
        self,
        session: Session,
        actor: ActorUser,
        merged: dict[str, Any],
        changes: dict[str, Any],
        now: datetime,
    ) -> None:
        patch = {
            column: changes[lead_field]
            for column, lead_field in _PAYMENT_MIRROR.items()
            if lead_field in changes and (changes[lead_field] is not None or column not in _PAYMENT_REQUIRED)
        }
        patch["updated_by"] = actor.user_id

        def defaults() -> dict[str, Any]:
            return {
                "payment_id": identifiers.new_payment_id(),
                "customer_id": merged.get("customer_id"),
                "customer_name": merged["customer_name"],
                "customer_phone": merged.get("phone_number"),
                "customer_email": merged.get("customer_email"),
                "mode_of_payment": merged.get("mode_of_payment") or "Not specified",
                "payment_portal": merged.get("payment_portal") or "",
                "payment_date": merged.get("payment_date") or now,
                "cost_price": merged.get("cost_price"),
                "total_margin": merged.get("total_margin"),
                "payment_status": "pending",
                "vendor_payment_status": "pending",
                "created_by": actor.user_id,
            }

        payment_records.upsert(session, {"lead_id": merged["lead_id"]}, patch, defaults)

    def _upsert_vendor_order(
        self,
        session: Session,
        actor: ActorUser,
        lead_pk: uuid.UUID,
        merged: dict[str, Any],
        product: ProductIn,
        now: datetime,
    ) -> None:
        vendor_info = product.vendor_info
        if vendor_info is None:
            return

        patch: dict[str, Any] = {
            name: getattr(vendor_info, name) for name in _VENDOR_INFO_FIELDS if getattr(vendor_info, name) is not None
        }
        patch.update({name: getattr(product, name) for name in _PRODUCT_FIELDS if getattr(product, name) is not None})
        patch.update(
            {
                "lead_id": merged["lead_id"],
                "customer_name": merged.get("customer_name"),
                "shipping_address": merged.get("shipping_address"),
                "updated_by": actor.user_id,
            }
        )

        def defaults() -> dict[str, Any]:
            return {
                "vendor_id": vendor_info.vendor_id or identifiers.new_vendor_id(),
                "order_no": identifiers.new_order_no(),
                "order_status": VendorOrderStage.ENGINE_PULL.value,
                "date": now,
                "created_by": actor.user_id,
            }

        key = {"customer_id": merged.get("customer_id") or merged["lead_id"], "product_name": product.product_name}
        order, created = vendor_orders.upsert(session, key, patch, defaults)
        vendor_info.vendor_id = order.vendor_id
        if created:
            backfill_order_no(session, lead_pk, order.order_no)

    def _create_followup(
        self,
        session: Session,
        actor: ActorUser,
        merged: dict[str, Any],
        products: list[ProductIn],
        now: datetime,
    ) -> None:
        session.add(
            Followup(
                followup_id=identifiers.new_followup_id(),
                lead_id=merged["lead_id"],
                lead_number=merged["lead_number"],
                customer_name=merged["customer_name"],
                customer_email=merged.get("customer_email"),
                phone_number=merged["phone_number"],
                product_name=_first_product_name(products, merged),
                sales_price=merged.get("sales_price"),
                status=merged["status"],
                assigned_agent=merged["assigned_agent"],
                date_created=now,
                notes=[],
                created_by=actor.user_id,
                updated_by=actor.user_id,
            )
        )
        session.commit()

    def _create_sale(
        self,
        session: Session,
        actor: ActorUser,
        merged: dict[str, Any],
        products: list[ProductIn],
    ) -> None:
        session.add(
            Sale(
                sale_id=identifiers.new_sale_id(),
                lead_id=merged["lead_id"],
                customer_name=merged["customer_name"],
                customer_email=merged.get("customer_email"),
                phone_number=merged["phone_number"],
                product_name=_first_product_name(products, merged),
                sales_price=merged.get("sales_price"),
                status="pending",
                assigned_agent=merged["assigned_agent"],
                notes=[],
                created_by=actor.user_id,
                updated_by=actor.user_id,
            )
        )
        session.commit()

    @staticmethod
    def _dump_products(products: list[ProductIn]) -> list[dict[str, Any]]:
        return [product.model_dump(mode="json", exclude_none=True) for product in products]

    @staticmethod
    def _reload(session: Session, lead_pk: uuid.UUID) -> Lead:
        lead = session.get(Lead, lead_pk)
        if lead is None:
            raise LookupError(f"lead {lead_pk} disappeared during write")
        return lead


def _first_product_name(products: list[ProductIn], merged: dict[str, Any]) -> str | None:
    if products:
        return products[0].product_name
    stored = merged.get("products") or []
    if stored and isinstance(stored[0], dict):
        return stored[0].get("product_name")
    return None
