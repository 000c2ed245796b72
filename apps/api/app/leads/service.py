from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from app import events
from app.activity import describe_change, record_activity
from app.core.config import get_settings
from app.leads import identifiers
from app.leads.filters import (
    FOLLOWUP_TARGET,
    LEAD_TARGET,
    PAYMENT_RECORD_TARGET,
    SALE_TARGET,
    TARGET_TARGET,
    VENDOR_ORDER_TARGET,
    FilterTarget,
    RecordQuery,
    apply_filters,
)
from app.leads.models import Followup, Lead, PaymentRecord, Sale, Target, VendorOrder, as_utc, utcnow
from app.leads.orchestrator import LeadStatusOrchestrator, LeadWriteResult
from app.leads.schemas import (
    CascadeWarningRead,
    FollowupRead,
    LeadCreate,
    LeadRead,
    LeadUpdate,
    LeadWriteResponse,
    MessageResponse,
    NoteCreate,
    Page,
    PaymentRecordRead,
    SaleRead,
    TargetCreate,
    TargetRead,
    VendorOrderRead,
)
from app.metrics import observe_lead_write
from app.platform.security.context import ActorUser
from app.platform.security.errors import NotFoundError, ValidationError
from app.platform.security.permissions import Action, PermissionManager, Resource
from app.platform.security.rls import DataFilter


logger = logging.getLogger("app.leads.service")

ReadT = TypeVar("ReadT", bound=BaseModel)


def clamp_paging(page: int, limit: int) -> tuple[int, int]:
    settings = get_settings()
    page = max(page, 1)
    if limit < 1:
        limit = settings.default_page_size
    return page, min(limit, settings.max_page_size)


def paginate(
    session: Session,
    stmt: Select[Any],
    order_by: Any,
    page: int,
    limit: int,
    to_read: Callable[[Any], ReadT],
) -> Page[ReadT]:
    page, limit = clamp_paging(page, limit)
    total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = session.scalars(stmt.order_by(order_by).offset((page - 1) * limit).limit(limit)).all()
    return Page[Any](
        records=[to_read(row) for row in rows],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if total else 0,
    )


def business_timezone() -> ZoneInfo:
    return ZoneInfo(get_settings().business_timezone)


class LeadService:
    entity_type = "leads.lead"

    def __init__(self, orchestrator: LeadStatusOrchestrator | None = None) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> LeadStatusOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = LeadStatusOrchestrator(timezone_name=get_settings().business_timezone)
        return self._orchestrator

    def list_leads(
        self,
        session: Session,
        actor_user: ActorUser,
        query: RecordQuery,
        page: int,
        limit: int,
        now: datetime | None = None,
    ) -> Page[LeadRead]:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.READ)
        stmt = apply_filters(
            select(Lead),
            LEAD_TARGET,
            permissions.data_filter(),
            query,
            now=now or utcnow(),
            tz=business_timezone(),
        )
        return paginate(session, stmt, Lead.created_at.desc(), page, limit, self._to_read)

    def get_lead(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID) -> LeadRead:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.READ)
        return self._to_read(self._load_visible(session, permissions.data_filter(), lead_id))

    def create_lead(self, session: Session, actor_user: ActorUser, dto: LeadCreate) -> LeadWriteResponse:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.CREATE)
        dto = dto.model_copy(update={"assigned_agent": permissions.resolve_assigned_agent(dto.assigned_agent)})

        result = self.orchestrator.create(session, actor_user, dto)
        observe_lead_write("create")
        self._publish("leads.lead.created", actor_user, result)
        logger.info("lead_created", extra={"lead_id": result.lead.lead_id, "actor_id": actor_user.user_id})
        return self._to_write_response("Lead created successfully", result)

    def update_lead(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: uuid.UUID,
        dto: LeadUpdate,
    ) -> LeadWriteResponse:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.UPDATE)
        lead = self._load_visible(session, permissions.data_filter(), lead_id)

        if "assigned_agent" in dto.model_fields_set:
            dto = dto.model_copy(update={"assigned_agent": permissions.resolve_assigned_agent(dto.assigned_agent)})

        result = self.orchestrator.apply_update(session, lead, dto, actor_user)
        observe_lead_write("update")
        self._publish("leads.lead.updated", actor_user, result)
        return self._to_write_response("Lead updated successfully", result)

    def delete_lead(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID) -> MessageResponse:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.DELETE)
        lead = self._load_visible(session, permissions.data_filter(), lead_id)

        target_id = str(lead.id)
        business_id = lead.lead_id
        customer_name = lead.customer_name
        session.delete(lead)
        session.commit()

        observe_lead_write("delete")
        record_activity(
            actor_user,
            action="delete",
            module="leads",
            description=describe_change("delete", "leads", customer_name),
            target_id=target_id,
            target_type="Lead",
        )
        events.publish("leads.lead.deleted", actor_user.user_id, {"id": target_id, "lead_id": business_id})
        return MessageResponse(message="Lead deleted successfully")

    def add_note(self, session: Session, actor_user: ActorUser, lead_id: uuid.UUID, dto: NoteCreate) -> LeadRead:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.UPDATE)
        lead = self._load_visible(session, permissions.data_filter(), lead_id)

        content = dto.content.strip()
        if not content:
            raise ValidationError("Note content is required")
        lead.notes = [
            *(lead.notes or []),
            {"content": content, "created_by": actor_user.user_id, "created_at": utcnow().isoformat()},
        ]
        lead.updated_by = actor_user.user_id
        session.commit()
        session.refresh(lead)
        return self._to_read(lead)

    @staticmethod
    def _load_visible(session: Session, data_filter: DataFilter, lead_id: uuid.UUID) -> Lead:
        lead = session.get(Lead, lead_id)
        if lead is None or not data_filter.matches(lead.assigned_agent):
            raise NotFoundError("Lead not found")
        return lead

    @staticmethod
    def _publish(event_type: str, actor_user: ActorUser, result: LeadWriteResult) -> None:
        events.publish(
            event_type,
            actor_user.user_id,
            {
                "id": str(result.lead.id),
                "lead_id": result.lead.lead_id,
                "status": result.lead.status,
                "warnings": [warning.step for warning in result.warnings],
            },
        )

    def _to_write_response(self, message: str, result: LeadWriteResult) -> LeadWriteResponse:
        return LeadWriteResponse(
            message=message,
            lead=self._to_read(result.lead),
            warnings=[CascadeWarningRead(step=warning.step, message=warning.message) for warning in result.warnings],
        )

    @staticmethod
    def _to_read(lead: Lead) -> LeadRead:
        return LeadRead.model_validate(lead)


# Record type served by each satellite list endpoint.
_SATELLITES: dict[Resource, tuple[type[Any], FilterTarget, type[BaseModel]]] = {
    Resource.FOLLOWUPS: (Followup, FOLLOWUP_TARGET, FollowupRead),
    Resource.SALES: (Sale, SALE_TARGET, SaleRead),
    Resource.VENDOR_ORDERS: (VendorOrder, VENDOR_ORDER_TARGET, VendorOrderRead),
    Resource.PAYMENT_RECORDS: (PaymentRecord, PAYMENT_RECORD_TARGET, PaymentRecordRead),
    Resource.TARGETS: (Target, TARGET_TARGET, TargetRead),
}


class SatelliteService:
    def list_records(
        self,
        session: Session,
        actor_user: ActorUser,
        resource: Resource,
        query: RecordQuery,
        page: int,
        limit: int,
    ) -> Page[Any]:
        permissions = PermissionManager(actor_user)
        permissions.require(resource, Action.READ)
        model, target, read_model = _SATELLITES[resource]
        stmt = apply_filters(
            select(model),
            target,
            permissions.data_filter(),
            query,
            now=utcnow(),
            tz=business_timezone(),
        )
        return paginate(session, stmt, model.created_at.desc(), page, limit, read_model.model_validate)

    def create_target(self, session: Session, actor_user: ActorUser, dto: TargetCreate) -> TargetRead:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.TARGETS, Action.CREATE)
        start_date = as_utc(dto.start_date)
        end_date = as_utc(dto.end_date)
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")

        target = Target(
            target_id=identifiers.new_target_id(),
            title=dto.title,
            description=dto.description,
            target_amount=dto.target_amount,
            achieved_amount=0,
            remaining_amount=dto.target_amount,
            start_date=start_date,
            end_date=end_date,
            assigned_users=list(dict.fromkeys(dto.assigned_users)),
            is_active=dto.is_active,
            created_by=actor_user.user_id,
            updated_by=actor_user.user_id,
        )
        session.add(target)
        session.commit()
        session.refresh(target)
        record_activity(
            actor_user,
            action="create",
            module="targets",
            description=describe_change("create", "targets", target.title),
            target_id=str(target.id),
            target_type="Target",
        )
        return TargetRead.model_validate(target)
