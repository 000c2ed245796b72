from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.core.auth import AuthUser, get_current_user as get_auth_user
from app.core.database import get_db
from app.leads.analytics import AnalyticsService
from app.leads.filters import DateWindowSpec, RecordQuery
from app.leads.schemas import (
    AnalyticsResponse,
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
from app.leads.service import LeadService, SatelliteService
from app.platform.security.context import ActorUser
from app.platform.security.errors import PartsDeskError
from app.platform.security.permissions import Resource

leads_router = APIRouter(prefix="/api/leads", tags=["leads"])
analytics_router = APIRouter(prefix="/api/analytics", tags=["leads.analytics"])
satellites_router = APIRouter(prefix="/api", tags=["leads.satellites"])
lead_service = LeadService()
analytics_service = AnalyticsService()
satellite_service = SatelliteService()


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id(request.state)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id or None,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def _failure(request: Request, exc: PartsDeskError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    context = getattr(request.state, "context", None)
    correlation_id = get_correlation_id(request.state)
    return ActorUser(
        user_id=auth_user.sub,
        role=auth_user.role,
        email=auth_user.email,
        assigned_agents=list(auth_user.assigned_agents),
        permissions=set(auth_user.permissions),
        correlation_id=correlation_id or None,
        ip_address=getattr(context, "ip_address", "unknown"),
        user_agent=getattr(context, "user_agent", "unknown"),
    )


def record_query(
    search: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    agent: str | None = Query(default=None),
    date_filter_type: str | None = Query(default=None),
    custom_start_date: str | None = Query(default=None),
    custom_end_date: str | None = Query(default=None),
    time_in_hours: str | None = Query(default=None),
) -> RecordQuery:
    # Filter inputs stay strings so a malformed value narrows nothing instead of failing the request.
    return RecordQuery(
        search=search,
        status=status_filter,
        agent=agent,
        window=DateWindowSpec(
            date_filter_type=date_filter_type,
            custom_start_date=custom_start_date,
            custom_end_date=custom_end_date,
            time_in_hours=time_in_hours,
        ),
    )


@leads_router.get("", response_model=Page[LeadRead])
def list_leads(
    request: Request,
    page: int = Query(default=1),
    limit: int = Query(default=10),
    query: RecordQuery = Depends(record_query),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Page[LeadRead] | JSONResponse:
    try:
        return lead_service.list_leads(db, user, query, page, limit)
    except PartsDeskError as exc:
        return _failure(request, exc)


@leads_router.post("", response_model=LeadWriteResponse, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadWriteResponse | JSONResponse:
    try:
        return lead_service.create_lead(db, user, dto)
    except PartsDeskError as exc:
        return _failure(request, exc)


@leads_router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.get_lead(db, user, lead_id)
    except PartsDeskError as exc:
        return _failure(request, exc)


@leads_router.patch("/{lead_id}", response_model=LeadWriteResponse)
def patch_lead(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadWriteResponse | JSONResponse:
    try:
        return lead_service.update_lead(db, user, lead_id, dto)
    except PartsDeskError as exc:
        return _failure(request, exc)


@leads_router.delete("/{lead_id}", response_model=MessageResponse)
def delete_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> MessageResponse | JSONResponse:
    try:
        return lead_service.delete_lead(db, user, lead_id)
    except PartsDeskError as exc:
        return _failure(request, exc)


@leads_router.post("/{lead_id}/notes", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def add_note(
    request: Request,
    lead_id: uuid.UUID,
    dto: NoteCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        return lead_service.add_note(db, user, lead_id, dto)
    except PartsDeskError as exc:
        return _failure(request, exc)


@analytics_router.get("", response_model=AnalyticsResponse)
def get_analytics(
    request: Request,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    user_ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> AnalyticsResponse | JSONResponse:
    try:
        return analytics_service.aggregate(db, user, start_date=start_date, end_date=end_date, user_ids=user_ids)
    except PartsDeskError as exc:
        return _failure(request, exc)


def _list_satellite(
    request: Request,
    resource: Resource,
    db: Session,
    user: ActorUser,
    query: RecordQuery,
    page: int,
    limit: int,
) -> Page[Any] | JSONResponse:
    try:
        return satellite_service.list_records(db, user, resource, query, page, limit)
    except PartsDeskError as exc:
        return _failure(request, exc)


@satellites_router.get("/followups", response_model=Page[FollowupRead])
def list_followups(
    request: Request,
    page: int = Query(default=1),
    limit: int = Query(default=10),
    query: RecordQuery = Depends(record_query),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Page[Any] | JSONResponse:
    return _list_satellite(request, Resource.FOLLOWUPS, db, user, query, page, limit)


@satellites_router.get("/sales", response_model=Page[SaleRead])
def list_sales(
    request: Request,
    page: int = Query(default=1),
    limit: int = Query(default=10),
    query: RecordQuery = Depends(record_query),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Page[Any] | JSONResponse:
    return _list_satellite(request, Resource.SALES, db, user, query, page, limit)


@satellites_router.get("/vendor-orders", response_model=Page[VendorOrderRead])
def list_vendor_orders(
    request: Request,
    page: int = Query(default=1),
    limit: int = Query(default=10),
    query: RecordQuery = Depends(record_query),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Page[Any] | JSONResponse:
    return _list_satellite(request, Resource.VENDOR_ORDERS, db, user, query, page, limit)


@satellites_router.get("/payment-records", response_model=Page[PaymentRecordRead])
def list_payment_records(
    request: Request,
    page: int = Query(default=1),
    limit: int = Query(default=10),
    query: RecordQuery = Depends(record_query),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Page[Any] | JSONResponse:
    return _list_satellite(request, Resource.PAYMENT_RECORDS, db, user, query, page, limit)


@satellites_router.get("/targets", response_model=Page[TargetRead])
def list_targets(
    request: Request,
    page: int = Query(default=1),
    limit: int = Query(default=10),
    query: RecordQuery = Depends(record_query),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Page[Any] | JSONResponse:
    return _list_satellite(request, Resource.TARGETS, db, user, query, page, limit)


@satellites_router.post("/targets", response_model=TargetRead, status_code=status.HTTP_201_CREATED)
def create_target(
    request: Request,
    dto: TargetCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> TargetRead | JSONResponse:
    try:
        return satellite_service.create_target(db, user, dto)
    except PartsDeskError as exc:
        return _failure(request, exc)
