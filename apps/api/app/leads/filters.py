from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import and_, func, or_
from sqlalchemy.sql import ColumnElement, Select

from app.leads.models import Followup, Lead, PaymentRecord, Sale, Target, VendorOrder
from app.platform.security.rls import DataFilter


logger = logging.getLogger("app.leads.filters")

_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class DateWindowSpec:
    date_filter_type: str | None = None
    custom_start_date: str | None = None
    custom_end_date: str | None = None
    time_in_hours: str | float | None = None


@dataclass(frozen=True)
class DateWindow:
    start: datetime | None = None
    end: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


def _parse_day(raw: str | None) -> date | None:
    if not raw:
        return None
    value = raw.strip()
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.info("date_filter_ignored", extra={"error": f"unparseable date {value!r}"})
        return None


def _parse_hours(raw: str | float | None) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        hours = float(raw)
    except (TypeError, ValueError):
        logger.info("date_filter_ignored", extra={"error": f"unparseable hours {raw!r}"})
        return None
    if not math.isfinite(hours) or hours <= 0:
        return None
    return hours


def _hours_before(now: datetime, hours: float | None) -> datetime | None:
    if hours is None:
        return None
    try:
        return now - timedelta(hours=hours)
    except OverflowError:
        return None


def resolve_date_window(requested: DateWindowSpec, now: datetime, tz: ZoneInfo) -> DateWindow:
    """Resolve a preset plus optional hour limit into UTC bounds on creation time.

    Presets are evaluated in the business timezone ``tz``. A positive
    ``time_in_hours`` narrows the preset: the start becomes the later of the
    preset start and ``now - hours``, and an absent end becomes ``now``.
    Bad inputs drop out instead of raising.
    """

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(tz)
    today = local_now.date()

    start: datetime | None = None
    end: datetime | None = None
    preset = (requested.date_filter_type or "").strip().lower()

    if preset == "today":
        start = datetime.combine(today, time.min, tzinfo=tz)
        end = datetime.combine(today, _END_OF_DAY, tzinfo=tz)
    elif preset == "yesterday":
        day = today - timedelta(days=1)
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = datetime.combine(day, _END_OF_DAY, tzinfo=tz)
    elif preset == "this_week":
        monday = today - timedelta(days=today.weekday())
        start = datetime.combine(monday, time.min, tzinfo=tz)
    elif preset == "custom":
        start_day = _parse_day(requested.custom_start_date)
        end_day = _parse_day(requested.custom_end_date)
        if start_day is not None:
            start = datetime.combine(start_day, time.min, tzinfo=tz)
        if end_day is not None:
            end = datetime.combine(end_day, _END_OF_DAY, tzinfo=tz)

    hours_ago = _hours_before(now, _parse_hours(requested.time_in_hours))
    if hours_ago is not None:
        start = hours_ago if start is None else max(start, hours_ago)
        if end is None:
            end = now

    return DateWindow(
        start=start.astimezone(timezone.utc) if start is not None else None,
        end=end.astimezone(timezone.utc) if end is not None else None,
    )


@dataclass(frozen=True)
class FilterTarget:
    """Columns of one record type the composer filters on."""

    owner: Any
    agent: Any
    created_at: Any
    status: Any | None = None
    search: tuple[Any, ...] = ()


LEAD_TARGET = FilterTarget(
    owner=Lead.assigned_agent,
    agent=Lead.assigned_agent,
    created_at=Lead.created_at,
    status=Lead.status,
    search=(Lead.customer_name, Lead.customer_email, Lead.phone_number, Lead.lead_number, Lead.order_no),
)
FOLLOWUP_TARGET = FilterTarget(
    owner=Followup.assigned_agent,
    agent=Followup.assigned_agent,
    created_at=Followup.created_at,
    status=Followup.status,
    search=(Followup.customer_name, Followup.customer_email, Followup.phone_number, Followup.lead_number),
)
SALE_TARGET = FilterTarget(
    owner=Sale.assigned_agent,
    agent=Sale.assigned_agent,
    created_at=Sale.created_at,
    status=Sale.status,
    search=(Sale.customer_name, Sale.customer_email, Sale.phone_number, Sale.sale_id),
)
PAYMENT_RECORD_TARGET = FilterTarget(
    owner=PaymentRecord.created_by,
    agent=PaymentRecord.created_by,
    created_at=PaymentRecord.created_at,
    status=PaymentRecord.payment_status,
    search=(PaymentRecord.customer_name, PaymentRecord.customer_email, PaymentRecord.customer_phone, PaymentRecord.payment_id),
)
VENDOR_ORDER_TARGET = FilterTarget(
    owner=VendorOrder.created_by,
    agent=VendorOrder.created_by,
    created_at=VendorOrder.created_at,
    status=VendorOrder.order_status,
    search=(VendorOrder.order_no, VendorOrder.vendor_name, VendorOrder.customer_name, VendorOrder.product_name),
)
TARGET_TARGET = FilterTarget(
    owner=Target.created_by,
    agent=Target.created_by,
    created_at=Target.created_at,
    search=(Target.title, Target.target_id),
)


@dataclass(frozen=True)
class RecordQuery:
    search: str | None = None
    status: str | None = None
    agent: str | None = None
    agent_ids: tuple[str, ...] = ()
    window: DateWindowSpec = field(default_factory=DateWindowSpec)


def _search_clause(columns: tuple[Any, ...], term: str) -> ColumnElement[bool]:
    needle = term.lower()
    return or_(*(func.lower(column).contains(needle, autoescape=True) for column in columns))


def compose_conditions(
    target: FilterTarget,
    data_filter: DataFilter,
    query: RecordQuery,
    *,
    now: datetime,
    tz: ZoneInfo,
) -> list[ColumnElement[bool]]:
    """AND-able conditions for the data filter plus the caller's filters."""

    conditions: list[ColumnElement[bool]] = []
    if not data_filter.is_unrestricted:
        conditions.append(data_filter.clause(target.owner))

    search = (query.search or "").strip()
    if search and target.search:
        conditions.append(_search_clause(target.search, search))

    status = (query.status or "").strip()
    if status and status.lower() != "all" and target.status is not None:
        conditions.append(target.status == status)

    agent = (query.agent or "").strip()
    if agent and agent.lower() != "all":
        conditions.append(target.agent == agent)

    if query.agent_ids:
        conditions.append(target.agent.in_(list(query.agent_ids)))

    window = resolve_date_window(query.window, now, tz)
    if window.start is not None:
        conditions.append(target.created_at >= window.start)
    if window.end is not None:
        conditions.append(target.created_at <= window.end)
    return conditions


def apply_filters(
    stmt: Select[Any],
    target: FilterTarget,
    data_filter: DataFilter,
    query: RecordQuery,
    *,
    now: datetime,
    tz: ZoneInfo,
) -> Select[Any]:
    conditions = compose_conditions(target, data_filter, query, now=now, tz=tz)
    if not conditions:
        return stmt
    return stmt.where(and_(*conditions))
