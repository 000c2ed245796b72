from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, case, desc, func, select
from sqlalchemy.orm import Session

from app.leads.filters import LEAD_TARGET, DateWindowSpec, RecordQuery, compose_conditions
from app.leads.models import Lead, as_utc, utcnow
from app.leads.schemas import (
    AgentPerformance,
    AnalyticsResponse,
    AnalyticsSummary,
    MonthlyTrend,
    PaymentMethodCount,
    StateCount,
    StatusCount,
)
from app.leads.service import business_timezone
from app.leads.statuses import DEFAULT_PIPELINE, StatusPipeline
from app.platform.security.context import ActorUser
from app.platform.security.permissions import Action, PermissionManager, Resource


def parse_user_ids(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(dict.fromkeys(item.strip() for item in raw.split(",") if item.strip()))


def _percent(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


class AnalyticsService:
    """Grouped lead statistics over the same composite filter the list endpoint uses."""

    def __init__(self, pipeline: StatusPipeline = DEFAULT_PIPELINE) -> None:
        self.pipeline = pipeline

    def aggregate(
        self,
        session: Session,
        actor_user: ActorUser,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        user_ids: str | None = None,
        now: datetime | None = None,
    ) -> AnalyticsResponse:
        permissions = PermissionManager(actor_user)
        permissions.require(Resource.LEADS, Action.READ)

        now = as_utc(now) or utcnow()
        tz = business_timezone()
        if not start_date:
            start_date = date(now.astimezone(tz).year, 1, 1).isoformat()

        query = RecordQuery(
            agent_ids=parse_user_ids(user_ids),
            window=DateWindowSpec(date_filter_type="custom", custom_start_date=start_date, custom_end_date=end_date),
        )
        conditions = compose_conditions(LEAD_TARGET, permissions.data_filter(), query, now=now, tz=tz)
        if not end_date:
            conditions.append(Lead.created_at <= now)
        where = and_(*conditions) if conditions else None

        def scoped(stmt: Any) -> Any:
            return stmt.where(where) if where is not None else stmt

        converted = tuple(self.pipeline.converted_statuses)
        is_converted = case((Lead.status.in_(converted), 1), else_=0)
        revenue = func.coalesce(Lead.sales_price, 0)

        status_rows = session.execute(
            scoped(select(Lead.status, func.count().label("lead_count")).group_by(Lead.status)).order_by(desc("lead_count"))
        ).all()

        agent_rows = session.execute(
            scoped(
                select(
                    Lead.assigned_agent,
                    func.count().label("total"),
                    func.sum(is_converted).label("converted"),
                    func.sum(revenue).label("revenue"),
                ).group_by(Lead.assigned_agent)
            ).order_by(Lead.assigned_agent)
        ).all()

        payment_rows = session.execute(
            scoped(
                select(
                    Lead.mode_of_payment,
                    func.count().label("lead_count"),
                    func.sum(revenue).label("total_amount"),
                )
                .where(Lead.mode_of_payment.is_not(None), Lead.mode_of_payment != "")
                .group_by(Lead.mode_of_payment)
            ).order_by(desc("lead_count"))
        ).all()

        state_rows = session.execute(
            scoped(
                select(Lead.state, func.count().label("lead_count"))
                .where(Lead.state.is_not(None), Lead.state != "")
                .group_by(Lead.state)
            )
            .order_by(desc("lead_count"), Lead.state)
            .limit(10)
        ).all()

        summary_row = session.execute(
            scoped(
                select(
                    func.count().label("total"),
                    func.coalesce(func.sum(revenue), 0).label("revenue"),
                    func.coalesce(func.sum(func.coalesce(Lead.total_margin, 0)), 0).label("margin"),
                    func.coalesce(func.sum(is_converted), 0).label("converted"),
                ).select_from(Lead)
            )
        ).one()

        # Month buckets follow the business timezone, which not every backend can do in SQL.
        trend_rows = session.execute(scoped(select(Lead.created_at, Lead.status, Lead.sales_price))).all()
        months: dict[str, dict[str, Any]] = defaultdict(lambda: {"leads": 0, "sales": 0, "revenue": 0.0})
        for created_at, status, sales_price in trend_rows:
            key = as_utc(created_at).astimezone(tz).strftime("%Y-%m")
            bucket = months[key]
            bucket["leads"] += 1
            if status in self.pipeline.converted_statuses:
                bucket["sales"] += 1
            bucket["revenue"] += float(sales_price or 0)

        total_leads = int(summary_row.total or 0)
        total_revenue = float(summary_row.revenue or 0)
        return AnalyticsResponse(
            status_distribution=[StatusCount(status=row[0], count=row.lead_count) for row in status_rows],
            monthly_trends=[MonthlyTrend(month=key, **months[key]) for key in sorted(months)],
            agent_performance=[
                AgentPerformance(
                    agent=row.assigned_agent,
                    total_leads=row.total,
                    converted_leads=int(row.converted or 0),
                    total_revenue=float(row.revenue or 0),
                    conversion_rate=_percent(int(row.converted or 0), row.total),
                )
                for row in agent_rows
            ],
            payment_methods=[
                PaymentMethodCount(method=row.mode_of_payment, count=row.lead_count, total_amount=float(row.total_amount or 0))
                for row in payment_rows
            ],
            state_distribution=[StateCount(state=row.state, count=row.lead_count) for row in state_rows],
            summary=AnalyticsSummary(
                total_leads=total_leads,
                total_revenue=total_revenue,
                average_lead_value=total_revenue / total_leads if total_leads else 0.0,
                conversion_rate=_percent(int(summary_row.converted or 0), total_leads),
                total_margin=float(summary_row.margin or 0),
            ),
        )
