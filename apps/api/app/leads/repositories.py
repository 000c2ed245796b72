from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import Base
from app.leads.models import Lead, PaymentRecord, Target, VendorOrder


logger = logging.getLogger("app.leads.repositories")

ModelT = TypeVar("ModelT", bound=Base)


class NaturalKeyRepository(Generic[ModelT]):
    """Insert-if-absent, else patch, keyed by a unique business key.

    Uniqueness of the key columns is enforced by the schema. A writer that
    loses an insert race re-reads the winner's row and patches it.
    """

    model: type[ModelT]
    key_fields: tuple[str, ...] = ()

    def find(self, session: Session, key: Mapping[str, Any]) -> ModelT | None:
        return session.scalar(select(self.model).filter_by(**key))

    def upsert(
        self,
        session: Session,
        key: Mapping[str, Any],
        patch: Mapping[str, Any],
        defaults: Callable[[], dict[str, Any]],
    ) -> tuple[ModelT, bool]:
        if set(key) != set(self.key_fields):
            raise ValueError(f"{self.model.__name__} is keyed by {self.key_fields}")

        existing = self.find(session, key)
        if existing is not None:
            return self._patch(session, existing, patch), False

        record = self.model(**{**defaults(), **patch, **key})
        self.before_save(record)
        session.add(record)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = self.find(session, key)
            if existing is None:
                raise
            logger.info("upsert_insert_race", extra={"step": self.model.__tablename__})
            return self._patch(session, existing, patch), False
        return record, True

    def _patch(self, session: Session, record: ModelT, patch: Mapping[str, Any]) -> ModelT:
        for field_name, value in patch.items():
            if field_name in self.key_fields:
                continue
            setattr(record, field_name, value)
        self.before_save(record)
        session.commit()
        return record

    def before_save(self, record: ModelT) -> None:
        """Hook for derived columns, run on insert and on every patch."""


class PaymentRecordRepository(NaturalKeyRepository[PaymentRecord]):
    model = PaymentRecord
    key_fields = ("lead_id",)

    def before_save(self, record: PaymentRecord) -> None:
        if record.sales_price and record.cost_price:
            record.total_margin = record.sales_price - record.cost_price


class VendorOrderRepository(NaturalKeyRepository[VendorOrder]):
    model = VendorOrder
    key_fields = ("customer_id", "product_name")

    def before_save(self, record: VendorOrder) -> None:
        record.grand_total = (record.item_subtotal or 0) + (record.shipping_handling or 0) + (record.tax_collected or 0)


def backfill_order_no(session: Session, lead_pk: uuid.UUID, order_no: str) -> bool:
    """Set ``lead.order_no`` only if it is still unset. Returns whether this call won."""

    result = session.execute(
        update(Lead)
        .where(Lead.id == lead_pk, Lead.order_no.is_(None))
        .values(order_no=order_no)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def increment_target_achievement(session: Session, agent_id: str, amount: float, now: datetime) -> list[str]:
    """Add ``amount`` to every active, in-window target assigned to ``agent_id``.

    Candidate targets are narrowed in SQL; membership in the JSON
    ``assigned_users`` list is checked here. The increment itself is a single
    relative UPDATE so concurrent closings do not lose writes.
    """

    candidates = session.scalars(
        select(Target).where(
            Target.is_active.is_(True),
            Target.start_date <= now,
            Target.end_date >= now,
        )
    ).all()
    matching = [target.id for target in candidates if agent_id in (target.assigned_users or [])]
    if not matching:
        return []

    session.execute(
        update(Target)
        .where(Target.id.in_(matching))
        .values(
            achieved_amount=Target.achieved_amount + amount,
            remaining_amount=Target.remaining_amount - amount,
        )
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return [str(target_pk) for target_pk in matching]


payment_records = PaymentRecordRepository()
vendor_orders = VendorOrderRepository()
