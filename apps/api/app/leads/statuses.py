from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class LeadStatus(StrEnum):
    """Known pipeline statuses. Values are the strings stored and sent on the wire."""

    NEW = "New"
    CONNECTED = "Connected"
    NURTURING = "Nurturing"
    WAITING_FOR_RESPOND = "Waiting for respond"
    CUSTOMER_WAITING_FOR_RESPOND = "Customer Waiting for respond"
    FOLLOW_UP = "Follow up"
    DECISION_FOLLOW_UP = "Desision Follow up"
    PAYMENT_FOLLOW_UP = "Payment Follow up"
    PAYMENT_UNDER_PROCESS = "Payment Under Process"
    CUSTOMER_MAKING_PAYMENT = "Customer making payment"
    SALE_PAYMENT_DONE = "Sale Payment Done"
    SALE_CLOSED = "Sale Closed"

    @classmethod
    def parse(cls, value: str | None) -> LeadStatus | None:
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class VendorOrderStage(StrEnum):
    ENGINE_PULL = "stage1 (engine pull)"
    WASHING = "stage2 (washing)"
    TESTING = "stage3 (testing)"
    PACK_AND_READY = "stage4 (pack & ready)"
    SHIPPING = "stage5 (shipping)"
    DELIVERED = "stage6 (delivered)"


@dataclass(frozen=True)
class StatusPipeline:
    """Status sets that drive satellite writes on a status transition.

    A rule fires when the new status is in its set and the old one is not, so
    lateral moves inside a set never fire twice.
    """

    followup_statuses: frozenset[str]
    sale_payment_done_statuses: frozenset[str]
    sale_closed_statuses: frozenset[str]
    converted_statuses: frozenset[str]

    def entered_followup(self, old: str | None, new: str | None) -> bool:
        return _entered(self.followup_statuses, old, new)

    def entered_sale_payment_done(self, old: str | None, new: str | None) -> bool:
        return _entered(self.sale_payment_done_statuses, old, new)

    def entered_sale_closed(self, old: str | None, new: str | None) -> bool:
        return _entered(self.sale_closed_statuses, old, new)

    def is_converted(self, value: str | None) -> bool:
        return value is not None and value in self.converted_statuses


def _entered(members: frozenset[str], old: str | None, new: str | None) -> bool:
    return new is not None and new in members and (old is None or old not in members)


DEFAULT_PIPELINE = StatusPipeline(
    followup_statuses=frozenset(
        {LeadStatus.FOLLOW_UP.value, LeadStatus.DECISION_FOLLOW_UP.value, LeadStatus.PAYMENT_FOLLOW_UP.value}
    ),
    sale_payment_done_statuses=frozenset({LeadStatus.SALE_PAYMENT_DONE.value}),
    sale_closed_statuses=frozenset({LeadStatus.SALE_CLOSED.value}),
    converted_statuses=frozenset({LeadStatus.SALE_PAYMENT_DONE.value, LeadStatus.SALE_CLOSED.value}),
)
