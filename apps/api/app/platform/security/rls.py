from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import false, true
from sqlalchemy.sql import ColumnElement, Select


@dataclass(frozen=True, slots=True)
class DataFilter:
    """Row-level ownership predicate.

    ``owner_ids`` of ``None`` means unrestricted; an empty set matches nothing.
    The same filter is evaluated in memory through :meth:`matches` and pushed
    into SQL through :meth:`clause`.
    """

    owner_ids: frozenset[str] | None

    @classmethod
    def unrestricted(cls) -> DataFilter:
        return cls(owner_ids=None)

    @classmethod
    def nothing(cls) -> DataFilter:
        return cls(owner_ids=frozenset())

    @property
    def is_unrestricted(self) -> bool:
        return self.owner_ids is None

    def matches(self, owner: str | None) -> bool:
        if self.owner_ids is None:
            return True
        return owner is not None and owner in self.owner_ids

    def clause(self, column: Any) -> ColumnElement[bool]:
        if self.owner_ids is None:
            return true()
        if not self.owner_ids:
            return false()
        return column.in_(sorted(self.owner_ids))


def apply_data_filter(query: Select[Any], column: Any, data_filter: DataFilter) -> Select[Any]:
    """Restrict a select to rows whose owner column passes the data filter."""

    if data_filter.is_unrestricted:
        return query
    return query.where(data_filter.clause(column))
