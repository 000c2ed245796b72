from __future__ import annotations

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Inbound ids are echoed into headers and logs, so only short token-like values are trusted.
_ACCEPTABLE_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def accept_correlation_id(candidate: str | None) -> str:
    """Return the caller supplied id when it is well formed, otherwise a fresh one."""
    if candidate and _ACCEPTABLE_ID.match(candidate.strip()):
        return candidate.strip()
    return new_correlation_id()


@contextmanager
def correlation_scope(value: str) -> Iterator[str]:
    token = correlation_id_var.set(value)
    try:
        yield value
    finally:
        correlation_id_var.reset(token)


def get_correlation_id(state: object | None = None) -> str | None:
    """Current correlation id, falling back to one stored on ``request.state``.

    Sync endpoints and dependencies run in a worker thread that sees a copy of the
    context, so the request state is the reliable source there.
    """
    value = correlation_id_var.get()
    if value:
        return value
    if state is None:
        return None
    return getattr(state, "correlation_id", None) or None
