from __future__ import annotations

from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.auth import decode_token

_MAX_USER_AGENT = 512


@dataclass
class RequestContext:
    """Who is calling and from where; copied into activity entries and request logs."""

    correlation_id: str
    user_id: str | None
    ip_address: str
    user_agent: str


def bearer_subject(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    user = decode_token(auth_header.removeprefix("Bearer ").strip())
    return user.sub if user is not None else None


def client_address(request: Request) -> str:
    # First hop of the forwarded chain is the calling client.
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        request.state.context = RequestContext(
            correlation_id=getattr(request.state, "correlation_id", None) or "",
            user_id=bearer_subject(request),
            ip_address=client_address(request),
            user_agent=(request.headers.get("user-agent") or "unknown")[:_MAX_USER_AGENT],
        )
        return await call_next(request)
