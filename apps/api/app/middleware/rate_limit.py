from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.context import get_correlation_id, new_correlation_id
from app.core.config import get_settings
from app.core.context import bearer_subject

WINDOW_SECONDS = 60


@dataclass
class _Bucket:
    capacity: int
    tokens: float
    refilled_at: float = field(default_factory=time.monotonic)

    def take(self, now: float) -> int:
        """Spend one token; returns 0 on success or the seconds until one is available."""
        rate = self.capacity / WINDOW_SECONDS
        self.tokens = min(float(self.capacity), self.tokens + max(0.0, now - self.refilled_at) * rate)
        self.refilled_at = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return 0
        return max(1, math.ceil((1.0 - self.tokens) / rate))


class MutationBudget:
    """Per caller and resource group mutation allowance, refilled continuously over a minute."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[tuple[str, str], _Bucket] = {}

    def spend(self, caller: str, group: str, per_minute: int) -> int:
        if per_minute <= 0:
            return WINDOW_SECONDS
        with self._lock:
            bucket = self._buckets.get((caller, group))
            # A changed limit starts a fresh bucket rather than carrying stale capacity.
            if bucket is None or bucket.capacity != per_minute:
                bucket = _Bucket(capacity=per_minute, tokens=float(per_minute))
                self._buckets[(caller, group)] = bucket
            return bucket.take(time.monotonic())

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_budget = MutationBudget()


def _resource_group(path: str) -> str:
    # /api/leads/<id>/notes -> leads
    segments = [segment for segment in path.split("/") if segment]
    return segments[1] if len(segments) > 1 else "api"


class LeadMutationRateLimitMiddleware(BaseHTTPMiddleware):
    mutating_methods = frozenset({"POST", "PATCH", "PUT", "DELETE"})
    limited_prefixes = ("/api/leads", "/api/targets")

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        if (
            settings.rate_limit_disabled
            or request.method.upper() not in self.mutating_methods
            or not request.url.path.startswith(self.limited_prefixes)
        ):
            return await call_next(request)

        retry_after = _budget.spend(
            bearer_subject(request) or "anonymous",
            _resource_group(request.url.path),
            settings.rate_limit_lead_mutations_per_minute,
        )
        if retry_after == 0:
            return await call_next(request)

        correlation_id = get_correlation_id(request.state) or new_correlation_id()
        return JSONResponse(
            status_code=429,
            content={
                "code": "RATE_LIMITED",
                "message": "Too many lead changes, retry later",
                "details": {"retry_after_seconds": retry_after},
                "correlation_id": correlation_id,
            },
            headers={"Retry-After": str(retry_after), "X-Correlation-Id": correlation_id},
        )


def reset_rate_limiter() -> None:
    _budget.clear()
