from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

lead_cascade_steps_total = Counter(
    "lead_cascade_steps_total",
    "Lead cascade satellite writes by step and outcome",
    ["step", "outcome"],
)

lead_writes_total = Counter(
    "lead_writes_total",
    "Lead writes by operation",
    ["operation"],
)

permission_denials_total = Counter(
    "permission_denials_total",
    "Capability checks denied by resource and action",
    ["resource", "action"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    route_path = getattr(route, "path", None) if route is not None else None
    if isinstance(route_path, str) and route_path:
        return _PATH_PARAM_RE.sub("{id}", route_path)
    return _UUID_RE.sub("{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_cascade_step(step: str, outcome: str) -> None:
    lead_cascade_steps_total.labels(step=step, outcome=outcome).inc()


def observe_lead_write(operation: str) -> None:
    lead_writes_total.labels(operation=operation).inc()


def observe_permission_denied(resource: str, action: str) -> None:
    permission_denials_total.labels(resource=resource, action=action).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
