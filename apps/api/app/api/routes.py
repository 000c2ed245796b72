from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app import activity
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.leads.api import analytics_router, get_current_user as get_actor, leads_router, satellites_router
from app.metrics import generate_metrics_payload, metrics_content_type
from app.platform.security import ActorUser, AuthorizationError, NotFoundError, PermissionManager

router = APIRouter()
router.include_router(leads_router)
router.include_router(analytics_router)
router.include_router(satellites_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "role": user.role,
        "email": user.email,
        "assigned_agents": user.assigned_agents,
    }


@router.get("/api/activity", tags=["activity"])
def list_activity(
    module: str | None = Query(default=None),
    target_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    user: ActorUser = Depends(get_actor),
) -> dict[str, object]:
    if not PermissionManager(user).can_access_activity_history():
        raise AuthorizationError("Activity history is restricted to administrators")
    entries = [
        entry
        for entry in reversed(activity.activity_entries)
        if (module is None or entry.get("module") == module)
        and (target_id is None or entry.get("target_id") == target_id)
    ]
    return {"records": entries[:limit], "total": len(entries)}


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    if not get_settings().metrics_enabled:
        raise NotFoundError("Metrics are disabled")
    if "system.metrics.read" not in user.permissions:
        raise AuthorizationError("Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
