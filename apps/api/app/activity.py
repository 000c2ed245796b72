from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from app.context import get_correlation_id
from app.platform.security.context import ActorUser

logger = logging.getLogger("app.activity")

activity_entries: list[dict[str, Any]] = []

_VERBS = {"create": "Created", "update": "Updated", "delete": "Deleted", "view": "Viewed"}
_MODULE_NOUNS = {
    "leads": "lead",
    "vendor_orders": "vendor order",
    "payment_records": "payment record",
    "targets": "target",
    "sales": "sale",
    "followups": "follow-up",
}


def describe_change(action: str, module: str, item_name: str | None = None) -> str:
    """Human readable one-liner such as ``Created lead: Jane Doe``."""

    verb = _VERBS.get(action, action.capitalize())
    noun = _MODULE_NOUNS.get(module, module)
    return f"{verb} {noun}: {item_name}" if item_name else f"{verb} {noun}"


def record_activity(
    actor: ActorUser,
    *,
    action: str,
    module: str,
    description: str,
    target_id: str | None = None,
    target_type: str | None = None,
    changes: dict[str, Any] | None = None,
) -> None:
    """Append an activity log entry. Failures are logged and never reach the caller."""

    try:
        activity_entries.append(
            {
                "id": str(uuid.uuid4()),
                "user_id": actor.user_id,
                "user_name": actor.display_name,
                "user_role": actor.role,
                "action": action,
                "module": module,
                "description": description,
                "target_id": target_id,
                "target_type": target_type,
                "changes": changes,
                "ip_address": actor.ip_address,
                "user_agent": actor.user_agent,
                "correlation_id": actor.correlation_id or get_correlation_id(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
    except Exception as exc:
        logger.exception("activity_log_failed", extra={"actor_id": actor.user_id, "error": str(exc)})
