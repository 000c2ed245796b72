from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ActorUser:
    """Verified caller identity as seen by services."""

    user_id: str
    role: str
    email: str = ""
    assigned_agents: list[str] = field(default_factory=list)
    permissions: set[str] = field(default_factory=set)
    correlation_id: str | None = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"

    @property
    def display_name(self) -> str:
        return self.email or self.user_id
