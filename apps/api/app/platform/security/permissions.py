from __future__ import annotations

from enum import StrEnum

from app.metrics import observe_permission_denied
from app.platform.security.context import ActorUser
from app.platform.security.errors import AuthorizationError
from app.platform.security.rls import DataFilter


class Role(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"


class Resource(StrEnum):
    LEADS = "leads"
    VENDOR_ORDERS = "vendor_orders"
    TARGETS = "targets"
    SALES = "sales"
    PAYMENT_RECORDS = "payment_records"
    FOLLOWUPS = "followups"
    USERS = "users"


class Action(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Resources a role may read, create and update. Delete is admin only.
_ROLE_RESOURCES: dict[Role, frozenset[Resource]] = {
    Role.MANAGER: frozenset(
        {
            Resource.LEADS,
            Resource.VENDOR_ORDERS,
            Resource.TARGETS,
            Resource.SALES,
            Resource.PAYMENT_RECORDS,
            Resource.FOLLOWUPS,
            Resource.USERS,
        }
    ),
    Role.AGENT: frozenset(
        {
            Resource.LEADS,
            Resource.VENDOR_ORDERS,
            Resource.PAYMENT_RECORDS,
            Resource.FOLLOWUPS,
        }
    ),
}


def _parse_role(value: str | None) -> Role | None:
    if not value:
        return None
    try:
        return Role(value.lower())
    except ValueError:
        return None


class PermissionManager:
    """Role-based capability checks and row ownership scoping for one caller.

    An absent identity or an unrecognised role fails closed: every check is
    denied and the data filter matches nothing.
    """

    def __init__(self, actor: ActorUser | None) -> None:
        self.actor = actor
        self.role = _parse_role(actor.role) if actor is not None else None

    def can(self, resource: str, action: Action) -> bool:
        if self.role is None:
            return False
        if self.role == Role.ADMIN:
            return True
        if action == Action.DELETE:
            return False
        try:
            parsed = Resource(resource)
        except ValueError:
            return False
        return parsed in _ROLE_RESOURCES[self.role]

    def can_read(self, resource: str) -> bool:
        return self.can(resource, Action.READ)

    def can_create(self, resource: str) -> bool:
        return self.can(resource, Action.CREATE)

    def can_update(self, resource: str) -> bool:
        return self.can(resource, Action.UPDATE)

    def can_delete(self, resource: str) -> bool:
        return self.can(resource, Action.DELETE)

    def can_export(self, resource: str) -> bool:
        return self.role in {Role.ADMIN, Role.MANAGER}

    def can_import(self, resource: str) -> bool:
        return self.role in {Role.ADMIN, Role.MANAGER}

    def can_access_activity_history(self) -> bool:
        return self.role == Role.ADMIN

    def require(self, resource: str, action: Action) -> None:
        if self.can(resource, action):
            return
        observe_permission_denied(resource=resource, action=action.value)
        raise AuthorizationError("Insufficient permissions", details={"resource": resource, "action": action.value})

    def data_filter(self) -> DataFilter:
        if self.actor is None or self.role is None:
            return DataFilter.nothing()
        if self.role == Role.ADMIN:
            return DataFilter.unrestricted()
        if self.role == Role.MANAGER:
            return DataFilter(owner_ids=frozenset({self.actor.user_id, *self.actor.assigned_agents}))
        return DataFilter(owner_ids=frozenset({self.actor.user_id}))

    def resolve_assigned_agent(self, requested: str | None) -> str:
        """Pick the agent a lead is assigned to on behalf of this caller.

        Admins may assign anyone, managers themselves or one of their agents,
        agents only themselves. Anything else falls back to the caller.
        """

        if self.actor is None:
            raise AuthorizationError("Insufficient permissions")
        caller_id = self.actor.user_id
        if not requested:
            return caller_id
        if self.role == Role.ADMIN:
            return requested
        if self.role == Role.MANAGER and (requested == caller_id or requested in self.actor.assigned_agents):
            return requested
        return caller_id
