from app.platform.security.context import ActorUser
from app.platform.security.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    PartsDeskError,
    UnknownInternalError,
    ValidationError,
)
from app.platform.security.permissions import Action, PermissionManager, Resource, Role
from app.platform.security.rls import DataFilter, apply_data_filter

__all__ = [
    "ActorUser",
    "Action",
    "AuthenticationError",
    "AuthorizationError",
    "DataFilter",
    "NotFoundError",
    "PartsDeskError",
    "PermissionManager",
    "Resource",
    "Role",
    "UnknownInternalError",
    "ValidationError",
    "apply_data_filter",
]
