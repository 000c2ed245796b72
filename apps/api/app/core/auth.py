from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings
from app.platform.security.errors import AuthenticationError


@dataclass
class AuthUser:
    sub: str
    role: str
    email: str = ""
    assigned_agents: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)


def decode_token(token: str) -> AuthUser | None:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not isinstance(role, str):
        return None

    assigned_agents = payload.get("assigned_agents") or []
    if not isinstance(assigned_agents, list):
        assigned_agents = []
    permissions = payload.get("permissions") or []
    if not isinstance(permissions, list):
        permissions = []
    return AuthUser(
        sub=str(subject),
        role=role.lower(),
        email=str(payload.get("email") or ""),
        assigned_agents=[str(item) for item in assigned_agents],
        permissions=[str(item) for item in permissions],
    )


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.removeprefix("Bearer ").strip() if auth_header.startswith("Bearer ") else ""
    if not token:
        raise AuthenticationError("Missing bearer token")

    user = decode_token(token)
    if user is None:
        raise AuthenticationError("Invalid or expired token")

    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = user.sub
    return user
