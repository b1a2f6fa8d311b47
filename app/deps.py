"""Shared FastAPI dependencies."""

from fastapi import Request
from pydantic import BaseModel

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.logging import bind_user
from app.core.security import bearer_token, decode_access_token


class CurrentUser(BaseModel):
    user_id: int
    role: str = "student"


async def get_current_user(request: Request) -> CurrentUser:
    """Dependency: decode the bearer JWT into {user_id, role}."""
    token = bearer_token(request.headers.get("Authorization"))
    if not token:
        raise UnauthorizedError("No token")
    payload = decode_access_token(token)
    raw_id = payload.get("userId", payload.get("id"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        raise UnauthorizedError("Token invalid") from None
    user = CurrentUser(user_id=user_id, role=payload.get("role") or "student")
    bind_user(user.user_id, user.role)
    return user


async def require_admin(request: Request) -> CurrentUser:
    """Dependency: require current user to have role admin."""
    user = await get_current_user(request)
    if user.role != "admin":
        raise ForbiddenError("Forbidden")
    return user
