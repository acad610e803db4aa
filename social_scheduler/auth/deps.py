from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from social_scheduler.config import Config
from social_scheduler.db import Database
from social_scheduler.errors import Forbidden, Internal, Unauthenticated
from social_scheduler.models import Role

from .crud import get_user_by_id, public_user
from .security import verify_access_token


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


_bearer = HTTPBearer(auto_error=False)

NO_TOKEN_MESSAGE = "No token, authorization denied"
TOKEN_FAILED_MESSAGE = "Not authorized, token failed"


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise Internal("Server configuration missing", code="server_config_missing")
    return cfg


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise Internal("Server configuration missing", code="server_config_missing")
    return db


def _token_failed(reason: str) -> Unauthenticated:
    _debug(f"Rejected token: {reason}")
    return Unauthenticated(TOKEN_FAILED_MESSAGE, code=reason)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Authenticate a request.

    Reads `Authorization: Bearer <jwt>` first and falls back to the httpOnly
    cookie set by /auth/login. Nothing else identifies a caller: identity
    headers supplied by the client are ignored.

    On success the current user record (fresh role, no password hash) is
    attached to `request.state.user` and returned.
    """

    token: str | None = None

    # Prefer Bearer token when explicitly provided.
    if credentials is not None and credentials.credentials:
        token = credentials.credentials

    # Fall back to cookie.
    if not token:
        token = request.cookies.get(cfg.AUTH_COOKIE_NAME)

    if not token:
        raise Unauthenticated(NO_TOKEN_MESSAGE, code="missing_token")

    try:
        identity = verify_access_token(token=token, secret=str(cfg.AUTH_JWT_SECRET))
    except jwt.ExpiredSignatureError:
        raise _token_failed("token_expired")
    except jwt.InvalidTokenError:
        raise _token_failed("token_invalid")

    with db.connection() as conn:
        row = get_user_by_id(conn, identity.id)
        if row is None:
            raise _token_failed("user_not_found")
        user = public_user(row)

    # Convenience boolean
    user["is_admin"] = (user.get("role") == Role.ADMIN.value)
    request.state.user = user
    return user


def check_roles(user: Optional[Dict[str, Any]], allowed: Iterable[Role]) -> Dict[str, Any]:
    """Role gate. Must run after authentication has attached a user."""
    allowed_roles = [Role(r) for r in allowed]
    if not user or not user.get("role"):
        raise Unauthenticated("Not authenticated", code="not_authenticated")

    role = str(user["role"])
    if role not in {r.value for r in allowed_roles}:
        required = " or ".join(r.value for r in allowed_roles)
        raise Forbidden(
            f"Access denied. This action requires role: {required}. Your role: {role}",
            code="role_required",
            details={"required": [r.value for r in allowed_roles], "role": role},
        )
    return user


def require_roles(*allowed: Role) -> Callable[..., Dict[str, Any]]:
    """Build a dependency that authenticates, then restricts to `allowed` roles."""
    if not allowed:
        raise ValueError("require_roles needs at least one role")

    def _gate(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        return check_roles(user, allowed)

    return _gate


require_admin = require_roles(Role.ADMIN)
