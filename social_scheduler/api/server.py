from __future__ import annotations

import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from social_scheduler import __version__
from social_scheduler.auth import bootstrap_admin_if_needed, create_user, get_current_user, require_admin
from social_scheduler.auth.crud import (
    delete_user,
    list_users,
    public_user,
    touch_last_login,
    update_user,
    verify_user_credentials,
)
from social_scheduler.auth.deps import get_config, get_db
from social_scheduler.auth.security import create_access_token
from social_scheduler.config import Config, load_config
from social_scheduler.db import Database, init_db
from social_scheduler.errors import NotFound, SchedulerError, Unauthenticated, ValidationError
from social_scheduler.posts import service as posts


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------

def _cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    # Browsers require Secure when SameSite=None
    if cfg.AUTH_COOKIE_SAMESITE.lower() == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def _set_auth_cookie(response: Response, *, token: str, cfg: Config) -> None:
    """Set the httpOnly session cookie for browser-based auth."""
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        samesite=cfg.AUTH_COOKIE_SAMESITE.lower(),
        secure=_cookie_secure(cfg),
        max_age=cfg.token_max_age_seconds,
        path=cfg.AUTH_COOKIE_PATH,
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


def _clear_auth_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(key=cfg.AUTH_COOKIE_NAME, path=cfg.AUTH_COOKIE_PATH, domain=cfg.AUTH_COOKIE_DOMAIN)


class SignupRequest(BaseModel):
    # Optional so missing fields get our own 400 message instead of a schema error.
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


@router.post("/auth/signup", status_code=201)
def auth_signup(
    payload: SignupRequest,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Create a new user account with role=user. Does not log the user in."""
    if not payload.name or not payload.email or not payload.password:
        raise ValidationError("All fields are required: name, email, password.", code="missing_fields")

    with db.connection() as conn:
        u = create_user(conn, email=payload.email, password=payload.password, name=payload.name, role="user")

    _debug(f"Signup user={u['id']}")
    return {"message": "Signup successful! You can now log in.", "user": u}


@router.post("/auth/login")
def auth_login(
    payload: LoginRequest,
    response: Response,
    cfg: Config = Depends(get_config),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required.", code="missing_fields")

    with db.connection() as conn:
        user_row = verify_user_credentials(conn, payload.email, payload.password)
        if user_row is None:
            raise Unauthenticated("Invalid email or password.", code="invalid_credentials")

        touch_last_login(conn, str(user_row["user_id"]))
        u = public_user(user_row)

    token = create_access_token(
        secret=str(cfg.AUTH_JWT_SECRET),
        user_id=u["id"],
        email=u["email"],
        role=u["role"],
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    u["is_admin"] = (u.get("role") == "admin")

    _set_auth_cookie(response, token=token, cfg=cfg)

    return {"message": "Login successful", "token": token, "token_type": "bearer", "user": u}


@router.post("/auth/logout")
def auth_logout(response: Response, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    """Clear the browser session cookie."""
    _clear_auth_cookie(response, cfg)
    return {"ok": True}


@router.get("/auth/me")
def auth_me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return {"user": user}


# -----------------------------
# Posts
# -----------------------------


class PostCreateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    platform: Optional[str] = None
    # ISO-8601 string or epoch milliseconds; defaults to now. Checked by the
    # posts layer so booleans and other JSON types are rejected, not coerced.
    scheduledAt: Any = None
    media: Optional[str] = None


class PostUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    platform: Optional[str] = None
    media: Optional[str] = None


@router.get("/posts")
def list_posts(
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    return {"message": "Posts retrieved successfully.", "posts": posts.list_my_posts(db, user)}


@router.post("/posts", status_code=201)
def create_post(
    payload: PostCreateRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    post = posts.create_post(
        db,
        user,
        title=payload.title,
        content=payload.content,
        platform=payload.platform,
        scheduled_at=payload.scheduledAt,
        media=payload.media,
    )
    return {"message": "Post created successfully.", "post": post}


@router.get("/posts/{post_id}")
def get_post(
    post_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    return {"message": "Post fetched successfully.", "post": posts.get_post(db, user, post_id)}


@router.put("/posts/{post_id}")
def update_post(
    post_id: str,
    payload: PostUpdateRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    post = posts.update_post(
        db,
        user,
        post_id,
        title=payload.title,
        content=payload.content,
        platform=payload.platform,
        media=payload.media,
    )
    return {"message": "Post updated successfully.", "post": post}


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    posts.delete_post(db, user, post_id)
    return {"message": "Post deleted successfully."}


# -----------------------------
# Users
# -----------------------------


class UpdateMeRequest(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None


@router.get("/users")
def admin_list_users(
    _admin: Dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    with db.connection() as conn:
        return {"users": list_users(conn)}


@router.patch("/users/me")
def update_me(
    payload: UpdateMeRequest,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    if payload.name is None and payload.password is None:
        raise ValidationError("Nothing to update: provide name and/or password.", code="missing_fields")
    with db.connection() as conn:
        u = update_user(conn, user["id"], name=payload.name, password=payload.password)
    return {"user": u}


@router.delete("/users/{user_id}")
def admin_delete_user(
    user_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    with db.connection() as conn:
        if not delete_user(conn, user_id):
            raise NotFound("User not found.", code="user_not_found")
    _debug(f"Deleted user={user_id} by admin={admin['id']}")
    return {"message": "User deleted successfully."}


# -----------------------------
# App
# -----------------------------


def _error_response(exc: SchedulerError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def _install_error_handlers(app: FastAPI, cfg: Config) -> None:
    @app.exception_handler(SchedulerError)
    async def _scheduler_error(_request: Request, exc: SchedulerError) -> JSONResponse:
        if exc.status_code >= 500:
            _debug(f"Internal error code={exc.code}: {exc} (cause: {exc.__cause__!r})")
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request body.", "code": "validation_error", "details": {"fields": fields}},
        )

    @app.exception_handler(Exception)
    async def _unhandled(_request: Request, exc: Exception) -> JSONResponse:
        _debug("Unhandled error:\n" + "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
        body: Dict[str, Any] = {"detail": "Internal server error", "code": "internal_error"}
        if cfg.EXPOSE_ERROR_DETAILS:
            body["details"] = {"error": repr(exc)}
        return JSONResponse(status_code=500, content=body)


def create_app(cfg: Config | None = None) -> FastAPI:
    """Build the API. Without an explicit Config, the environment must provide one."""
    cfg = cfg or load_config()
    db = Database(
        str(cfg.DB_DSN),
        connect_timeout=cfg.DB_CONNECT_TIMEOUT_SECONDS,
        max_connections=cfg.DB_POOL_MAX_CONNECTIONS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Ensure schema exists.
        init_db(db)

        # Bootstrap first admin if needed (only when users table is empty)
        bootstrap_admin_if_needed(cfg, db)
        try:
            yield
        finally:
            db.close()

    app = FastAPI(title="Social Post Scheduler", version=__version__, lifespan=lifespan)
    # Make config and the store available to deps.
    app.state.cfg = cfg
    app.state.db = db

    # CORS is mainly needed for local development (SPA dev server -> API on :8000).
    # In production (single origin behind a reverse proxy) CORS is typically unnecessary.
    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app, cfg)
    app.include_router(router)
    return app
