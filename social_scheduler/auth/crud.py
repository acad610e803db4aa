from __future__ import annotations

import re
import uuid
from typing import Any, Dict, List, Optional

from social_scheduler.config import Config
from social_scheduler.db import Database
from social_scheduler.errors import Conflict, NotFound, ValidationError
from social_scheduler.models import ROLES
from social_scheduler.util.time import utcnow_iso

from .security import hash_password, verify_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 3


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    e = normalize_email(email)
    if not EMAIL_RE.match(e):
        raise ValidationError("Please provide a valid email address", code="invalid_email")
    return e


def validate_password(password: str) -> str:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            code="password_too_short",
        )
    return password


def validate_name(name: str) -> str:
    n = (name or "").strip()
    if len(n) < MIN_NAME_LENGTH:
        raise ValidationError(
            f"Name must be at least {MIN_NAME_LENGTH} characters long",
            code="name_too_short",
        )
    return n


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """API view of a user row. The password hash never leaves this module."""
    d = dict(row)
    return {
        "id": d["user_id"],
        "name": d["name"],
        "email": d["email"],
        "role": d["role"],
        "createdAt": d["created_at"],
        "updatedAt": d["updated_at"],
    }


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: str) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (str(user_id),),
    ).fetchone()


def list_users(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT user_id, name, email FROM users ORDER BY created_at ASC",
    ).fetchall()
    return [{"id": r["user_id"], "name": r["name"], "email": r["email"]} for r in rows]


def count_users(conn: Any) -> int:
    return int(conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"])


def verify_user_credentials(conn: Any, email: str, password: str) -> Optional[Any]:
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    if not verify_password(password, str(row["password_hash"])):
        return None
    return row


def create_user(
    conn: Any,
    *,
    email: str,
    password: str,
    name: str,
    role: str = "user",
) -> Dict[str, Any]:
    e = validate_email(email)
    n = validate_name(name)
    validate_password(password)
    if role not in ROLES:
        raise ValidationError(f"Invalid role '{role}'. Allowed roles: {', '.join(ROLES)}", code="invalid_role")

    now = utcnow_iso()
    # ON CONFLICT keeps the unique-email check atomic on both SQLite and Postgres.
    inserted = conn.execute(
        """
        INSERT INTO users (user_id, email, name, password_hash, role, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?)
        ON CONFLICT(email) DO NOTHING
        RETURNING user_id
        """,
        (uuid.uuid4().hex, e, n, hash_password(password), role, now, now),
    ).fetchone()
    if inserted is None:
        raise Conflict("User already exists. Please use a different email.", code="email_taken")

    row = get_user_by_id(conn, inserted["user_id"])
    assert row is not None
    return public_user(row)


def update_user(
    conn: Any,
    user_id: str,
    *,
    name: Optional[str] = None,
    password: Optional[str] = None,
) -> Dict[str, Any]:
    """Update name and/or password.

    The hash is recomputed only when a new password is supplied.
    """
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFound("User not found.", code="user_not_found")

    fields: list[tuple[str, Any]] = []
    if name is not None:
        fields.append(("name", validate_name(name)))
    if password is not None:
        fields.append(("password_hash", hash_password(validate_password(password))))

    if not fields:
        return public_user(row)

    fields.append(("updated_at", utcnow_iso()))
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [str(user_id)]
    conn.execute(f"UPDATE users SET {sets} WHERE user_id=?", params)

    updated = get_user_by_id(conn, user_id)
    assert updated is not None
    return public_user(updated)


def delete_user(conn: Any, user_id: str) -> bool:
    """Hard-delete a user and the posts they own. Returns False if absent."""
    conn.execute("DELETE FROM posts WHERE user_id=?", (str(user_id),))
    cur = conn.execute("DELETE FROM users WHERE user_id=?", (str(user_id),))
    return cur.rowcount > 0


def touch_last_login(conn: Any, user_id: str) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=? WHERE user_id=?",
        (now, str(user_id)),
    )


def bootstrap_admin_if_needed(cfg: Config, db: Database) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    Controlled via environment variables so a new deployment has a deterministic way to log in.

    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD
    - AUTH_BOOTSTRAP_ADMIN_NAME (default: Administrator)

    This only runs when there are 0 rows in `users` and both credentials are set.
    """
    email = cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD
    if not email or not password:
        return None

    with db.connection() as conn:
        if count_users(conn) > 0:
            return None
        u = create_user(
            conn,
            email=email,
            password=password,
            name=cfg.AUTH_BOOTSTRAP_ADMIN_NAME or "Administrator",
            role="admin",
        )
    _debug(f"Bootstrapped initial admin user: email={u['email']}")
    return u
