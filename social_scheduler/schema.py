"""Database schema for the post scheduler.

Two tables stand in for the `users` and `posts` collections. Ids are opaque
strings generated by the application (uuid4 hex), so rows can be referenced
the same way on SQLite and Postgres.

Timestamps are ISO-8601 TEXT (UTC, millisecond precision, trailing 'Z'). ISO
strings sort lexicographically in time order. `posts.seq` breaks ties between
posts created within the same millisecond.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (pragmas + autoincrement).
"""

from __future__ import annotations

import re

from social_scheduler.models import PLATFORMS, ROLES


def _in_list(values: tuple[str, ...]) -> str:
    return ",".join(f"'{v}'" for v in values)


SCHEMA_SQLITE = rf"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- Only password hashes are stored. Emails are stored lowercased.
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ({_in_list(ROLES)})),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_users_role ON users (role);

-- Scheduled posts
-- is_published is stored but nothing in this service flips it.
CREATE TABLE IF NOT EXISTS posts (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    platform TEXT NOT NULL CHECK (platform IN ({_in_list(PLATFORMS)})),
    scheduled_at TEXT NOT NULL,
    is_published INTEGER NOT NULL DEFAULT 0,
    media TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_posts_user_created ON posts (user_id, created_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # AUTOINCREMENT primary keys
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    out = re.sub(r"\bAUTOINCREMENT\b", "", out, flags=re.IGNORECASE)

    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
