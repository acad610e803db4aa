"""Row-level access to the `posts` table.

No authorization happens here; ownership is enforced by `posts.service`.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from social_scheduler.util.time import utcnow_iso


def public_post(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {
        "id": d["post_id"],
        "title": d["title"],
        "content": d["content"],
        "platform": d["platform"],
        "scheduledAt": d["scheduled_at"],
        "isPublished": bool(d["is_published"]),
        "user": d["user_id"],
        "media": d.get("media") or "",
        "createdAt": d["created_at"],
        "updatedAt": d["updated_at"],
    }


def get_post_by_id(conn: Any, post_id: str) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM posts WHERE post_id=?",
        (str(post_id),),
    ).fetchone()


def list_posts_for_user(conn: Any, user_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT * FROM posts
        WHERE user_id=?
        ORDER BY created_at DESC, seq DESC
        """,
        (str(user_id),),
    ).fetchall()
    return [public_post(r) for r in rows]


def insert_post(
    conn: Any,
    *,
    user_id: str,
    title: str,
    content: str,
    platform: str,
    scheduled_at: str,
    media: str = "",
) -> Dict[str, Any]:
    now = utcnow_iso()
    post_id = uuid.uuid4().hex
    conn.execute(
        """
        INSERT INTO posts (post_id, user_id, title, content, platform, scheduled_at, is_published, media, created_at, updated_at)
        VALUES (?,?,?,?,?,?,0,?,?,?)
        """,
        (post_id, str(user_id), title, content, platform, scheduled_at, media, now, now),
    )
    row = get_post_by_id(conn, post_id)
    assert row is not None
    return public_post(row)


def update_post_fields(
    conn: Any,
    post_id: str,
    *,
    title: str,
    content: str,
    platform: str,
    media: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Update the mutable fields of a post. Returns None if the row is gone."""
    fields: list[tuple[str, Any]] = [
        ("title", title),
        ("content", content),
        ("platform", platform),
    ]
    if media is not None:
        fields.append(("media", media))
    fields.append(("updated_at", utcnow_iso()))

    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [str(post_id)]
    cur = conn.execute(f"UPDATE posts SET {sets} WHERE post_id=?", params)
    if cur.rowcount == 0:
        return None

    row = get_post_by_id(conn, post_id)
    return public_post(row) if row is not None else None


def delete_post_row(conn: Any, post_id: str) -> bool:
    cur = conn.execute("DELETE FROM posts WHERE post_id=?", (str(post_id),))
    return cur.rowcount > 0
