"""Post operations as seen by an authenticated caller.

Every function receives the caller (the public user dict attached by the auth
gate) and enforces the ownership rules before touching the store:

- create/list act on the caller's own posts
- get is open to any authenticated caller
- update/delete require the owner or an admin
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from social_scheduler.db import Database
from social_scheduler.errors import Forbidden, NotFound, ValidationError
from social_scheduler.models import PLATFORMS, Role
from social_scheduler.util.time import parse_timestamp

from .crud import delete_post_row, get_post_by_id, insert_post, list_posts_for_user, public_post, update_post_fields


def _debug(msg: str) -> None:
    print(f"[posts] {msg}")


TITLE_MIN = 3
TITLE_MAX = 100
CONTENT_MAX = 2000


@dataclass(frozen=True)
class PostInput:
    title: str
    content: str
    platform: str
    media: Optional[str] = None


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("Title, content, and platform must be strings.", code="invalid_type")
    return value.strip()


def _clean_media(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Media must be a URL string.", code="invalid_media")
    m = value.strip()
    if m and not m.lower().startswith(("http://", "https://")):
        raise ValidationError("Media must be an http(s) URL.", code="invalid_media")
    return m


def validate_post_input(title: Any, content: Any, platform: Any, media: Any = None) -> PostInput:
    t = _clean_text(title)
    c = _clean_text(content)
    p = _clean_text(platform).lower()

    if not t or not c or not p:
        raise ValidationError("Title, content, and platform are required.", code="missing_fields")
    if not (TITLE_MIN <= len(t) <= TITLE_MAX):
        raise ValidationError(
            f"Title must be between {TITLE_MIN} and {TITLE_MAX} characters.",
            code="invalid_title",
        )
    if len(c) > CONTENT_MAX:
        raise ValidationError(f"Content must be at most {CONTENT_MAX} characters.", code="invalid_content")
    if p not in PLATFORMS:
        raise ValidationError(
            f"Invalid platform '{p}'. Allowed platforms: {', '.join(PLATFORMS)}",
            code="invalid_platform",
            details={"allowed": list(PLATFORMS)},
        )

    return PostInput(title=t, content=c, platform=p, media=_clean_media(media))


def can_modify(user: Dict[str, Any], post_owner_id: str) -> bool:
    return str(user.get("id")) == str(post_owner_id) or user.get("role") == Role.ADMIN.value


def create_post(
    db: Database,
    user: Dict[str, Any],
    *,
    title: Any,
    content: Any,
    platform: Any,
    scheduled_at: Any = None,
    media: Any = None,
) -> Dict[str, Any]:
    data = validate_post_input(title, content, platform, media)
    try:
        when = parse_timestamp(scheduled_at)
    except ValueError:
        raise ValidationError("Invalid scheduled date/time.", code="invalid_scheduled_at") from None

    with db.connection() as conn:
        post = insert_post(
            conn,
            user_id=str(user["id"]),
            title=data.title,
            content=data.content,
            platform=data.platform,
            scheduled_at=when,
            media=data.media or "",
        )
    _debug(f"Created post id={post['id']} user={post['user']} platform={post['platform']}")
    return post


def list_my_posts(db: Database, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Caller's posts, newest first. An empty list is a normal result."""
    with db.connection() as conn:
        return list_posts_for_user(conn, str(user["id"]))


def get_post(db: Database, user: Dict[str, Any], post_id: str) -> Dict[str, Any]:
    with db.connection() as conn:
        row = get_post_by_id(conn, post_id)
    if row is None:
        raise NotFound("Post not found.", code="post_not_found")
    return public_post(row)


def update_post(
    db: Database,
    user: Dict[str, Any],
    post_id: str,
    *,
    title: Any,
    content: Any,
    platform: Any,
    media: Any = None,
) -> Dict[str, Any]:
    data = validate_post_input(title, content, platform, media)

    with db.connection() as conn:
        row = get_post_by_id(conn, post_id)
        if row is None:
            raise NotFound("Post not found.", code="post_not_found")
        if not can_modify(user, row["user_id"]):
            _debug(f"Ownership violation: user={user.get('id')} tried to update post={post_id}")
            raise Forbidden("You can only update your own posts.", code="ownership_violation")

        post = update_post_fields(
            conn,
            post_id,
            title=data.title,
            content=data.content,
            platform=data.platform,
            media=data.media,
        )
    if post is None:
        # Deleted between the read and the write.
        raise NotFound("Post not found.", code="post_not_found")
    return post


def delete_post(db: Database, user: Dict[str, Any], post_id: str) -> None:
    with db.connection() as conn:
        row = get_post_by_id(conn, post_id)
        if row is None:
            raise NotFound("Post not found.", code="post_not_found")
        if not can_modify(user, row["user_id"]):
            _debug(f"Ownership violation: user={user.get('id')} tried to delete post={post_id}")
            raise Forbidden("Not authorized to delete this post.", code="ownership_violation")
        if not delete_post_row(conn, post_id):
            raise NotFound("Post not found.", code="post_not_found")
    _debug(f"Deleted post id={post_id} by user={user.get('id')}")
