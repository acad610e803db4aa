"""Scheduled posts: storage (`crud`) and caller-facing operations (`service`).

`scheduledAt` and `isPublished` are stored as-is. Nothing here publishes a
post to a social platform or flips `isPublished`.
"""

from .service import create_post, delete_post, get_post, list_my_posts, update_post, validate_post_input

__all__ = [
    "create_post",
    "list_my_posts",
    "get_post",
    "update_post",
    "delete_post",
    "validate_post_input",
]
