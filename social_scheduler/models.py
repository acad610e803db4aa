from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Platform(str, Enum):
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"


ROLES = tuple(r.value for r in Role)
PLATFORMS = tuple(p.value for p in Platform)


@dataclass(frozen=True)
class Identity:
    """The claims a bearer token carries."""

    id: str
    email: str
    role: Role
