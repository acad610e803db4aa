"""Authentication / authorization helpers.

Auth is intentionally lightweight:

- Users table (email/password hash + role)
- JWT access tokens, valid for 7 days by default

The API accepts:

- `Authorization: Bearer <token>` (scripts / API clients / the SPA)
- An httpOnly cookie set by `/auth/login`

Every protected route goes through the same path: verified token, then the
user row it names. A role gate can be layered on top of that.
"""

from .crud import bootstrap_admin_if_needed, create_user
from .deps import check_roles, get_current_user, require_admin, require_roles

__all__ = [
    "get_current_user",
    "check_roles",
    "require_roles",
    "require_admin",
    "bootstrap_admin_if_needed",
    "create_user",
]
