"""Social media post scheduler - Backend.

Users sign up, log in and manage posts aimed at a social platform with a
scheduled publish time.

Core concepts:
- Every mutating request passes the auth gate (verified bearer token ->
  current user row), optionally a role gate, then the post/user operation.
- A post belongs to the user who created it. Only that user or an admin may
  change or delete it.
- `scheduledAt` / `isPublished` are stored; publishing itself is not part of
  this service.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
