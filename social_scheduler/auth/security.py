from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from social_scheduler.models import ROLES, Identity, Role


# Salted, one-way and randomized per call. The default pbkdf2 rounds are in the
# same cost range as bcrypt with a work factor of 10.
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Malformed or unknown hash format.
        return False


def create_access_token(
    *,
    secret: str,
    user_id: str,
    email: str,
    role: str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    """Sign a token carrying the caller's identity.

    `jti` makes every token unique, even two issued for the same identity
    within the same second.
    """
    if not secret:
        raise ValueError("jwt_secret_blank")

    issued = now or datetime.now(timezone.utc)
    exp = issued + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": str(role),
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature and expiry.

    Raises jwt.ExpiredSignatureError once the current time reaches `exp`, and
    jwt.InvalidTokenError for a bad signature or malformed token.
    """
    if not token:
        raise jwt.InvalidTokenError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["sub", "exp"]})


def identity_from_claims(payload: Dict[str, Any]) -> Identity:
    sub = payload.get("sub")
    role = payload.get("role")
    if not sub:
        raise jwt.InvalidTokenError("token_missing_sub")
    if role not in ROLES:
        raise jwt.InvalidTokenError("token_invalid_role")
    return Identity(id=str(sub), email=str(payload.get("email") or ""), role=Role(role))


def verify_access_token(*, token: str, secret: str) -> Identity:
    return identity_from_claims(decode_access_token(token=token, secret=secret))
