"""
Password hashing and the token codec.

Tokens are HS256 JWTs carrying ``id``, ``username`` and ``role`` plus
``iat``/``exp``.  The codec is stateless: it can tell whether a token was
validly issued and is still inside its embedded lifetime, but not whether
it has been revoked.  Revocation is the credential store's job.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from blogapi.config import settings
from blogapi.exceptions import ExpiredOrRevokedCredential, InvalidCredential
from blogapi.models import Role
from blogapi.schemas import Identity


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(plain_password: str) -> str:
    return bcrypt.hashpw(plain_password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------

def encode_token(identity: Identity, ttl_seconds: int | None = None) -> str:
    """Sign *identity* into a token that expires after *ttl_seconds*."""
    now = datetime.now(timezone.utc)
    ttl = settings.TOKEN_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    payload: dict[str, Any] = {
        "id": identity.user_id,
        "username": identity.username,
        "role": int(identity.role),
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Identity:
    """
    Verify *token* and return the identity it carries.

    Raises ``ExpiredOrRevokedCredential`` when the embedded expiry has
    passed and ``InvalidCredential`` for anything else that fails:
    signature, structure, missing claims or an unknown role value.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredOrRevokedCredential() from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidCredential(f"Authentication failed: {exc}") from exc

    try:
        return Identity(
            user_id=int(payload["id"]),
            username=str(payload["username"]),
            role=Role(payload["role"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidCredential("Authentication failed: malformed claims") from exc
