"""
Session lifecycle: issuing, resolving and revoking bearer tokens.

A token is accepted only when both authorities agree: the credential
store still holds it (not expired by TTL, not revoked) and the codec
verifies its signature and embedded expiry.
"""
import logging
import re

from blogapi.config import settings
from blogapi.credentials import credential_store
from blogapi.exceptions import ExpiredOrRevokedCredential, MissingCredential
from blogapi.schemas import Identity
from blogapi.security import decode_token, encode_token

logger = logging.getLogger(__name__)

_BEARER_PREFIX_RE = re.compile(r"^bearer(?:\s+|$)", re.IGNORECASE)


def extract_token(raw_header: str | None) -> str | None:
    """
    Return the bare token from an ``Authorization`` header value.

    ``None`` means no credential was presented at all.  A header that
    contains only the scheme raises ``MissingCredential``.
    """
    if raw_header is None or not raw_header.strip():
        return None
    token = _BEARER_PREFIX_RE.sub("", raw_header.strip(), count=1).strip()
    if not token:
        raise MissingCredential("Malformed authentication token")
    return token


async def resolve(raw_header: str | None) -> Identity | None:
    """
    Turn an ``Authorization`` header value into an ``Identity``.

    Returns ``None`` for an anonymous request; whether that is acceptable
    is the caller's decision.  Raises a ``CredentialError`` subclass when a
    credential was presented but cannot be accepted.
    """
    token = extract_token(raw_header)
    if token is None:
        return None
    if await credential_store.get(token) is None:
        raise ExpiredOrRevokedCredential()
    return decode_token(token)


async def issue(identity: Identity) -> str:
    """Sign a token for *identity* and register it with a matching TTL."""
    ttl = settings.TOKEN_TTL_SECONDS
    token = encode_token(identity, ttl_seconds=ttl)
    await credential_store.set(token, token, ttl)
    return token


async def revoke(token: str) -> None:
    """Make *token* unusable even though its embedded expiry has not passed."""
    await credential_store.delete(token)
    logger.info("Session token revoked")
