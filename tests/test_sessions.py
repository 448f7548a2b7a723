"""
Session tests: token codec, credential store, resolver and the auth gate
as seen over HTTP.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from starlette.requests import Request

from blogapi import sessions
from blogapi.config import settings
from blogapi.credentials import credential_store
from blogapi.exceptions import (
    CredentialStoreUnavailable,
    ExpiredOrRevokedCredential,
    InvalidCredential,
    MissingCredential,
)
from blogapi.dependencies import optional_identity, require_identity
from blogapi.models import Article, ArticleLike, Role
from blogapi.schemas import Identity
from blogapi.security import decode_token, encode_token, hash_password, verify_password

ALICE = Identity(user_id=7, username="alice01", role=Role.AUTHOR)


# ---------------------------------------------------------------------------
# Passwords and codec
# ---------------------------------------------------------------------------

def test_password_hash_round_trip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_verify_password_rejects_non_bcrypt_value():
    assert verify_password("secret123", "plain-text") is False


def test_decode_returns_identity():
    token = encode_token(ALICE)
    assert decode_token(token) == ALICE


def test_decode_rejects_foreign_signature():
    token = jwt.encode(
        {"id": 7, "username": "alice01", "role": 1, "iat": datetime.now(timezone.utc),
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret",
        algorithm="HS256",
    )
    with pytest.raises(InvalidCredential):
        decode_token(token)


def test_decode_rejects_garbage():
    with pytest.raises(InvalidCredential):
        decode_token("not-a-jwt")


def test_decode_rejects_unknown_role():
    token = jwt.encode(
        {"id": 7, "username": "alice01", "role": 9, "iat": datetime.now(timezone.utc),
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidCredential):
        decode_token(token)


def test_decode_elapsed_expiry_is_expired():
    token = encode_token(ALICE, ttl_seconds=-10)
    with pytest.raises(ExpiredOrRevokedCredential):
        decode_token(token)


# ---------------------------------------------------------------------------
# Bearer extraction
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("header", ["Bearer abc.def", "bearer abc.def", "BEARER   abc.def", "abc.def"])
def test_extract_token_strips_optional_prefix(header):
    assert sessions.extract_token(header) == "abc.def"


@pytest.mark.parametrize("header", [None, "", "   "])
def test_extract_token_absent(header):
    assert sessions.extract_token(header) is None


@pytest.mark.parametrize("header", ["Bearer", "Bearer   "])
def test_extract_token_prefix_only_is_malformed(header):
    with pytest.raises(MissingCredential):
        sessions.extract_token(header)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_issue_then_resolve():
    token = await sessions.issue(ALICE)
    assert await credential_store.get(token) == token
    assert await sessions.resolve(f"Bearer {token}") == ALICE
    assert await sessions.resolve(token) == ALICE


@pytest.mark.asyncio
async def test_issue_sets_matching_ttl(fake_redis):
    token = await sessions.issue(ALICE)
    ttl = await fake_redis.ttl(token)
    assert 0 < ttl <= settings.TOKEN_TTL_SECONDS


@pytest.mark.asyncio
async def test_resolve_anonymous_returns_none():
    assert await sessions.resolve(None) is None


@pytest.mark.asyncio
async def test_validly_signed_token_unknown_to_store_is_rejected():
    token = encode_token(ALICE)
    with pytest.raises(ExpiredOrRevokedCredential):
        await sessions.resolve(token)


@pytest.mark.asyncio
async def test_revoked_token_is_rejected():
    token = await sessions.issue(ALICE)
    await sessions.revoke(token)
    with pytest.raises(ExpiredOrRevokedCredential):
        await sessions.resolve(token)


@pytest.mark.asyncio
async def test_store_entry_expires_with_ttl():
    token = encode_token(ALICE)
    await credential_store.set(token, token, 1)
    await asyncio.sleep(2)
    with pytest.raises(ExpiredOrRevokedCredential):
        await sessions.resolve(token)


@pytest.mark.asyncio
async def test_store_without_connection_fails_closed():
    token = encode_token(ALICE)
    credential_store._redis = None
    with pytest.raises(CredentialStoreUnavailable):
        await sessions.resolve(token)


# ---------------------------------------------------------------------------
# Auth gate over HTTP
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_protected_route_without_token(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users/me")
    assert resp.status_code == 401
    assert resp.json() == {"code": 0, "message": "No authentication token provided", "data": None}


@pytest.mark.asyncio
async def test_protected_route_with_prefix_only(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users/me", headers={"Authorization": "Bearer"})
    assert resp.status_code == 401
    assert resp.json() == {"code": 0, "message": "Malformed authentication token", "data": None}


@pytest.mark.asyncio
async def test_protected_route_with_revoked_token(async_client: AsyncClient):
    token = await sessions.issue(ALICE)
    await sessions.revoke(token)
    resp = await async_client.get("/api/v1/users/me", headers={"Authorization": token})
    assert resp.status_code == 401
    assert resp.json() == {"code": 0, "message": "Authentication token has expired", "data": None}


@pytest.mark.asyncio
async def test_protected_route_with_forged_token(async_client: AsyncClient):
    forged = jwt.encode({"id": 7}, "some-other-secret", algorithm="HS256")
    await credential_store.set(forged, forged, 60)
    resp = await async_client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401
    body = resp.json()
    assert body["code"] == 0
    assert body["data"] is None
    assert body["message"].startswith("Authentication failed")


@pytest.mark.asyncio
async def test_rejected_request_never_reaches_handler(async_client: AsyncClient, make_user, make_article, db_session):
    """A like with a bad token must leave no ledger row and no counter change."""
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)

    resp = await async_client.post(
        f"/api/v1/articles/{article.id}/like", headers={"Authorization": "Bearer nope"}
    )
    assert resp.status_code == 401

    assert (await db_session.execute(select(func.count()).select_from(ArticleLike))).scalar_one() == 0
    count = (await db_session.execute(select(Article.like_count).where(Article.id == article.id))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_store_outage_is_not_a_401(async_client: AsyncClient):
    token = encode_token(ALICE)
    credential_store._redis = None
    resp = await async_client.get("/api/v1/users/me", headers={"Authorization": token})
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
    assert resp.json() == {"code": 500, "message": "Authentication service unavailable", "data": None}



# ---------------------------------------------------------------------------
# Request-scoped identity
# ---------------------------------------------------------------------------

def _request() -> Request:
    return Request({"type": "http", "method": "GET", "path": "/", "headers": []})


@pytest.mark.asyncio
async def test_identity_is_published_then_cleared():
    token = await sessions.issue(ALICE)
    request = _request()

    gate = require_identity(request, authorization=f"Bearer {token}")
    identity = await gate.__anext__()
    assert identity == ALICE
    assert request.state.identity == ALICE

    await gate.aclose()
    assert request.state.identity is None


@pytest.mark.asyncio
async def test_identity_is_cleared_when_handler_raises():
    token = await sessions.issue(ALICE)
    request = _request()

    gate = require_identity(request, authorization=token)
    await gate.__anext__()
    with pytest.raises(RuntimeError):
        await gate.athrow(RuntimeError("handler failed"))
    assert request.state.identity is None


@pytest.mark.asyncio
async def test_gate_rejects_before_publishing_identity():
    request = _request()
    gate = require_identity(request, authorization=None)
    with pytest.raises(MissingCredential):
        await gate.__anext__()
    assert getattr(request.state, "identity", None) is None


@pytest.mark.asyncio
async def test_optional_identity_degrades_to_anonymous():
    assert await optional_identity(authorization="Bearer nope") is None
    token = await sessions.issue(ALICE)
    assert await optional_identity(authorization=token) == ALICE
