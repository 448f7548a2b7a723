"""
Regression tests for issues found during code review.

1. A failed toggle must leave no ledger row behind
2. Unexpected exceptions must come back as the generic envelope
3. Validation errors use the envelope too
4. X-Query-Count header must report actual query count (not always 0)
5. CORS must not set allow_credentials=true with allow_origins=*
6. Business errors travel as HTTP 200 envelopes
7. Unknown routes and methods use the envelope
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.models import Article, ArticleLike, Role
from blogapi.services import category_service, toggle_service


# ---------------------------------------------------------------------------
# 1. Toggle rollback
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_failed_counter_update_rolls_back_ledger(
    async_client: AsyncClient, db_session: AsyncSession, make_user, make_article, login, monkeypatch
):
    """A database error after the ledger write surfaces as OperationFailed and is rolled back."""
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    await make_user("reader07")
    headers = await login("reader07")

    async def broken_adjust(*args, **kwargs):
        raise OperationalError("UPDATE articles", {}, Exception("connection lost"))

    monkeypatch.setattr(toggle_service, "adjust_counter", broken_adjust)
    resp = await async_client.post(f"/api/v1/articles/{article.id}/like", headers=headers)
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
    assert resp.json() == {"code": 500, "message": "Operation failed", "data": None}

    assert (await db_session.execute(select(func.count()).select_from(ArticleLike))).scalar_one() == 0
    count = (await db_session.execute(select(Article.like_count).where(Article.id == article.id))).scalar_one()
    assert count == 0

    # Retrying once the database is back is an ordinary first toggle.
    monkeypatch.undo()
    resp = await async_client.post(f"/api/v1/articles/{article.id}/like", headers=headers)
    assert resp.json()["data"] == {"active": True, "new_count": 1}


# ---------------------------------------------------------------------------
# 2. Unexpected exceptions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unexpected_exception_returns_generic_envelope(async_client: AsyncClient, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("internal detail that must not leak")

    monkeypatch.setattr(category_service, "list_categories", explode)
    resp = await async_client.get("/api/v1/categories")
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
    assert resp.json() == {"code": 500, "message": "Operation failed", "data": None}
    assert "internal detail" not in resp.text


# ---------------------------------------------------------------------------
# 3. Validation errors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_validation_error_uses_envelope(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users/register", json={"username": "ab"})
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
    body = resp.json()
    assert body["code"] == 500
    assert body["data"] is None
    assert body["message"]


# ---------------------------------------------------------------------------
# 4. X-Query-Count accuracy
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_exact_for_home_feed(async_client: AsyncClient, make_user, make_article):
    """With the cache disabled the feed costs one COUNT and one page SELECT."""
    author = await make_user("author01", Role.AUTHOR)
    for i in range(3):
        await make_article(author, f"Article {i}")

    resp = await async_client.get("/api/v1/articles")
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 2, f"Expected exactly 2 queries for the home feed, got {count}"


# ---------------------------------------------------------------------------
# 5. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    """
    When allow_origins=["*"], the response must NOT include
    Access-Control-Allow-Credentials: true, per the CORS specification.
    """
    resp = await async_client.options(
        "/api/v1/articles",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true", (
        "CORS must not combine allow_origins=* with allow_credentials=true"
    )


# ---------------------------------------------------------------------------
# 6. Business errors are HTTP 200; only credentials use a 4xx
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_business_error_is_http_200(async_client: AsyncClient, make_user, login):
    await make_user("reader07")
    headers = await login("reader07")

    resp = await async_client.post("/api/v1/articles/9999/like", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"code": 500, "message": "Article not found", "data": None}

    resp = await async_client.post("/api/v1/articles/9999/like")
    assert resp.status_code == 401
    assert resp.json()["code"] == 0


# ---------------------------------------------------------------------------
# 7. Routing errors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"code": 500, "message": "Not Found", "data": None}


@pytest.mark.asyncio
async def test_wrong_method_uses_envelope(async_client: AsyncClient):
    resp = await async_client.delete("/api/v1/categories")
    assert resp.status_code == 405
    assert resp.json() == {"code": 500, "message": "Method Not Allowed", "data": None}
    assert "allow" in resp.headers
