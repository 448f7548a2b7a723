"""
Comment endpoint tests: posting, listing, soft deletion and comment likes.
"""
import pytest
from httpx import AsyncClient

from blogapi.models import ArticleState, Role


@pytest.mark.asyncio
async def test_add_and_list_comments(async_client: AsyncClient, make_user, make_article, login):
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    await make_user("reader01")
    headers = await login("reader01")

    resp = await async_client.post(
        f"/api/v1/articles/{article.id}/comments", headers=headers, json={"content": "Great post!"}
    )
    assert resp.status_code == 201
    comment = resp.json()["data"]
    assert comment["content"] == "Great post!"
    assert comment["username"] == "reader01"
    assert comment["comment_like_count"] == 0

    listed = (await async_client.get(f"/api/v1/articles/{article.id}/comments")).json()["data"]
    assert [c["id"] for c in listed] == [comment["id"]]
    assert listed[0]["liked"] is False

    detail = (await async_client.get(f"/api/v1/articles/{article.id}")).json()["data"]
    assert detail["comment_count"] == 1


@pytest.mark.asyncio
async def test_comment_requires_login(async_client: AsyncClient, make_user, make_article):
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    resp = await async_client.post(f"/api/v1/articles/{article.id}/comments", json={"content": "hi"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_comment_on_draft_is_rejected(async_client: AsyncClient, make_user, make_article, login):
    author = await make_user("author01", Role.AUTHOR)
    draft = await make_article(author, state=ArticleState.DRAFT)
    headers = await login("author01")

    resp = await async_client.post(f"/api/v1/articles/{draft.id}/comments", headers=headers, json={"content": "hi"})
    assert (resp.status_code, resp.json()["code"]) == (200, 500)


@pytest.mark.asyncio
async def test_comment_on_missing_article(async_client: AsyncClient, make_user, login):
    await make_user("reader01")
    headers = await login("reader01")
    resp = await async_client.post("/api/v1/articles/9999/comments", headers=headers, json={"content": "hi"})
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
    assert resp.json()["message"] == "Article not found"


@pytest.mark.asyncio
async def test_reply_to_comment(async_client: AsyncClient, make_user, make_article, login):
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    other = await make_article(author, "Other")
    headers = await login("author01")

    parent = (await async_client.post(
        f"/api/v1/articles/{article.id}/comments", headers=headers, json={"content": "parent"}
    )).json()["data"]

    reply = await async_client.post(
        f"/api/v1/articles/{article.id}/comments", headers=headers,
        json={"content": "reply", "parent_id": parent["id"]},
    )
    assert reply.status_code == 201
    assert reply.json()["data"]["parent_id"] == parent["id"]

    # The parent must belong to the same article.
    cross = await async_client.post(
        f"/api/v1/articles/{other.id}/comments", headers=headers,
        json={"content": "reply", "parent_id": parent["id"]},
    )
    assert (cross.status_code, cross.json()["code"]) == (200, 500)


@pytest.mark.asyncio
async def test_comment_like_toggle(async_client: AsyncClient, make_user, make_article, login):
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    await make_user("reader03")
    author_headers = await login("author01")
    reader_headers = await login("reader03")

    comment = (await async_client.post(
        f"/api/v1/articles/{article.id}/comments", headers=author_headers, json={"content": "like me"}
    )).json()["data"]

    resp = await async_client.post(f"/api/v1/comments/{comment['id']}/like", headers=reader_headers)
    assert resp.json()["data"] == {"active": True, "new_count": 1}

    listed = (await async_client.get(
        f"/api/v1/articles/{article.id}/comments", headers=reader_headers
    )).json()["data"]
    assert listed[0]["liked"] is True
    assert listed[0]["comment_like_count"] == 1


@pytest.mark.asyncio
async def test_like_deleted_comment_is_rejected(async_client: AsyncClient, make_user, make_article, login):
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    await make_user("reader03")
    author_headers = await login("author01")
    reader_headers = await login("reader03")

    comment = (await async_client.post(
        f"/api/v1/articles/{article.id}/comments", headers=author_headers, json={"content": "soon gone"}
    )).json()["data"]
    resp = await async_client.delete(f"/api/v1/comments/{comment['id']}", headers=author_headers)
    assert resp.json()["code"] == 200

    resp = await async_client.post(f"/api/v1/comments/{comment['id']}/like", headers=reader_headers)
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
    assert resp.json() == {"code": 500, "message": "Comment has been deleted", "data": None}

    listed = (await async_client.get(f"/api/v1/articles/{article.id}/comments")).json()["data"]
    assert listed == []


@pytest.mark.asyncio
async def test_delete_comment_by_stranger(async_client: AsyncClient, make_user, make_article, login):
    author = await make_user("author01", Role.AUTHOR)
    article = await make_article(author)
    await make_user("reader03")
    author_headers = await login("author01")
    reader_headers = await login("reader03")

    comment = (await async_client.post(
        f"/api/v1/articles/{article.id}/comments", headers=author_headers, json={"content": "mine"}
    )).json()["data"]

    resp = await async_client.delete(f"/api/v1/comments/{comment['id']}", headers=reader_headers)
    assert (resp.status_code, resp.json()["code"]) == (200, 500)
