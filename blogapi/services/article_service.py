"""
Article service: business logic for the Article aggregate.

Design notes
------------
- The public home feed goes through the cache-aside pattern (Redis →
  fallback to DB).  Cache keys encode every dimension that affects the
  result.  Feed items carry ``like_count``/``collect_count``, so the feed
  is invalidated, once the transaction commits, on article writes and on
  like/collect toggles.
- Article detail is never cached: it carries viewer-relative
  ``liked``/``collected`` flags read from the toggle ledgers.
- ``like_count`` and ``collect_count`` are written only by the toggle
  engine; create/update never touch them.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import math

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blogapi.cache import cache, home_feed_key
from blogapi.database import after_commit
from blogapi.exceptions import ForbiddenAction, NotFound
from blogapi.models import Article, ArticleState, Category, Comment, Role, ToggleKind
from blogapi.schemas import ArticleCreate, ArticleUpdate, Identity, PaginatedResponse
from blogapi.services import toggle_service

# Home feed orderings.  "hot" ranks by likes, then recency.
_SORT_ORDERS = {
    "new": (desc(Article.created_at), desc(Article.id)),
    "hot": (desc(Article.like_count), desc(Article.created_at), desc(Article.id)),
}


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "id": article.id,
        "title": article.title,
        "cover_img": article.cover_img,
        "state": article.state.value,
        "category_id": article.category_id,
        "user_id": article.user_id,
        "author": article.author.username if article.author else None,
        "like_count": article.like_count,
        "collect_count": article.collect_count,
        "created_at": article.created_at.isoformat() if article.created_at else None,
    }


def _can_manage(identity: Identity, article: Article) -> bool:
    return identity.role == Role.ADMIN or article.user_id == identity.user_id


async def _get_article_or_404(db: AsyncSession, article_id: int) -> Article:
    q = select(Article).where(Article.id == article_id).options(joinedload(Article.author))
    article = (await db.execute(q)).unique().scalar_one_or_none()
    if article is None:
        raise NotFound("Article not found")
    return article


async def _ensure_category(db: AsyncSession, category_id: int | None) -> None:
    if category_id is not None and await db.get(Category, category_id) is None:
        raise NotFound("Category not found")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_home_articles(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    sort: str = "new",
) -> PaginatedResponse:
    """
    Return a page of published articles for the home feed, using Redis as
    a cache layer.  Unknown *sort* values fall back to ``"new"``.
    """
    if sort not in _SORT_ORDERS:
        sort = "new"
    cache_key = home_feed_key(page, page_size, sort)
    cached = await cache.get_feed_page(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    published = Article.state == ArticleState.PUBLISHED
    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(published))
    ).scalar_one()

    q = (
        select(Article)
        .where(published)
        .options(joinedload(Article.author))
        .order_by(*_SORT_ORDERS[sort])
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    articles = (await db.execute(q)).unique().scalars().all()

    response = PaginatedResponse(
        items=[_article_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
    await cache.store_feed_page(cache_key, response.model_dump())
    return response


async def get_article_detail(
    db: AsyncSession, article_id: int, viewer: Identity | None = None
) -> dict:
    """
    Full article view.  Drafts are visible only to their author and to
    admins; for everyone else they do not exist.
    """
    article = await _get_article_or_404(db, article_id)
    if article.state != ArticleState.PUBLISHED and (viewer is None or not _can_manage(viewer, article)):
        raise NotFound("Article not found")

    comment_count: int = (
        await db.execute(
            select(func.count())
            .select_from(Comment)
            .where(Comment.article_id == article_id, Comment.is_deleted.is_(False))
        )
    ).scalar_one()

    data = _article_to_dict(article)
    data["content"] = article.content
    data["comment_count"] = comment_count
    data["liked"] = False
    data["collected"] = False
    if viewer is not None:
        data["liked"] = await toggle_service.is_active(db, ToggleKind.LIKE, viewer.user_id, article_id)
        data["collected"] = await toggle_service.is_active(
            db, ToggleKind.COLLECT, viewer.user_id, article_id
        )
    return data


async def get_user_articles(
    db: AsyncSession,
    identity: Identity,
    page: int = 1,
    page_size: int = 10,
    state: ArticleState | None = None,
) -> PaginatedResponse:
    """The caller's own articles, optionally filtered by state."""
    filters = [Article.user_id == identity.user_id]
    if state is not None:
        filters.append(Article.state == state)

    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(*filters))
    ).scalar_one()
    q = (
        select(Article)
        .where(*filters)
        .options(joinedload(Article.author))
        .order_by(desc(Article.created_at), desc(Article.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    articles = (await db.execute(q)).unique().scalars().all()
    return PaginatedResponse(
        items=[_article_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, identity: Identity, data: ArticleCreate) -> dict:
    await _ensure_category(db, data.category_id)
    article = Article(
        title=data.title,
        content=data.content,
        cover_img=data.cover_img,
        state=data.state,
        category_id=data.category_id,
        user_id=identity.user_id,
    )
    db.add(article)
    await db.flush()

    after_commit(db, cache.invalidate_home_feed)
    article = await _get_article_or_404(db, article.id)
    data = _article_to_dict(article)
    data["content"] = article.content
    return data


async def update_article(
    db: AsyncSession, identity: Identity, article_id: int, data: ArticleUpdate
) -> dict:
    """
    Partially update an article.  Only its author or an admin may do so.
    Only fields explicitly set in the request payload are modified.
    """
    article = await _get_article_or_404(db, article_id)
    if not _can_manage(identity, article):
        raise ForbiddenAction("Only the author can edit this article")

    update_data = data.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        await _ensure_category(db, update_data["category_id"])
    for field, value in update_data.items():
        setattr(article, field, value)

    await db.flush()
    after_commit(db, cache.invalidate_home_feed)
    result = _article_to_dict(article)
    result["content"] = article.content
    return result


async def delete_article(db: AsyncSession, identity: Identity, article_id: int) -> None:
    article = await _get_article_or_404(db, article_id)
    if not _can_manage(identity, article):
        raise ForbiddenAction("Only the author can delete this article")

    await db.delete(article)
    await db.flush()
    after_commit(db, cache.invalidate_home_feed)
