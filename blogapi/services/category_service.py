"""
Category service.  Categories are shared by all authors; the listing
tells a signed-in viewer which ones they created.
"""
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.exceptions import BusinessRuleViolation
from blogapi.models import Article, ArticleState, Category
from blogapi.schemas import CategoryCreate, Identity


def _category_to_dict(category: Category, article_count: int = 0, viewer: Identity | None = None) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "alias": category.alias,
        "created_by": category.created_by,
        "created_at": category.created_at.isoformat() if category.created_at else None,
        "article_count": article_count,
        "is_user_created": viewer is not None and category.created_by == viewer.user_id,
    }


async def create_category(db: AsyncSession, identity: Identity, data: CategoryCreate) -> dict:
    existing = await db.execute(select(Category.id).where(Category.name == data.name))
    if existing.first() is not None:
        raise BusinessRuleViolation("Category name already exists")

    category = Category(name=data.name, alias=data.alias, created_by=identity.user_id)
    db.add(category)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise BusinessRuleViolation("Category name already exists") from exc
    await db.refresh(category)
    return _category_to_dict(category, viewer=identity)


async def list_categories(db: AsyncSession, viewer: Identity | None = None) -> list[dict]:
    """
    All categories with their number of published articles, in a single
    grouped query.
    """
    published_count = (
        select(Article.category_id, func.count(Article.id).label("n"))
        .where(Article.state == ArticleState.PUBLISHED)
        .group_by(Article.category_id)
        .subquery()
    )
    q = (
        select(Category, func.coalesce(published_count.c.n, 0))
        .outerjoin(published_count, published_count.c.category_id == Category.id)
        .order_by(Category.id)
    )
    rows = (await db.execute(q)).all()
    return [_category_to_dict(category, count, viewer) for category, count in rows]
