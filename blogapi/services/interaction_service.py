"""
Interaction adapters: one entry point per ``ToggleKind``.

Each adapter checks its object's preconditions, locks the owning row and
then hands over to ``toggle_service.toggle``.  Locking the owning row
(article, comment or followed user) before the ledger lookup serializes
concurrent toggles on the same object, which the counter update would
otherwise race on.  Precondition failures raise before any ledger row is
read or written.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.cache import cache
from blogapi.database import after_commit
from blogapi.exceptions import ForbiddenAction, NotFound, ObjectNotEligible
from blogapi.models import Article, ArticleState, Comment, ToggleKind, User
from blogapi.schemas import Identity
from blogapi.services import toggle_service


async def _lock(db: AsyncSession, model, object_id: int):
    q = (
        select(model)
        .where(model.id == object_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await db.execute(q)).scalar_one_or_none()


async def _lock_published_article(db: AsyncSession, article_id: int, action: str) -> Article:
    article = await _lock(db, Article, article_id)
    if article is None:
        raise NotFound("Article not found")
    if article.state != ArticleState.PUBLISHED:
        raise ObjectNotEligible(f"Only published articles can be {action}")
    return article


async def toggle_article_like(db: AsyncSession, identity: Identity, article_id: int) -> dict:
    await _lock_published_article(db, article_id, "liked")
    outcome = await toggle_service.toggle(db, ToggleKind.LIKE, identity.user_id, article_id)
    after_commit(db, cache.invalidate_home_feed)
    return outcome.to_dict()


async def toggle_article_collect(db: AsyncSession, identity: Identity, article_id: int) -> dict:
    await _lock_published_article(db, article_id, "collected")
    outcome = await toggle_service.toggle(db, ToggleKind.COLLECT, identity.user_id, article_id)
    after_commit(db, cache.invalidate_home_feed)
    return outcome.to_dict()


async def toggle_comment_like(db: AsyncSession, identity: Identity, comment_id: int) -> dict:
    comment = await _lock(db, Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.is_deleted:
        raise ObjectNotEligible("Comment has been deleted")
    outcome = await toggle_service.toggle(db, ToggleKind.COMMENT_LIKE, identity.user_id, comment_id)
    return outcome.to_dict()


async def toggle_follow(db: AsyncSession, identity: Identity, target_id: int) -> dict:
    """
    Follow or unfollow *target_id*.  ``new_count`` is the target's follower
    count after the toggle.
    """
    if target_id == identity.user_id:
        raise ForbiddenAction("You cannot follow yourself")
    if await _lock(db, User, target_id) is None:
        raise NotFound("User not found")
    outcome = await toggle_service.toggle(db, ToggleKind.FOLLOW, identity.user_id, target_id)
    return outcome.to_dict()
