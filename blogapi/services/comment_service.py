"""
Comment service: comments on published articles.

Comments are soft-deleted: the row stays (its like ledger and counter
with it) but disappears from listings, and further likes are refused.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blogapi.exceptions import BusinessRuleViolation, ForbiddenAction, NotFound, ObjectNotEligible
from blogapi.models import Article, ArticleState, Comment, CommentLike, Role
from blogapi.schemas import CommentCreate, Identity


def _comment_to_dict(comment: Comment, username: str | None = None) -> dict:
    return {
        "id": comment.id,
        "article_id": comment.article_id,
        "user_id": comment.user_id,
        "username": username,
        "content": comment.content,
        "parent_id": comment.parent_id,
        "comment_like_count": comment.comment_like_count,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


async def add_comment(
    db: AsyncSession, identity: Identity, article_id: int, data: CommentCreate
) -> dict:
    """
    Append a comment by the caller to a published article.  A reply's
    parent must be a live comment on the same article.
    """
    article = await db.get(Article, article_id)
    if article is None:
        raise NotFound("Article not found")
    if article.state != ArticleState.PUBLISHED:
        raise ObjectNotEligible("Only published articles can be commented on")

    if data.parent_id is not None:
        parent = await db.get(Comment, data.parent_id)
        if parent is None or parent.is_deleted or parent.article_id != article_id:
            raise BusinessRuleViolation("Parent comment does not exist on this article")

    comment = Comment(
        content=data.content,
        parent_id=data.parent_id,
        article_id=article_id,
        user_id=identity.user_id,
    )
    db.add(comment)
    await db.flush()
    await db.refresh(comment)
    return _comment_to_dict(comment, identity.username)


async def list_comments(
    db: AsyncSession, article_id: int, viewer: Identity | None = None
) -> list[dict]:
    """
    Live comments of *article_id*, oldest first.  For a signed-in viewer
    each item also says whether they currently like it.
    """
    q = (
        select(Comment)
        .where(Comment.article_id == article_id, Comment.is_deleted.is_(False))
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at, Comment.id)
    )
    comments = (await db.execute(q)).unique().scalars().all()

    liked_ids: set[int] = set()
    if viewer is not None and comments:
        liked_q = select(CommentLike.comment_id).where(
            CommentLike.user_id == viewer.user_id,
            CommentLike.comment_id.in_([c.id for c in comments]),
            CommentLike.is_deleted.is_(False),
        )
        liked_ids = set((await db.execute(liked_q)).scalars().all())

    items = []
    for c in comments:
        item = _comment_to_dict(c, c.author.username if c.author else None)
        item["liked"] = c.id in liked_ids
        items.append(item)
    return items


async def delete_comment(db: AsyncSession, identity: Identity, comment_id: int) -> None:
    """Soft-delete a comment.  Allowed for its author and for admins."""
    comment = await db.get(Comment, comment_id)
    if comment is None or comment.is_deleted:
        raise NotFound("Comment not found")
    if identity.role != Role.ADMIN and comment.user_id != identity.user_id:
        raise ForbiddenAction("Only the author can delete this comment")

    comment.is_deleted = True
    await db.flush()
