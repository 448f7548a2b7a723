"""
User service: accounts, sessions and the user-facing lists built on the
follow and collect ledgers.
"""
import logging
import math
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import sessions
from blogapi.exceptions import BusinessRuleViolation, ForbiddenAction, NotFound
from blogapi.models import Article, ArticleCollect, User, UserFollow
from blogapi.schemas import (
    Identity,
    LoginRequest,
    PaginatedResponse,
    PasswordUpdate,
    UserRegister,
    UserUpdate,
)
from blogapi.security import hash_password, verify_password

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict.  Never includes the hash."""
    return {
        "id": user.id,
        "username": user.username,
        "nickname": user.nickname,
        "email": user.email,
        "role": int(user.role),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

async def register(db: AsyncSession, data: UserRegister) -> dict:
    """
    Create a reader account.  Username uniqueness is checked up front and
    again by the unique constraint, for concurrent registrations.
    """
    existing = await db.execute(select(User.id).where(User.username == data.username))
    if existing.first() is not None:
        raise BusinessRuleViolation("Username is already taken")

    user = User(
        username=data.username,
        password_hash=hash_password(data.password),
        email=data.email,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise BusinessRuleViolation("Username is already taken") from exc
    await db.refresh(user)
    return _user_to_dict(user)


async def login(db: AsyncSession, data: LoginRequest) -> str:
    """Verify credentials and return a freshly issued session token."""
    result = await db.execute(select(User).where(User.username == data.username))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password_hash):
        logger.info("Failed login for username=%r", data.username)
        raise BusinessRuleViolation("Incorrect username or password")
    if user.is_disabled:
        raise ForbiddenAction("Account is disabled, please contact an administrator")

    user.last_login_at = datetime.now(timezone.utc)
    await db.flush()

    token = await sessions.issue(
        Identity(user_id=user.id, username=user.username, role=user.role)
    )
    logger.info("User %s logged in", user.id)
    return token


async def logout(token: str) -> None:
    await sessions.revoke(token)


async def get_profile(db: AsyncSession, identity: Identity) -> dict:
    return _user_to_dict(await _get_user_or_404(db, identity.user_id))


async def update_profile(db: AsyncSession, identity: Identity, data: UserUpdate) -> dict:
    user = await _get_user_or_404(db, identity.user_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    await db.flush()
    return _user_to_dict(user)


async def update_password(
    db: AsyncSession, identity: Identity, token: str, data: PasswordUpdate
) -> None:
    """
    Change the caller's password and revoke the token used for this
    request.  Other live tokens of the same user stay valid until their TTL.
    """
    if not (data.old_pwd and data.new_pwd and data.re_pwd):
        raise BusinessRuleViolation("Missing required parameters")

    user = await _get_user_or_404(db, identity.user_id)
    if not verify_password(data.old_pwd, user.password_hash):
        raise BusinessRuleViolation("Original password is incorrect")
    if data.new_pwd != data.re_pwd:
        raise BusinessRuleViolation("The two new passwords do not match")

    user.password_hash = hash_password(data.new_pwd)
    await db.flush()
    await sessions.revoke(token)


# ---------------------------------------------------------------------------
# Follow lists
# ---------------------------------------------------------------------------

async def get_following(db: AsyncSession, user_id: int) -> list[dict]:
    """Users *user_id* currently follows, most recent follow first."""
    q = (
        select(User, UserFollow.created_at)
        .join(UserFollow, UserFollow.followed_id == User.id)
        .where(UserFollow.follower_id == user_id, UserFollow.is_deleted.is_(False))
        .order_by(UserFollow.created_at.desc())
    )
    rows = (await db.execute(q)).all()
    return [
        {**_user_to_dict(user), "followed_at": followed_at.isoformat() if followed_at else None}
        for user, followed_at in rows
    ]


async def get_followers(db: AsyncSession, user_id: int) -> list[dict]:
    """Users currently following *user_id*, most recent first."""
    q = (
        select(User, UserFollow.created_at)
        .join(UserFollow, UserFollow.follower_id == User.id)
        .where(UserFollow.followed_id == user_id, UserFollow.is_deleted.is_(False))
        .order_by(UserFollow.created_at.desc())
    )
    rows = (await db.execute(q)).all()
    return [
        {**_user_to_dict(user), "followed_at": followed_at.isoformat() if followed_at else None}
        for user, followed_at in rows
    ]


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

async def get_collections(
    db: AsyncSession, user_id: int, page: int = 1, page_size: int = 10
) -> PaginatedResponse:
    """Articles *user_id* has collected (active rows only), newest first."""
    active = (ArticleCollect.user_id == user_id, ArticleCollect.is_deleted.is_(False))

    count_q = select(func.count()).select_from(ArticleCollect).where(*active)
    total: int = (await db.execute(count_q)).scalar_one()

    q = (
        select(Article, ArticleCollect.created_at)
        .join(ArticleCollect, ArticleCollect.article_id == Article.id)
        .where(*active)
        .order_by(ArticleCollect.created_at.desc(), ArticleCollect.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = (await db.execute(q)).all()
    items = [
        {
            "id": article.id,
            "title": article.title,
            "cover_img": article.cover_img,
            "state": article.state.value,
            "like_count": article.like_count,
            "collect_count": article.collect_count,
            "collected_at": collected_at.isoformat() if collected_at else None,
        }
        for article, collected_at in rows
    ]
    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
