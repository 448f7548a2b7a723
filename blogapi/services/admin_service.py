"""
Administration of user accounts.  Every function here runs behind
``require_role(Role.ADMIN)``; administrators never act on their own account.
"""
import logging
import math

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.exceptions import ForbiddenAction, NotFound
from blogapi.models import Role, User
from blogapi.schemas import Identity, PaginatedResponse

logger = logging.getLogger(__name__)


def _account_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "nickname": user.nickname,
        "email": user.email,
        "role": int(user.role),
        "disabled": user.is_disabled,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def _other_user(db: AsyncSession, admin: Identity, user_id: int, action: str) -> User:
    if user_id == admin.user_id:
        raise ForbiddenAction(f"Administrators cannot {action} their own account")
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def list_users(
    db: AsyncSession,
    admin: Identity,
    page: int = 1,
    page_size: int = 10,
    role: Role | None = None,
    username: str | None = None,
    disabled: bool | None = None,
) -> PaginatedResponse:
    """All accounts except the caller's, filtered and ordered by id."""
    filters = [User.id != admin.user_id]
    if role is not None:
        filters.append(User.role == role)
    if username:
        filters.append(User.username.contains(username, autoescape=True))
    if disabled is not None:
        filters.append(User.is_disabled.is_(disabled))

    total: int = (await db.execute(select(func.count()).select_from(User).where(*filters))).scalar_one()
    q = (
        select(User)
        .where(*filters)
        .order_by(User.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    users = (await db.execute(q)).scalars().all()
    return PaginatedResponse(
        items=[_account_to_dict(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


async def update_user_role(db: AsyncSession, admin: Identity, user_id: int, role: Role) -> dict:
    """
    Change another user's role.  Tokens already issued to that user keep
    their old role claim until they expire or the user logs in again.
    """
    user = await _other_user(db, admin, user_id, "change the role of")
    previous = user.role
    user.role = role
    await db.flush()
    logger.info("Admin %s changed role of user %s from %s to %s", admin.user_id, user.id, previous.name, role.name)
    return _account_to_dict(user)


async def set_user_disabled(db: AsyncSession, admin: Identity, user_id: int, disabled: bool) -> dict:
    """Ban or reinstate another user.  A disabled account cannot log in."""
    user = await _other_user(db, admin, user_id, "disable or enable")
    user.is_disabled = disabled
    await db.flush()
    logger.info("Admin %s %s user %s", admin.user_id, "disabled" if disabled else "enabled", user.id)
    return _account_to_dict(user)
