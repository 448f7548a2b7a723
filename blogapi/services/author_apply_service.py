"""
Author applications: a reader asks to become an author, an administrator
approves or rejects the request.

Identity card numbers and real names are stored as submitted and only ever
leave this module masked.  Approval changes ``users.role``; the applicant's
tokens keep the role they were issued with, so the new role applies from the
next login.
"""
import logging
import math
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.exceptions import BusinessRuleViolation, ForbiddenAction, NotFound
from blogapi.models import ApplyStatus, AuthorApply, Role, User
from blogapi.schemas import ApplyAudit, AuthorApplyCreate, Identity, PaginatedResponse

logger = logging.getLogger(__name__)


def mask_id_card(id_card: str | None) -> str:
    if not id_card or len(id_card) < 10:
        return "****"
    return f"{id_card[:6]}********{id_card[-4:]}"


def mask_real_name(real_name: str) -> str:
    return f"{real_name[0]}*" if len(real_name) > 1 else real_name


def _apply_to_dict(apply: AuthorApply) -> dict:
    return {
        "id": apply.id,
        "user_id": apply.user_id,
        "real_name": apply.real_name,
        "id_card": mask_id_card(apply.id_card),
        "apply_desc": apply.apply_desc,
        "status": int(apply.status),
        "created_at": apply.created_at.isoformat() if apply.created_at else None,
        "audit_time": apply.audit_time.isoformat() if apply.audit_time else None,
        "reject_reason": apply.reject_reason,
    }


async def submit(db: AsyncSession, identity: Identity, data: AuthorApplyCreate) -> dict:
    """File the caller's application.  Each user may apply once."""
    user = await db.get(User, identity.user_id)
    if user is None:
        raise NotFound("User not found")
    if user.role == Role.ADMIN:
        raise ForbiddenAction("Administrator accounts cannot apply to become authors")
    if user.role == Role.AUTHOR:
        raise BusinessRuleViolation("You are already an author")

    existing = await db.execute(select(AuthorApply.id).where(AuthorApply.user_id == user.id))
    if existing.first() is not None:
        raise BusinessRuleViolation("You have already applied, please wait for the review")

    apply = AuthorApply(
        user_id=user.id,
        real_name=data.real_name,
        id_card=data.id_card.upper(),
        apply_desc=data.apply_desc,
    )
    db.add(apply)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise BusinessRuleViolation("You have already applied, please wait for the review") from exc
    await db.refresh(apply)
    logger.info("User %s applied to become an author", user.id)
    return _apply_to_dict(apply)


async def get_status(db: AsyncSession, identity: Identity) -> dict | None:
    """The caller's application, or None if they never applied."""
    result = await db.execute(select(AuthorApply).where(AuthorApply.user_id == identity.user_id))
    apply = result.scalar_one_or_none()
    return _apply_to_dict(apply) if apply is not None else None


async def list_applies(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    status: ApplyStatus | None = None,
) -> PaginatedResponse:
    """Review queue for administrators, newest first, optionally by status."""
    filters = [] if status is None else [AuthorApply.status == status]
    total: int = (
        await db.execute(select(func.count()).select_from(AuthorApply).where(*filters))
    ).scalar_one()

    q = (
        select(AuthorApply, User)
        .join(User, User.id == AuthorApply.user_id)
        .where(*filters)
        .order_by(AuthorApply.created_at.desc(), AuthorApply.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = []
    for apply, user in (await db.execute(q)).all():
        item = _apply_to_dict(apply)
        item["real_name"] = mask_real_name(apply.real_name)
        item["user_info"] = {
            "id": user.id,
            "username": user.username,
            "nickname": user.nickname,
            "email": user.email,
        }
        items.append(item)

    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


async def audit(db: AsyncSession, admin: Identity, apply_id: int, data: ApplyAudit) -> dict:
    """
    Approve or reject a pending application.  The row is locked so two
    administrators cannot both decide it; approval promotes a reader to
    author in the same transaction.
    """
    q = select(AuthorApply).where(AuthorApply.id == apply_id).with_for_update()
    apply = (await db.execute(q)).scalar_one_or_none()
    if apply is None:
        raise NotFound("Author application not found")
    if apply.status != ApplyStatus.PENDING:
        raise BusinessRuleViolation("This application has already been reviewed")

    apply.status = data.status
    apply.audit_time = datetime.now(timezone.utc)
    apply.audit_user_id = admin.user_id
    if data.status == ApplyStatus.REJECTED:
        apply.reject_reason = data.reject_reason.strip()
    else:
        applicant = await db.get(User, apply.user_id)
        if applicant is not None and applicant.role == Role.READER:
            applicant.role = Role.AUTHOR
    await db.flush()

    logger.info(
        "Admin %s %s author application %s of user %s",
        admin.user_id,
        "approved" if data.status == ApplyStatus.APPROVED else "rejected",
        apply.id,
        apply.user_id,
    )
    return _apply_to_dict(apply)
