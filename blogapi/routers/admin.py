from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, require_role
from blogapi.models import ApplyStatus, Role
from blogapi.schemas import (
    ApplyAudit,
    AuthorApplyResponse,
    Identity,
    PaginatedResponse,
    Result,
    RoleUpdate,
    UserStatusUpdate,
)
from blogapi.services import admin_service, author_apply_service

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])

admins_only = require_role(Role.ADMIN)


@router.get("/users", response_model=Result[PaginatedResponse])
async def list_users(
    pagination: PaginationParams = Depends(),
    role: Role | None = Query(None),
    username: str | None = Query(None, max_length=50),
    disabled: bool | None = Query(None),
    admin: Identity = Depends(admins_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(
        await admin_service.list_users(
            db, admin, pagination.page, pagination.page_size, role, username, disabled
        )
    )


@router.put("/users/{user_id}/role", response_model=Result[dict])
async def update_user_role(
    user_id: int,
    data: RoleUpdate,
    admin: Identity = Depends(admins_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await admin_service.update_user_role(db, admin, user_id, data.role))


@router.put("/users/{user_id}/status", response_model=Result[dict])
async def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    admin: Identity = Depends(admins_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await admin_service.set_user_disabled(db, admin, user_id, data.disabled))


@router.get("/author-applies", response_model=Result[PaginatedResponse])
async def list_author_applies(
    pagination: PaginationParams = Depends(),
    status: ApplyStatus | None = Query(None),
    admin: Identity = Depends(admins_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(
        await author_apply_service.list_applies(db, pagination.page, pagination.page_size, status)
    )


@router.put("/author-applies/{apply_id}/audit", response_model=Result[AuthorApplyResponse])
async def audit_author_apply(
    apply_id: int,
    data: ApplyAudit,
    admin: Identity = Depends(admins_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await author_apply_service.audit(db, admin, apply_id, data))
