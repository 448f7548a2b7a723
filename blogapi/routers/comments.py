from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import get_db
from blogapi.dependencies import require_identity
from blogapi.schemas import Identity, Result, ToggleResponse
from blogapi.services import comment_service, interaction_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


@router.post("/{comment_id}/like", response_model=Result[ToggleResponse])
async def toggle_like(
    comment_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await interaction_service.toggle_comment_like(db, identity, comment_id))


@router.delete("/{comment_id}", response_model=Result)
async def delete_comment(
    comment_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, identity, comment_id)
    return Result.success()
