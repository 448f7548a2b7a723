from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import get_db
from blogapi.dependencies import optional_identity, require_identity
from blogapi.schemas import CategoryCreate, CategoryResponse, Identity, Result
from blogapi.services import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("", response_model=Result[list[CategoryResponse]])
async def list_categories(
    viewer: Identity | None = Depends(optional_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await category_service.list_categories(db, viewer))


@router.post("", status_code=201, response_model=Result[CategoryResponse])
async def create_category(
    data: CategoryCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await category_service.create_category(db, identity, data))
