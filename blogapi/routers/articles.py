from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, optional_identity, require_identity, require_role
from blogapi.models import Role
from blogapi.schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleUpdate,
    CommentCreate,
    CommentResponse,
    Identity,
    PaginatedResponse,
    Result,
    ToggleResponse,
)
from blogapi.services import article_service, comment_service, interaction_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

authors_only = require_role(Role.AUTHOR, Role.ADMIN)


@router.get("", response_model=Result[PaginatedResponse])
async def list_articles(
    pagination: PaginationParams = Depends(),
    sort: str = Query("new", pattern="^(new|hot)$"),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(
        await article_service.get_home_articles(db, pagination.page, pagination.page_size, sort)
    )


@router.get("/{article_id}", response_model=Result[ArticleDetail])
async def get_article(
    article_id: int,
    viewer: Identity | None = Depends(optional_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await article_service.get_article_detail(db, article_id, viewer))


@router.post("", status_code=201, response_model=Result[ArticleDetail])
async def create_article(
    data: ArticleCreate,
    identity: Identity = Depends(authors_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await article_service.create_article(db, identity, data))


@router.put("/{article_id}", response_model=Result[ArticleDetail])
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    identity: Identity = Depends(authors_only),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await article_service.update_article(db, identity, article_id, data))


@router.delete("/{article_id}", response_model=Result)
async def delete_article(
    article_id: int,
    identity: Identity = Depends(authors_only),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, identity, article_id)
    return Result.success()


@router.post("/{article_id}/like", response_model=Result[ToggleResponse])
async def toggle_like(
    article_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await interaction_service.toggle_article_like(db, identity, article_id))


@router.post("/{article_id}/collect", response_model=Result[ToggleResponse])
async def toggle_collect(
    article_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await interaction_service.toggle_article_collect(db, identity, article_id))


@router.get("/{article_id}/comments", response_model=Result[list])
async def list_comments(
    article_id: int,
    viewer: Identity | None = Depends(optional_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await comment_service.list_comments(db, article_id, viewer))


@router.post("/{article_id}/comments", status_code=201, response_model=Result[CommentResponse])
async def add_comment(
    article_id: int,
    data: CommentCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await comment_service.add_comment(db, identity, article_id, data))
