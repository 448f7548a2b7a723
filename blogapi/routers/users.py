from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import get_db
from blogapi.dependencies import PaginationParams, bearer_token, require_identity, require_role
from blogapi.models import ArticleState, Role
from blogapi.schemas import (
    AuthorApplyCreate,
    AuthorApplyResponse,
    Identity,
    LoginRequest,
    PaginatedResponse,
    PasswordUpdate,
    Result,
    ToggleResponse,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from blogapi.services import article_service, author_apply_service, interaction_service, user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("/register", status_code=201, response_model=Result[UserResponse])
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    return Result.success(await user_service.register(db, data))


@router.post("/login", response_model=Result[str])
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return Result.success(await user_service.login(db, data))


@router.post("/logout", response_model=Result)
async def logout(
    identity: Identity = Depends(require_identity),
    token: str = Depends(bearer_token),
):
    await user_service.logout(token)
    return Result.success()


@router.get("/me", response_model=Result[UserResponse])
async def get_me(identity: Identity = Depends(require_identity), db: AsyncSession = Depends(get_db)):
    return Result.success(await user_service.get_profile(db, identity))


@router.put("/me", response_model=Result[UserResponse])
async def update_me(
    data: UserUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await user_service.update_profile(db, identity, data))


@router.patch("/me/password", response_model=Result)
async def update_password(
    data: PasswordUpdate,
    identity: Identity = Depends(require_identity),
    token: str = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
):
    await user_service.update_password(db, identity, token, data)
    return Result.success()


@router.get("/me/following", response_model=Result[list])
async def list_following(identity: Identity = Depends(require_identity), db: AsyncSession = Depends(get_db)):
    return Result.success(await user_service.get_following(db, identity.user_id))


@router.get("/me/followers", response_model=Result[list])
async def list_followers(identity: Identity = Depends(require_identity), db: AsyncSession = Depends(get_db)):
    return Result.success(await user_service.get_followers(db, identity.user_id))


@router.get("/me/collections", response_model=Result[PaginatedResponse])
async def list_collections(
    pagination: PaginationParams = Depends(),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(
        await user_service.get_collections(db, identity.user_id, pagination.page, pagination.page_size)
    )


@router.get("/me/articles", response_model=Result[PaginatedResponse])
async def list_my_articles(
    pagination: PaginationParams = Depends(),
    state: ArticleState | None = Query(None),
    identity: Identity = Depends(require_role(Role.AUTHOR, Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(
        await article_service.get_user_articles(
            db, identity, pagination.page, pagination.page_size, state
        )
    )


@router.post("/author-apply", status_code=201, response_model=Result[AuthorApplyResponse])
async def submit_author_apply(
    data: AuthorApplyCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await author_apply_service.submit(db, identity, data))


@router.get("/author-apply/status", response_model=Result[AuthorApplyResponse])
async def author_apply_status(identity: Identity = Depends(require_identity), db: AsyncSession = Depends(get_db)):
    return Result.success(await author_apply_service.get_status(db, identity))


@router.post("/{user_id}/follow", response_model=Result[ToggleResponse])
async def toggle_follow(
    user_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return Result.success(await interaction_service.toggle_follow(db, identity, user_id))
