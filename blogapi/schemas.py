from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from blogapi.models import ApplyStatus, ArticleState, Role

T = TypeVar("T")

# Usernames and passwords: 5-17 non-whitespace characters.
CREDENTIAL_PATTERN = r"^\S{5,17}$"


# --- Envelope ---

class Result(BaseModel, Generic[T]):
    """
    Response envelope shared by every JSON endpoint.

    ``code`` is 200 on success and 500 on a business error; credential
    failures use 0 (see ``blogapi.main``).
    """

    code: int = 200
    message: str = "Operation succeeded"
    data: Optional[T] = None

    @classmethod
    def success(cls, data=None) -> "Result":
        return cls(code=200, message="Operation succeeded", data=data)

    @classmethod
    def error(cls, message: str) -> "Result":
        return cls(code=500, message=message, data=None)


# --- Session ---

class Identity(BaseModel):
    """The authenticated caller of one request.  Immutable."""

    user_id: int
    username: str
    role: Role
    model_config = ConfigDict(frozen=True)


class LoginRequest(BaseModel):
    username: str = Field(pattern=CREDENTIAL_PATTERN)
    password: str = Field(pattern=CREDENTIAL_PATTERN)


class PasswordUpdate(BaseModel):
    old_pwd: str = ""
    new_pwd: str = ""
    re_pwd: str = ""


# --- User ---

class UserRegister(BaseModel):
    username: str = Field(pattern=CREDENTIAL_PATTERN)
    password: str = Field(pattern=CREDENTIAL_PATTERN)
    email: str | None = Field(None, max_length=255)


class UserUpdate(BaseModel):
    nickname: str | None = Field(None, pattern=r"^\S{1,10}$")
    email: str | None = Field(None, max_length=255)


class UserResponse(BaseModel):
    id: int
    username: str
    nickname: str | None
    email: str | None
    role: Role
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    alias: str = Field(min_length=1, max_length=50)


class CategoryResponse(BaseModel):
    id: int
    name: str
    alias: str
    created_by: int | None
    created_at: datetime
    article_count: int = 0
    is_user_created: bool = False


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1)
    parent_id: int | None = None


class CommentResponse(BaseModel):
    id: int
    article_id: int
    user_id: int
    username: str | None = None
    content: str
    parent_id: int | None
    comment_like_count: int
    created_at: datetime


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1)
    cover_img: str | None = Field(None, max_length=500)
    state: ArticleState = ArticleState.DRAFT
    category_id: int | None = None


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=100)
    content: str | None = None
    cover_img: str | None = Field(None, max_length=500)
    state: ArticleState | None = None
    category_id: int | None = None

    @field_validator("title", "content", "state")
    @classmethod
    def reject_null(cls, value):
        # Omit a field to leave it unchanged; these columns cannot be cleared.
        if value is None:
            raise ValueError("must not be null")
        return value


class ArticleResponse(BaseModel):
    id: int
    title: str
    cover_img: str | None
    state: ArticleState
    category_id: int | None
    user_id: int
    author: str | None = None
    like_count: int
    collect_count: int
    created_at: datetime


class ArticleDetail(ArticleResponse):
    content: str
    comment_count: int = 0
    # Viewer-relative flags; always False for anonymous viewers.
    liked: bool = False
    collected: bool = False


# --- Toggle ---

class ToggleResponse(BaseModel):
    active: bool
    new_count: int


# --- Administration ---

# Mainland resident identity card number: region, birth date, sequence, checksum.
ID_CARD_PATTERN = r"^[1-9]\d{5}(18|19|20)\d{2}(0[1-9]|1[0-2])(0[1-9]|[12]\d|3[01])\d{3}[\dXx]$"


class AuthorApplyCreate(BaseModel):
    real_name: str = Field(min_length=1, max_length=50)
    id_card: str = Field(pattern=ID_CARD_PATTERN)
    apply_desc: str | None = Field(None, max_length=1000)


class AuthorApplyResponse(BaseModel):
    id: int
    user_id: int
    real_name: str
    # Masked: first six and last four characters only.
    id_card: str
    apply_desc: str | None
    status: ApplyStatus
    created_at: datetime
    audit_time: datetime | None = None
    reject_reason: str | None = None


class ApplyAudit(BaseModel):
    status: ApplyStatus
    reject_reason: str | None = Field(None, max_length=255)

    @field_validator("status")
    @classmethod
    def decided(cls, value: ApplyStatus) -> ApplyStatus:
        if value == ApplyStatus.PENDING:
            raise ValueError("status must be 1 (approve) or 2 (reject)")
        return value

    @model_validator(mode="after")
    def reason_for_rejection(self) -> "ApplyAudit":
        if self.status == ApplyStatus.REJECTED and not (self.reject_reason or "").strip():
            raise ValueError("A rejection must give a reason")
        return self


class RoleUpdate(BaseModel):
    role: Role


class UserStatusUpdate(BaseModel):
    disabled: bool


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int
