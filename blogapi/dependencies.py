import logging
from typing import AsyncIterator

from fastapi import Depends, Header, Query, Request

from blogapi import sessions
from blogapi.config import settings
from blogapi.exceptions import (
    CredentialError,
    CredentialStoreUnavailable,
    ForbiddenAction,
    MissingCredential,
)
from blogapi.models import Role
from blogapi.schemas import Identity

logger = logging.getLogger(__name__)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination
    query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    offset:
        Computed SQL OFFSET derived from *page* and *page_size*.
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
    ) -> None:
        self.page = page
        # Respect the application-level hard ceiling even if the schema
        # already validates le=100, so a settings change is sufficient.
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and page size."""
        return (self.page - 1) * self.page_size


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def require_identity(
    request: Request,
    authorization: str | None = Header(None),
) -> AsyncIterator[Identity]:
    """
    Auth gate for protected routes.

    Any credential failure raises before the route handler runs and is
    rendered as a 401 by the ``CredentialError`` handler.  On success the
    identity is handed to the handler as a parameter and mirrored on
    ``request.state`` for the lifetime of this request only; it is cleared
    when the request finishes, whether the handler returned or raised.

    Usage in a router::

        @router.post("/{article_id}/like")
        async def like(article_id: int, identity: Identity = Depends(require_identity)):
            ...
    """
    identity = await sessions.resolve(authorization)
    if identity is None:
        raise MissingCredential()

    request.state.identity = identity
    try:
        yield identity
    finally:
        request.state.identity = None


async def optional_identity(authorization: str | None = Header(None)) -> Identity | None:
    """
    Resolve the caller if possible, otherwise treat them as anonymous.

    For public read endpoints whose output only varies with the viewer
    (e.g. ``liked`` flags); never fails the request.
    """
    try:
        return await sessions.resolve(authorization)
    except (CredentialError, CredentialStoreUnavailable) as exc:
        logger.debug("Treating request as anonymous: %s", exc.message)
        return None


async def bearer_token(authorization: str | None = Header(None)) -> str:
    """The raw token presented with this request, for revocation."""
    token = sessions.extract_token(authorization)
    if token is None:
        raise MissingCredential()
    return token


def require_role(*roles: Role):
    """
    Dependency factory restricting a route to the given roles.

    Usage::

        identity: Identity = Depends(require_role(Role.AUTHOR, Role.ADMIN))
    """

    async def _check(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role not in roles:
            raise ForbiddenAction("Insufficient role for this action")
        return identity

    return _check
