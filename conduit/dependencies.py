from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.domain import Page
from conduit.errors import MissingTokenError
from conduit.security import parse_authorization
from conduit.wiring import Services, sql_services


class PaginationParams:
    """
    Reusable FastAPI dependency that parses the RealWorld ``limit`` /
    ``offset`` query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    limit:
        Number of items to return, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    offset:
        Number of items to skip (minimum 0).
    """

    def __init__(
        self,
        limit: int | None = Query(
            None,
            ge=0,
            description="Number of items returned (defaults to DEFAULT_PAGE_SIZE).",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of items to skip.",
        ),
    ) -> None:
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        # The hard ceiling lives in settings so it can change without
        # touching the query schema.
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset

    @property
    def page(self) -> Page:
        return Page(limit=self.limit, offset=self.offset)


async def get_services(db: AsyncSession = Depends(get_db)) -> Services:
    """One set of services per request, bound to the request's session."""
    return sql_services(db)


async def get_optional_user_id(
    authorization: str | None = Header(None),
    services: Services = Depends(get_services),
) -> int | None:
    """
    The authenticated user's id, or None for anonymous requests.

    A header that is present but invalid still fails with 401.
    """
    token = parse_authorization(authorization)
    if token is None:
        return None
    return services.users.authenticate(token)


async def get_current_user_id(
    user_id: int | None = Depends(get_optional_user_id),
) -> int:
    if user_id is None:
        raise MissingTokenError()
    return user_id


async def get_token(authorization: str | None = Header(None)) -> str:
    """The raw token of an authenticated request, echoed back in user payloads."""
    token = parse_authorization(authorization)
    if token is None:
        raise MissingTokenError()
    return token
