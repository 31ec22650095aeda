"""
Shared FastAPI dependencies for the CollaboTree backend.

Provides the async database session dependency used by all route handlers
(one transaction per request, notifications delivered after commit), and
authentication dependencies for extracting the current user from JWT
Bearer tokens.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from collabotree.core.config import settings
from collabotree.models.user import User
from collabotree.services import auth_service, notificationService

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def transactional_session(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Unit of work: commit on success, roll back on error.

    Notifications queued during the unit of work are written after the
    commit; on rollback they are dropped.
    """
    factory = factory or async_session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            notificationService.discard_pending(session)
            raise
        await notificationService.dispatch_pending(session)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session scoped to the request.

    All route handlers should depend on this to get their ``AsyncSession``.

    Usage in a route::

        @router.get("/items")
        async def list_items(db: DBSession):
            ...
    """
    async with transactional_session() as session:
        yield session


# ---------------------------------------------------------------------------
# Annotated type alias for convenience
# ---------------------------------------------------------------------------
DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Request metadata dependencies
# ---------------------------------------------------------------------------

def get_client_ip(request: Request) -> str | None:
    """Extract the client IP address from the request.

    Checks the ``X-Forwarded-For`` header first (set by reverse proxies /
    load balancers), then falls back to the direct client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain a chain: "client, proxy1, proxy2"
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> str | None:
    """Extract the User-Agent header from the request."""
    return request.headers.get("User-Agent")


ClientIP = Annotated[Optional[str], Depends(get_client_ip)]
UserAgent = Annotated[Optional[str], Depends(get_user_agent)]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

class PageParams:
    """``?page=&page_size=`` query parameters with configured bounds."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
        page_size: int = Query(
            default=settings.default_page_size,
            ge=1,
            le=settings.max_page_size,
            description="Number of items per page",
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size


Pagination = Annotated[PageParams, Depends()]


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(_bearer_scheme)
    ],
    db: DBSession,
) -> User:
    """Extract and validate a Bearer token from the Authorization header.

    Returns the authenticated ``User`` ORM instance.  Raises 401 if the
    token is missing, expired, or belongs to an inactive account.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = await auth_service.resolve_token_user(db, credentials.credentials)
    except auth_service.AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
