"""
FastAPI dependencies shared by the routers.

Long-lived components (HTTP client, backend client, catalogs, auth rate
limiter) are created once at startup and stored on `app.state`; these
functions hand them to endpoints so tests can swap any of them through
`app.dependency_overrides`.
"""

from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.exceptions import RateLimitedError
from agenda.core.rate_limit import FixedWindowRateLimiter, client_key
from agenda.core.setting import settings
from agenda.db.models import User
from agenda.db.session import get_session
from agenda.services.auth_service import AuthService
from agenda.services.backend_client import BackendClient
from agenda.services.catalog_service import CatalogService
from agenda.services.listing_service import ListingService
from agenda.services.ownership_service import OwnershipService


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_auth_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.auth_limiter


def get_listing_service(
    backend: BackendClient = Depends(get_backend),
    catalog: CatalogService = Depends(get_catalog),
) -> ListingService:
    return ListingService(backend, catalog)


def get_auth_service(
    session: AsyncSession = Depends(get_session),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> AuthService:
    return AuthService(session, http_client)


def get_ownership_service(session: AsyncSession = Depends(get_session)) -> OwnershipService:
    return OwnershipService(session)


def enforce_auth_rate_limit(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_auth_limiter),
) -> None:
    """Reject the request with 429 once its client exceeds the window quota."""
    key = client_key(request)
    if limiter.is_rate_limited(key):
        raise RateLimitedError(retry_after=limiter.retry_after(key))


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_optional_user(
    token: Optional[str] = Depends(session_token),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    return await auth.get_session_user(token)


async def get_current_user(
    token: Optional[str] = Depends(session_token),
    auth: AuthService = Depends(get_auth_service),
) -> User:
    return await auth.require_user(token)
