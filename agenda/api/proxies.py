"""
Backend Proxy Endpoints

Thin GET proxies in front of the events backend. Each route:
- validates and clamps its parameters
- delegates to BackendClient / CatalogService
- sets a CDN Cache-Control header
- degrades to a typed fallback payload when the backend fails (list
  routes) or answers with the error envelope (detail routes)
"""

import hmac
import logging
import time
from typing import Any, Callable, Optional

import httpx
from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from agenda.api.deps import get_backend, get_catalog
from agenda.api.schemas import RevalidateRequest, RevalidateResponse
from agenda.core.exceptions import (
    AgendaError,
    AuthenticationError,
    InvalidInputError,
)
from agenda.core.rate_limit import RATE_LIMITS, limiter
from agenda.core.setting import settings
from agenda.core.validators import is_resource_slug
from agenda.services.backend_client import BackendClient
from agenda.services.catalog_service import (
    REVALIDATION_TAGS,
    CatalogService,
    normalize_geocode_query,
)
from agenda.services.listing_service import empty_events_page

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

MAX_PAGE_SIZE = 50

# (s-maxage, stale-while-revalidate) in seconds
CACHE_EVENTS = (600, 600)
CACHE_DETAIL = (300, 600)
CACHE_CONTENT = (60, 300)
CACHE_CATALOG = (3600, 86400)
CACHE_GEOCODE = (86400, 86400)


def cache_control(policy: tuple[int, int]) -> str:
    s_maxage, stale = policy
    return f"public, s-maxage={s_maxage}, stale-while-revalidate={stale}"


def cached_json(data: Any, policy: tuple[int, int]) -> JSONResponse:
    return JSONResponse(content=data, headers={"Cache-Control": cache_control(policy)})


async def proxy_list(name: str, fetch: Callable, fallback: Any, policy: tuple[int, int]) -> JSONResponse:
    """Fetch a list payload; on backend failure answer 200 with `fallback`, uncached."""
    try:
        data = await fetch()
    except AgendaError as e:
        logger.warning(f"/api/{name} proxy error: {e}")
        return JSONResponse(content=fallback, headers={"Cache-Control": "no-store"})
    return cached_json(data if data is not None else fallback, policy)


async def proxy_detail(fetch: Callable, policy: tuple[int, int]) -> JSONResponse:
    """Fetch a detail payload; NotFoundError and UpstreamError reach the error handlers."""
    data = await fetch()
    return cached_json(data, policy)


def require_slug(slug: str) -> str:
    if not is_resource_slug(slug):
        raise InvalidInputError("Invalid slug")
    return slug


def _float_or_none(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _int_or_none(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def event_search_params(request: Request) -> dict[str, Any]:
    """
    Backend event search parameters from the query string.

    page is clamped to >= 0 and size to 1..50; unparseable numbers are
    dropped.
    """
    query = request.query_params
    page = _int_or_none(query.get("page"))
    size = _int_or_none(query.get("size"))
    return {
        "page": max(0, page) if page is not None else None,
        "size": min(MAX_PAGE_SIZE, max(1, size)) if size is not None else None,
        "place": query.get("place") or None,
        "category": query.get("category") or None,
        "term": query.get("term") or None,
        "byDate": query.get("byDate") or None,
        "from": query.get("from") or None,
        "to": query.get("to") or None,
        "lat": _float_or_none(query.get("lat")),
        "lon": _float_or_none(query.get("lon")),
        "radius": _float_or_none(query.get("radius")),
    }


# Events

@router.get("/events", summary="Search events")
@limiter.limit(RATE_LIMITS["listing"])
async def list_events(request: Request, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    params = event_search_params(request)
    return await proxy_list(
        "events", lambda: backend.fetch_events(params), empty_events_page(), CACHE_EVENTS
    )


@router.get("/events/categorized", summary="Events grouped by category")
@limiter.limit(RATE_LIMITS["listing"])
async def list_categorized_events(request: Request, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    params = {
        "place": request.query_params.get("place") or None,
        "byDate": request.query_params.get("byDate") or None,
        "maxEventsPerCategory": _int_or_none(request.query_params.get("maxEventsPerCategory")),
    }
    return await proxy_list(
        "events/categorized",
        lambda: backend.fetch_categorized_events(params),
        {"categorizedEvents": {}, "pastEvents": False},
        CACHE_EVENTS,
    )


@router.get("/events/{slug}", summary="Event detail")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_event(request: Request, slug: str, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    require_slug(slug)
    return await proxy_detail(lambda: backend.fetch_event(slug), CACHE_DETAIL)


# Catalogs

@router.get("/categories", summary="Category catalog")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_categories(request: Request, catalog: CatalogService = Depends(get_catalog)) -> JSONResponse:
    return await proxy_list("categories", catalog.get_categories, [], CACHE_CATALOG)


@router.get("/categories/{category_id}", summary="Category detail")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_category(request: Request, category_id: int, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    return await proxy_detail(lambda: backend.fetch_category(category_id), CACHE_CATALOG)


@router.get("/cities", summary="City catalog")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_cities(request: Request, catalog: CatalogService = Depends(get_catalog)) -> JSONResponse:
    return await proxy_list("cities", catalog.get_cities, [], CACHE_CATALOG)


@router.get("/cities/{city_id}", summary="City detail")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_city(request: Request, city_id: int, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    return await proxy_detail(lambda: backend.fetch_city(city_id), CACHE_CATALOG)


@router.get("/regions", summary="Region catalog")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_regions(request: Request, catalog: CatalogService = Depends(get_catalog)) -> JSONResponse:
    return await proxy_list("regions", catalog.get_regions, [], CACHE_CATALOG)


@router.get("/regions/options", summary="Regions with their cities, for selectors")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_region_options(request: Request, catalog: CatalogService = Depends(get_catalog)) -> JSONResponse:
    return await proxy_list("regions/options", catalog.get_region_options, [], CACHE_CATALOG)


@router.get("/regions/{region_id}", summary="Region detail")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_region(request: Request, region_id: int, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    return await proxy_detail(lambda: backend.fetch_region(region_id), CACHE_CATALOG)


@router.get("/places", summary="Place catalog")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_places(request: Request, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    return await proxy_list("places", backend.fetch_places, [], CACHE_CATALOG)


@router.get("/places/{slug}", summary="Place detail")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_place(request: Request, slug: str, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    require_slug(slug)
    return await proxy_detail(lambda: backend.fetch_place(slug), CACHE_CATALOG)


# Content

@router.get("/news", summary="News list")
@limiter.limit(RATE_LIMITS["listing"])
async def list_news(
    request: Request,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    place: Optional[str] = None,
    backend: BackendClient = Depends(get_backend),
) -> JSONResponse:
    params = {"page": page, "size": size, "place": place}
    return await proxy_list(
        "news", lambda: backend.fetch_news(params), empty_events_page(size), CACHE_CONTENT
    )


@router.get("/news/{slug}", summary="News article")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_news_article(request: Request, slug: str, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    require_slug(slug)
    return await proxy_detail(lambda: backend.fetch_news_article(slug), CACHE_CONTENT)


@router.get("/profiles/{slug}", summary="Organizer profile")
@limiter.limit(RATE_LIMITS["proxy"])
async def get_profile(request: Request, slug: str, backend: BackendClient = Depends(get_backend)) -> JSONResponse:
    require_slug(slug)
    return await proxy_detail(lambda: backend.fetch_profile(slug), CACHE_DETAIL)


@router.get("/promotions/active", summary="Active promotions")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_active_promotions(
    request: Request, place: Optional[str] = None, backend: BackendClient = Depends(get_backend)
) -> JSONResponse:
    return await proxy_list(
        "promotions/active", lambda: backend.fetch_active_promotions(place), [], CACHE_CONTENT
    )


@router.get("/sponsors/active", summary="Active sponsors")
@limiter.limit(RATE_LIMITS["proxy"])
async def list_active_sponsors(
    request: Request, place: Optional[str] = None, backend: BackendClient = Depends(get_backend)
) -> JSONResponse:
    return await proxy_list(
        "sponsors/active", lambda: backend.fetch_active_sponsors(place), [], CACHE_CONTENT
    )


# Geocoding

@router.get("/geocode", summary="Geocode a free-text place")
@limiter.limit(RATE_LIMITS["geocode"])
async def geocode(request: Request, q: Optional[str] = None, catalog: CatalogService = Depends(get_catalog)) -> JSONResponse:
    """First OpenStreetMap match for `q`, or null."""
    query = normalize_geocode_query(q)
    if query is None:
        return JSONResponse(content=None)
    try:
        result = await catalog.geocode(query)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Geocoding failed for '{query}': {e!r}")
        return JSONResponse(content=None, headers={"Cache-Control": "no-store"})
    return cached_json(result, CACHE_GEOCODE)


# Cache invalidation

def _valid_revalidate_secret(provided: Optional[str]) -> bool:
    expected = settings.REVALIDATE_SECRET
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


@router.post("/revalidate", response_model=RevalidateResponse, summary="Clear catalog caches")
@limiter.limit(RATE_LIMITS["revalidate"])
async def revalidate(
    request: Request,
    body: RevalidateRequest,
    x_revalidate_secret: Optional[str] = Header(default=None),
    catalog: CatalogService = Depends(get_catalog),
) -> RevalidateResponse:
    if not _valid_revalidate_secret(x_revalidate_secret):
        raise AuthenticationError()
    invalid = [tag for tag in body.tags if tag not in REVALIDATION_TAGS]
    if invalid:
        raise InvalidInputError(f"Invalid tags. Allowed: {', '.join(REVALIDATION_TAGS)}")

    cleared = catalog.clear(body.tags)
    return RevalidateResponse(revalidated=True, tags=cleared, now=int(time.time() * 1000))
