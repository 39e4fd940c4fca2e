"""
Page-level Endpoints

Health check, the places sitemap and the listing catch-all
(/place[/date][/category]). The catch-all router must be included last
so it never shadows API routes.
"""

import logging
from datetime import datetime, timezone
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response

from agenda.api.deps import get_catalog, get_listing_service
from agenda.api.schemas import HealthResponse
from agenda.core.exceptions import AgendaError
from agenda.core.rate_limit import RATE_LIMITS, limiter
from agenda.core.setting import settings
from agenda.services.catalog_service import CatalogService
from agenda.services.listing_service import ListingService

logger = logging.getLogger(__name__)

router = APIRouter()

SITEMAP_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=0"
SITEMAP_NO_CACHE = "no-cache, no-store, must-revalidate"


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Liveness probe; does not touch the backend."""
    return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc).isoformat())


def build_sitemap(locations: list[str], lastmod: str) -> str:
    entries = "\n".join(
        "  <url>\n"
        f"    <loc>{escape(loc)}</loc>\n"
        f"    <lastmod>{lastmod}</lastmod>\n"
        "    <changefreq>daily</changefreq>\n"
        "    <priority>0.8</priority>\n"
        "  </url>"
        for loc in locations
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{entries}\n"
        "</urlset>"
    )


async def place_slugs(catalog: CatalogService) -> list[str]:
    """Default place first, then regions and cities in catalog order."""
    slugs = [settings.DEFAULT_PLACE]
    for fetch in (catalog.get_regions, catalog.get_cities):
        try:
            items = await fetch()
        except AgendaError as e:
            logger.warning(f"Sitemap catalog unavailable: {e}")
            continue
        for item in items or []:
            slug = item.get("slug") if isinstance(item, dict) else None
            if isinstance(slug, str) and slug not in slugs:
                slugs.append(slug)
    return slugs


@router.get("/sitemap.xml", include_in_schema=False)
async def sitemap(request: Request, catalog: CatalogService = Depends(get_catalog)) -> Response:
    """
    Sitemap of place listing pages.

    `?v=` or `?nocache=` disables CDN caching for the response.
    """
    site_url = settings.SITE_URL.rstrip("/")
    locations = [f"{site_url}/{slug}" for slug in await place_slugs(catalog)]
    xml = build_sitemap(locations, datetime.now(timezone.utc).date().isoformat())

    cache_bust = "v" in request.query_params or "nocache" in request.query_params
    return Response(
        content=xml,
        media_type="application/xml; charset=utf-8",
        headers={"Cache-Control": SITEMAP_NO_CACHE if cache_bust else SITEMAP_CACHE_CONTROL},
    )


@router.get("/{path:path}", summary="Listing page data")
@limiter.limit(RATE_LIMITS["listing"])
async def listing_page(
    request: Request,
    path: str,
    listing: ListingService = Depends(get_listing_service),
) -> Response:
    """
    Listing data for /place[/date][/category].

    Non-canonical requests are answered with a 301 to the canonical URL,
    unknown places with a 302 to the default place.
    """
    result = await listing.build(request.url.path, request.query_params.multi_items())
    if result.redirect_to is not None:
        status_code = (
            status.HTTP_301_MOVED_PERMANENTLY if result.permanent else status.HTTP_302_FOUND
        )
        return RedirectResponse(result.redirect_to, status_code=status_code)
    return JSONResponse(
        content=result.payload,
        headers={"Cache-Control": "public, s-maxage=600, stale-while-revalidate=600"},
    )
