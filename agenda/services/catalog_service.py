"""
Catalog Service

In-process cached access to slow-changing backend data (categories,
regions, region options, cities) plus geocoding through Nominatim.

Design Decisions:
- Each catalog has its own TTLCache; geocoding uses a KeyedTTLCache per
  normalized query
- Revalidation tags map onto the caches they clear, so the revalidate
  endpoint never touches unrelated state
- Caches are per process; multiple instances refresh independently
"""

import logging
import re
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from agenda.core.cache import KeyedTTLCache, TTLCache
from agenda.core.exceptions import AgendaError
from agenda.core.setting import settings
from agenda.services.backend_client import BackendClient
from agenda.services.filter_parser import CategorySummary

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
MIN_GEOCODE_QUERY_LENGTH = 3
MAX_GEOCODE_QUERY_LENGTH = 200

REVALIDATION_TAGS = ("places", "regions", "regions:options", "cities", "categories")


def normalize_geocode_query(raw: Optional[str]) -> Optional[str]:
    """Collapse whitespace and bound length; None for too-short queries."""
    if not raw:
        return None
    normalized = re.sub(r"\s+", " ", raw).strip()
    if len(normalized) < MIN_GEOCODE_QUERY_LENGTH:
        return None
    return normalized[:MAX_GEOCODE_QUERY_LENGTH]


class CatalogService:
    """Cached catalogs shared by listing pages and proxy routes."""

    def __init__(
        self,
        backend: BackendClient,
        http_client: httpx.AsyncClient,
        ttl_ms: Optional[int] = None,
        geocode_ttl_ms: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.backend = backend
        self._http = http_client
        ttl_ms = ttl_ms or settings.CATALOG_CACHE_TTL_MS
        self.categories_cache: TTLCache[list] = TTLCache(ttl_ms, clock=clock)
        self.regions_cache: TTLCache[list] = TTLCache(ttl_ms, clock=clock)
        self.region_options_cache: TTLCache[list] = TTLCache(ttl_ms, clock=clock)
        self.cities_cache: TTLCache[list] = TTLCache(ttl_ms, clock=clock)
        self.geocode_cache: KeyedTTLCache[Optional[dict]] = KeyedTTLCache(
            geocode_ttl_ms or settings.GEOCODE_CACHE_TTL_MS, clock=clock
        )

    async def get_categories(self) -> list:
        return await self.categories_cache.wrap(self.backend.fetch_categories)

    async def get_regions(self) -> list:
        return await self.regions_cache.wrap(self.backend.fetch_regions)

    async def get_region_options(self) -> list:
        return await self.region_options_cache.wrap(self.backend.fetch_region_options)

    async def get_cities(self) -> list:
        return await self.cities_cache.wrap(self.backend.fetch_cities)

    async def get_category_summaries(self) -> Optional[list[CategorySummary]]:
        """
        Category catalog for filter parsing.

        Returns None when the backend is unavailable so the parser falls
        back to slug format validation.
        """
        try:
            raw = await self.get_categories()
        except AgendaError as e:
            logger.warning(f"Category catalog unavailable: {e}")
            return None
        summaries = []
        for item in raw or []:
            try:
                summaries.append(CategorySummary.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed category: {item!r}")
        return summaries

    async def geocode(self, query: str) -> Optional[dict[str, Any]]:
        """First Nominatim hit for a normalized query, cached for a day."""
        return await self.geocode_cache.wrap(lambda: self._geocode_via_nominatim(query), query)

    async def _geocode_via_nominatim(self, query: str) -> Optional[dict[str, Any]]:
        response = await self._http.get(
            NOMINATIM_URL,
            params={
                "format": "jsonv2",
                "q": query,
                "limit": "1",
                "addressdetails": "0",
                "countrycodes": "es",
            },
        )
        if response.status_code != 200:
            logger.warning(f"Nominatim returned {response.status_code} for '{query}'")
            return None

        data = response.json()
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        first = data[0]
        try:
            lat = float(first["lat"])
            lon = float(first["lon"])
        except (KeyError, TypeError, ValueError):
            return None
        result: dict[str, Any] = {"lat": lat, "lon": lon}
        if isinstance(first.get("display_name"), str):
            result["displayName"] = first["display_name"]
        return result

    def clear(self, tags: Optional[list[str]] = None) -> list[str]:
        """
        Clear caches for revalidation tags (all catalogs when none given).

        Returns:
            Tags that were actually cleared
        """
        tags = list(REVALIDATION_TAGS) if tags is None else tags
        cleared = []
        for tag in tags:
            if tag == "categories":
                self.categories_cache.clear()
            elif tag in ("places", "regions"):
                self.regions_cache.clear()
                if tag == "places":
                    self.cities_cache.clear()
            elif tag == "regions:options":
                self.region_options_cache.clear()
            elif tag == "cities":
                self.cities_cache.clear()
            else:
                continue
            cleared.append(tag)
        if cleared:
            logger.info(f"Cleared catalog caches: {', '.join(cleared)}")
        return cleared
