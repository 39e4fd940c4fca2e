"""
Backend API Client

HMAC-signed access to the external events backend (events, categories,
places, regions, cities, news, profiles, promotions, sponsors).

Design Decisions:
- One thin method per backend resource; no caching here (see CatalogService)
- Every request is signed through HmacAuth when HMAC_SECRET is set
- Transport errors and 5xx answers become UpstreamError, 404 becomes
  NotFoundError; callers decide between a fallback payload and an error
"""

import logging
from typing import Any, Mapping, Optional

import httpx

from agenda.core.exceptions import NotFoundError, UpstreamError
from agenda.core.setting import settings
from agenda.core.signing import HmacAuth

logger = logging.getLogger(__name__)

JSON = Any


def _clean_params(params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if not params:
        return {}
    return {key: value for key, value in params.items() if value is not None and value != ""}


class BackendClient:
    """Signed JSON client for the events backend."""

    SERVICE_NAME = "backend"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        hmac_secret: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        secret = settings.HMAC_SECRET if hmac_secret is None else hmac_secret
        self._auth = HmacAuth(secret) if secret else None
        self._timeout = timeout or settings.BACKEND_TIMEOUT_SECONDS

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[JSON] = None,
        resource: str = "Resource",
    ) -> JSON:
        """
        Send a signed request and decode the JSON answer.

        Raises:
            NotFoundError: backend answered 404
            UpstreamError: network failure, timeout, non-JSON or error status
        """
        url = f"{self.base_url}{path}"
        options: dict[str, Any] = {"params": _clean_params(params), "timeout": self._timeout}
        if json is not None:
            options["json"] = json
        if self._auth is not None:
            options["auth"] = self._auth
        try:
            response = await self._client.request(method, url, **options)
        except httpx.HTTPError as e:
            logger.warning(f"Backend {method} {path} failed: {e!r}")
            raise UpstreamError(self.SERVICE_NAME, e) from e

        if response.status_code == 404:
            raise NotFoundError(resource)
        if response.status_code >= 400:
            logger.warning(f"Backend {method} {path} returned {response.status_code}")
            raise UpstreamError(self.SERVICE_NAME)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(self.SERVICE_NAME, e) from e

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None, resource: str = "Resource") -> JSON:
        return await self.request("GET", path, params=params, resource=resource)

    # Events
    async def fetch_events(self, params: Mapping[str, Any]) -> JSON:
        return await self.get("/events", params)

    async def fetch_categorized_events(self, params: Mapping[str, Any]) -> JSON:
        return await self.get("/events/categorized", params)

    async def fetch_event(self, slug: str) -> JSON:
        return await self.get(f"/events/{slug}", resource="Event")

    async def create_event(self, payload: Mapping[str, Any]) -> JSON:
        return await self.request("POST", "/events", json=dict(payload), resource="Event")

    async def update_event(self, slug: str, payload: Mapping[str, Any]) -> JSON:
        return await self.request("PUT", f"/events/{slug}", json=dict(payload), resource="Event")

    # Catalogs
    async def fetch_categories(self) -> JSON:
        return await self.get("/categories")

    async def fetch_category(self, category_id: int) -> JSON:
        return await self.get(f"/categories/{category_id}", resource="Category")

    async def fetch_cities(self) -> JSON:
        return await self.get("/places/cities")

    async def fetch_city(self, city_id: int) -> JSON:
        return await self.get(f"/places/cities/{city_id}", resource="City")

    async def fetch_regions(self) -> JSON:
        return await self.get("/places/regions")

    async def fetch_region_options(self) -> JSON:
        return await self.get("/places/regions/options")

    async def fetch_region(self, region_id: int) -> JSON:
        return await self.get(f"/places/regions/{region_id}", resource="Region")

    async def fetch_places(self) -> JSON:
        return await self.get("/places")

    async def fetch_place(self, slug: str) -> JSON:
        return await self.get(f"/places/{slug}", resource="Place")

    # Content
    async def fetch_news(self, params: Mapping[str, Any]) -> JSON:
        return await self.get("/news", params)

    async def fetch_news_article(self, slug: str) -> JSON:
        return await self.get(f"/news/{slug}", resource="News article")

    async def fetch_profile(self, slug: str) -> JSON:
        return await self.get(f"/profiles/{slug}", resource="Profile")

    async def fetch_active_promotions(self, place: Optional[str] = None) -> JSON:
        return await self.get("/promotions/active", {"place": place})

    async def fetch_active_sponsors(self, place: Optional[str] = None) -> JSON:
        return await self.get("/sponsors/active", {"place": place})
