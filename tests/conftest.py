"""
Shared test fixtures.

The environment is configured before any `agenda` module is imported so
module-level settings, the database engine and the slowapi limiter pick
up the test values.
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="agenda-tests-")

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DIR}/test.db")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("API_URL", "http://backend.test/api")
os.environ.setdefault("SITE_URL", "https://agenda.test")
os.environ.setdefault("DEFAULT_PLACE", "catalunya")
os.environ.setdefault("REVALIDATE_SECRET", "test-revalidate-secret")
os.environ.setdefault("HMAC_SECRET", "")
os.environ.setdefault("TURNSTILE_SECRET_KEY", "")

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from agenda.core.exceptions import NotFoundError, UpstreamError  # noqa: E402

REGIONS = [{"id": 1, "name": "Maresme", "slug": "maresme"}]
CITIES = [
    {"id": 10, "name": "Barcelona", "slug": "barcelona"},
    {"id": 11, "name": "Mataró", "slug": "mataro"},
]
CATEGORIES = [
    {"id": 1, "name": "Teatre", "slug": "teatre"},
    {"id": 2, "name": "Concerts", "slug": "concerts"},
]
EVENTS_PAGE = {
    "content": [{"slug": "festa-major-123", "title": "Festa Major"}],
    "currentPage": 0,
    "pageSize": 10,
    "totalElements": 1,
    "totalPages": 1,
    "last": True,
}


class FakeBackend:
    """In-memory stand-in for BackendClient with call recording."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, object]] = []
        self.events: dict[str, dict] = {"festa-major-123": {"slug": "festa-major-123", "title": "Festa Major"}}

    async def _answer(self, name: str, payload, arg=None):
        self.calls.append((name, arg))
        if self.fail:
            raise UpstreamError("backend")
        return payload

    async def fetch_events(self, params):
        return await self._answer("fetch_events", EVENTS_PAGE, dict(params))

    async def fetch_categorized_events(self, params):
        return await self._answer("fetch_categorized_events", {"categorizedEvents": {"teatre": []}, "pastEvents": False})

    async def fetch_event(self, slug):
        await self._answer("fetch_event", None, slug)
        if slug not in self.events:
            raise NotFoundError("Event")
        return self.events[slug]

    async def create_event(self, payload):
        await self._answer("create_event", None, dict(payload))
        slug = payload.get("slug", "new-event-1")
        self.events[slug] = {"slug": slug, **payload}
        return self.events[slug]

    async def update_event(self, slug, payload):
        await self._answer("update_event", None, (slug, dict(payload)))
        self.events[slug] = {"slug": slug, **payload}
        return self.events[slug]

    async def fetch_categories(self):
        return await self._answer("fetch_categories", CATEGORIES)

    async def fetch_category(self, category_id):
        return await self._answer("fetch_category", CATEGORIES[0], category_id)

    async def fetch_cities(self):
        return await self._answer("fetch_cities", CITIES)

    async def fetch_city(self, city_id):
        return await self._answer("fetch_city", CITIES[0], city_id)

    async def fetch_regions(self):
        return await self._answer("fetch_regions", REGIONS)

    async def fetch_region_options(self):
        return await self._answer("fetch_region_options", [{**REGIONS[0], "cities": CITIES}])

    async def fetch_region(self, region_id):
        return await self._answer("fetch_region", REGIONS[0], region_id)

    async def fetch_places(self):
        return await self._answer("fetch_places", REGIONS + CITIES)

    async def fetch_place(self, slug):
        return await self._answer("fetch_place", {"slug": slug}, slug)

    async def fetch_news(self, params):
        return await self._answer("fetch_news", {"content": [], "currentPage": 0}, dict(params))

    async def fetch_news_article(self, slug):
        return await self._answer("fetch_news_article", {"slug": slug}, slug)

    async def fetch_profile(self, slug):
        return await self._answer("fetch_profile", {"slug": slug}, slug)

    async def fetch_active_promotions(self, place=None):
        return await self._answer("fetch_active_promotions", [], place)

    async def fetch_active_sponsors(self, place=None):
        return await self._answer("fetch_active_sponsors", [{"name": "Sponsor"}], place)


def nominatim_handler(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("q") == "Girona":
        return httpx.Response(200, json=[{"lat": "41.98", "lon": "2.82", "display_name": "Girona, Catalunya"}])
    return httpx.Response(200, json=[])


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def app_client(fake_backend):
    """TestClient with the backend and catalogs replaced by in-memory fakes."""
    from agenda.api.deps import get_auth_limiter, get_backend, get_catalog
    from agenda.core.rate_limit import FixedWindowRateLimiter
    from agenda.main import app
    from agenda.services.catalog_service import CatalogService

    nominatim = httpx.AsyncClient(transport=httpx.MockTransport(nominatim_handler))
    catalog = CatalogService(fake_backend, nominatim)
    auth_limiter = FixedWindowRateLimiter(max_requests=1000)

    app.dependency_overrides[get_backend] = lambda: fake_backend
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_auth_limiter] = lambda: auth_limiter
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
