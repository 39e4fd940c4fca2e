"""
End-to-end tests through the FastAPI app.

The backend and catalogs are in-memory fakes (see conftest.py); the
account store is a temporary SQLite database.
"""

import json

import pytest

from agenda.core.rate_limit import FixedWindowRateLimiter
from agenda.services.auth_service import AuthService


@pytest.fixture
def captured_links(monkeypatch):
    links: list[str] = []

    async def capture(self, email, link):
        links.append(link)

    monkeypatch.setattr(AuthService, "send_magic_link", capture)
    return links


def login(client, captured_links, email="ana@example.com") -> None:
    response = client.post("/api/auth/magic-link", json={"email": email, "redirectTo": "/perfil"})
    assert response.status_code == 202
    token = captured_links[-1].split("token=", 1)[1]
    response = client.get(f"/api/auth/magic-link/verify?token={token}", follow_redirects=False)
    assert response.status_code == 303


class TestHealth:
    def test_health(self, app_client):
        response = app_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestAuth:
    """Magic-link login, session lookup and logout."""

    def test_anonymous_session(self, app_client):
        assert app_client.get("/api/auth/session").json() == {"user": None}

    def test_magic_link_login_flow(self, app_client, captured_links):
        response = app_client.post(
            "/api/auth/magic-link",
            json={"email": "Ana@Example.com", "redirectTo": "/perfil"},
        )
        assert response.status_code == 202
        assert response.json() == {"ok": True}
        assert captured_links[0].startswith("https://agenda.test/api/auth/magic-link/verify?token=")

        token = captured_links[0].split("token=", 1)[1]
        response = app_client.get(f"/api/auth/magic-link/verify?token={token}", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/perfil"
        assert "session=" in response.headers["set-cookie"]

        session = app_client.get("/api/auth/session").json()
        assert session["user"]["email"] == "ana@example.com"

    def test_magic_link_is_single_use(self, app_client, captured_links):
        app_client.post("/api/auth/magic-link", json={"email": "joan@example.com"})
        token = captured_links[0].split("token=", 1)[1]
        first = app_client.get(f"/api/auth/magic-link/verify?token={token}", follow_redirects=False)
        second = app_client.get(f"/api/auth/magic-link/verify?token={token}", follow_redirects=False)
        assert first.status_code == 303
        assert first.headers["location"] == "/dashboard"
        assert second.status_code == 401
        assert second.json() == {"error": "Invalid or expired link"}

    def test_unsafe_redirect_is_ignored(self, app_client, captured_links):
        app_client.post("/api/auth/magic-link", json={"email": "x@example.com", "redirectTo": "//evil.example"})
        token = captured_links[0].split("token=", 1)[1]
        response = app_client.get(f"/api/auth/magic-link/verify?token={token}", follow_redirects=False)
        assert response.headers["location"] == "/dashboard"

    def test_invalid_email(self, app_client, captured_links):
        response = app_client.post("/api/auth/magic-link", json={"email": "not-an-email"})
        assert response.status_code == 400
        assert "error" in response.json()
        assert captured_links == []

    def test_cross_origin_request_is_rejected(self, app_client, captured_links):
        response = app_client.post(
            "/api/auth/magic-link",
            json={"email": "ana@example.com"},
            headers={"Origin": "https://evil.example"},
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Invalid origin"}

    def test_rate_limited(self, app_client, captured_links):
        from agenda.api.deps import get_auth_limiter
        from agenda.main import app

        limiter = FixedWindowRateLimiter(max_requests=2, window_ms=60_000)
        app.dependency_overrides[get_auth_limiter] = lambda: limiter

        statuses = [
            app_client.post("/api/auth/magic-link", json={"email": "ana@example.com"}).status_code
            for _ in range(3)
        ]
        assert statuses == [202, 202, 429]
        response = app_client.post("/api/auth/magic-link", json={"email": "ana@example.com"})
        assert response.json() == {"error": "Too many requests. Please try again later."}
        assert int(response.headers["Retry-After"]) >= 1

    def test_logout(self, app_client, captured_links):
        login(app_client, captured_links)
        assert app_client.get("/api/auth/session").json()["user"] is not None

        token = app_client.cookies.get("session")
        response = app_client.post("/api/auth/logout")
        assert response.json() == {"ok": True}

        # The old token no longer resolves to a user
        app_client.cookies.set("session", token)
        assert app_client.get("/api/auth/session").json() == {"user": None}

    def test_logout_is_rate_limited(self, app_client):
        from agenda.api.deps import get_auth_limiter
        from agenda.main import app

        limiter = FixedWindowRateLimiter(max_requests=2, window_ms=60_000)
        app.dependency_overrides[get_auth_limiter] = lambda: limiter

        statuses = [app_client.post("/api/auth/logout").status_code for _ in range(3)]
        assert statuses == [200, 200, 429]

    def test_oauth_callback_requires_state(self, app_client):
        response = app_client.get("/api/auth/google/callback?code=abc")
        assert response.status_code == 400
        assert response.json() == {"error": "Missing code/state"}

    def test_oauth_callback_rejects_unknown_state(self, app_client):
        response = app_client.get("/api/auth/google/callback?code=abc&state=forged")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid state"}


class TestFavorites:
    def test_add_and_remove(self, app_client):
        assert app_client.get("/api/user/favorites").json() == {"ok": True, "favorites": []}

        response = app_client.post(
            "/api/user/favorites", json={"eventSlug": "festa-major-123", "shouldBeFavorite": True}
        )
        assert response.json() == {"ok": True, "favorites": ["festa-major-123"]}
        assert app_client.get("/api/user/favorites").json()["favorites"] == ["festa-major-123"]

        response = app_client.post(
            "/api/user/favorites", json={"eventSlug": "festa-major-123", "shouldBeFavorite": False}
        )
        assert response.json()["favorites"] == []

    def test_invalid_body(self, app_client):
        for body in ({"eventSlug": "x"}, {"eventSlug": "../x", "shouldBeFavorite": True}):
            response = app_client.post("/api/user/favorites", json=body)
            assert response.status_code == 400
            assert response.json() == {"ok": False, "error": "INVALID_BODY"}

    def test_non_json_body(self, app_client):
        response = app_client.post(
            "/api/user/favorites", content=b"nope", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_cap_evicts_oldest(self, app_client):
        app_client.cookies.set("user_favorites", json.dumps([f"event-{i}" for i in range(50)], separators=(",", ":")))
        response = app_client.post("/api/user/favorites", json={"eventSlug": "new-one", "shouldBeFavorite": True})
        favorites = response.json()["favorites"]
        assert len(favorites) == 50
        assert favorites[0] == "event-1"
        assert favorites[-1] == "new-one"


class TestUserEvents:
    """Publishing and editing events with ownership checks."""

    def test_requires_session(self, app_client):
        response = app_client.get("/api/user/events")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_publish_and_edit(self, app_client, captured_links, fake_backend):
        login(app_client, captured_links, "org@example.com")

        response = app_client.post("/api/user/events", json={"slug": "fira-del-llibre", "title": "Fira"})
        assert response.status_code == 201
        assert ("create_event", {"slug": "fira-del-llibre", "title": "Fira"}) in fake_backend.calls
        assert "fira-del-llibre" in app_client.get("/api/user/events").json()["events"]

        response = app_client.put("/api/user/events/fira-del-llibre", json={"title": "Fira 2"})
        assert response.status_code == 200
        assert response.json()["title"] == "Fira 2"

    def test_edit_requires_ownership(self, app_client, captured_links):
        login(app_client, captured_links, "other@example.com")
        response = app_client.put("/api/user/events/festa-major-123", json={"title": "Mine now"})
        assert response.status_code == 403
        assert response.json() == {"error": "You do not own this event"}


class TestProxies:
    def test_events_clamps_parameters(self, app_client, fake_backend):
        response = app_client.get("/api/events?page=-3&size=500&place=barcelona&lat=abc")
        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "public, s-maxage=600, stale-while-revalidate=600"
        params = fake_backend.calls[-1][1]
        assert params["page"] == 0
        assert params["size"] == 50
        assert params["place"] == "barcelona"
        assert params["lat"] is None

    def test_events_fallback(self, app_client, fake_backend):
        fake_backend.fail = True
        response = app_client.get("/api/events")
        assert response.status_code == 200
        assert response.json()["content"] == []
        assert response.headers["Cache-Control"] == "no-store"

    def test_event_detail(self, app_client):
        response = app_client.get("/api/events/festa-major-123")
        assert response.json()["title"] == "Festa Major"

    def test_event_not_found(self, app_client):
        response = app_client.get("/api/events/unknown-event")
        assert response.status_code == 404
        assert response.json() == {"error": "Event not found"}

    def test_invalid_slug(self, app_client):
        response = app_client.get("/api/events/Bad_Slug")
        assert response.status_code == 400

    def test_catalogs(self, app_client):
        assert app_client.get("/api/regions").json()[0]["slug"] == "maresme"
        assert app_client.get("/api/cities").json()[0]["slug"] == "barcelona"
        assert app_client.get("/api/categories").json()[0]["slug"] == "teatre"
        assert app_client.get("/api/regions/options").json()[0]["cities"]

    def test_catalog_fallback(self, app_client, fake_backend):
        fake_backend.fail = True
        assert app_client.get("/api/cities").json() == []

    def test_sponsors(self, app_client):
        assert app_client.get("/api/sponsors/active?place=barcelona").json() == [{"name": "Sponsor"}]

    def test_geocode(self, app_client):
        response = app_client.get("/api/geocode?q=Girona")
        assert response.json() == {"lat": 41.98, "lon": 2.82, "displayName": "Girona, Catalunya"}
        assert "s-maxage=86400" in response.headers["Cache-Control"]

    def test_geocode_short_query(self, app_client):
        assert app_client.get("/api/geocode?q=ab").json() is None


class TestRevalidate:
    def test_requires_secret(self, app_client):
        response = app_client.post("/api/revalidate", json={"tags": ["regions"]})
        assert response.status_code == 401

    def test_rejects_unknown_tags(self, app_client):
        response = app_client.post(
            "/api/revalidate",
            json={"tags": ["regions", "events"]},
            headers={"x-revalidate-secret": "test-revalidate-secret"},
        )
        assert response.status_code == 400

    def test_clears_catalogs(self, app_client, fake_backend):
        app_client.get("/api/regions")
        response = app_client.post(
            "/api/revalidate",
            json={"tags": ["regions"]},
            headers={"x-revalidate-secret": "test-revalidate-secret"},
        )
        body = response.json()
        assert body["revalidated"] is True
        assert body["tags"] == ["regions"]

        app_client.get("/api/regions")
        assert [name for name, _ in fake_backend.calls].count("fetch_regions") == 2


class TestListingPages:
    """Canonical redirects and listing data through the catch-all route."""

    def test_middleware_redirects_sentinel(self, app_client):
        response = app_client.get("/barcelona/tots?search=jazz", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "/barcelona?search=jazz"

    def test_middleware_folds_query_filters(self, app_client):
        response = app_client.get("/barcelona?date=avui&category=teatre", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "/barcelona/avui/teatre"

    def test_query_category_name_resolves_to_slug(self, app_client):
        response = app_client.get("/barcelona?category=Teatre", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "/barcelona/teatre"

        response = app_client.get("/barcelona/avui?category=Teatre&search=jazz", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "/barcelona/avui/teatre?search=jazz"

    def test_listing_payload(self, app_client):
        response = app_client.get("/barcelona/avui/teatre", follow_redirects=False)
        assert response.status_code == 200
        body = response.json()
        assert body["canonicalUrl"] == "/barcelona/avui/teatre"
        assert body["filters"]["by_date"] == "avui"

    def test_unknown_category_redirects(self, app_client):
        response = app_client.get("/barcelona/cinema", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "/barcelona"

    def test_unknown_place_falls_back(self, app_client):
        response = app_client.get("/atlantis", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/catalunya"

    def test_reserved_path_is_not_found(self, app_client):
        response = app_client.get("/login")
        assert response.status_code == 404
        assert response.json() == {"error": "Page not found"}

    def test_sitemap(self, app_client):
        response = app_client.get("/sitemap.xml")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<loc>https://agenda.test/catalunya</loc>" in response.text
        assert "<loc>https://agenda.test/maresme</loc>" in response.text
        assert "<loc>https://agenda.test/mataro</loc>" in response.text
