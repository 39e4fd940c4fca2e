"""Tests for filter parsing and canonical URL building."""

from agenda.core.dates import DateSlug
from agenda.services.filter_parser import (
    CategorySummary,
    build_canonical_path,
    build_canonical_url,
    build_fallback_url_for_invalid_place,
    get_redirect_url,
    parse_filters,
    resolve_category,
)
from agenda.services.url_segments import extract_segments

CATALOG = [
    CategorySummary(id=1, name="Teatre", slug="teatre"),
    CategorySummary(id=2, name="Festes Populars", slug="festes-populars"),
]


def parse(path: str, query=None, categories=None):
    return parse_filters(extract_segments(path), query, categories)


class TestParseFilters:
    """Path and query precedence and canonicality."""

    def test_canonical_listing(self):
        filters = parse("/barcelona/avui/teatre")
        assert filters.place == "barcelona"
        assert filters.by_date is DateSlug.TODAY
        assert filters.category == "teatre"
        assert filters.is_canonical
        assert get_redirect_url(filters) is None

    def test_root_uses_default_place(self):
        filters = parse("/")
        assert filters.place == "catalunya"
        assert filters.is_canonical

    def test_place_needing_sanitization_is_not_canonical(self):
        filters = parse("/Barcelona")
        assert filters.place == "barcelona"
        assert get_redirect_url(filters) == "/barcelona"

    def test_sentinel_date_is_dropped(self):
        filters = parse("/barcelona/tots/teatre")
        assert filters.by_date is None
        assert get_redirect_url(filters) == "/barcelona/teatre"

    def test_sentinel_category_is_dropped(self):
        assert get_redirect_url(parse("/barcelona/avui/tots")) == "/barcelona/avui"

    def test_segment_order_is_canonicalized(self):
        filters = parse("/barcelona/teatre/avui")
        # Segments are classified by content; order only matters for the URL
        assert filters.by_date is DateSlug.TODAY
        assert build_canonical_url(filters) == "/barcelona/avui/teatre"

    def test_query_date_and_category_move_to_path(self):
        filters = parse("/barcelona", {"date": "avui", "category": "teatre"})
        assert not filters.is_canonical
        assert get_redirect_url(filters) == "/barcelona/avui/teatre"

    def test_path_wins_over_query(self):
        filters = parse("/barcelona/dema/teatre", {"date": "avui", "category": "concerts"})
        assert filters.by_date is DateSlug.TOMORROW
        assert filters.category == "teatre"
        assert get_redirect_url(filters) == "/barcelona/dema/teatre"

    def test_sentinel_query_values_are_dropped(self):
        filters = parse("/barcelona", [("date", "tots"), ("category", "tots")])
        assert filters.by_date is None
        assert filters.category is None
        assert get_redirect_url(filters) == "/barcelona"

    def test_first_query_value_wins(self):
        filters = parse("/barcelona", [("date", "dema"), ("date", "avui")])
        assert filters.by_date is DateSlug.TOMORROW

    def test_calendar_query_date_is_canonical(self):
        filters = parse("/barcelona/teatre", {"date": "2024-05-01"})
        assert filters.specific_date == "2024-05-01"
        assert filters.is_canonical
        assert build_canonical_url(filters) == "/barcelona/teatre?date=2024-05-01"

    def test_calendar_query_date_loses_to_path_date(self):
        filters = parse("/barcelona/avui", {"date": "2024-05-01"})
        assert filters.specific_date is None
        assert get_redirect_url(filters) == "/barcelona/avui"

    def test_invalid_query_date_is_dropped(self):
        filters = parse("/barcelona", {"date": "2024-02-30"})
        assert filters.by_date is None and filters.specific_date is None
        assert get_redirect_url(filters) == "/barcelona"

    def test_locale_is_kept(self):
        assert get_redirect_url(parse("/es/barcelona/tots")) == "/es/barcelona"

    def test_search_distance_and_coordinates(self):
        filters = parse(
            "/barcelona",
            {"search": "  jazz  ", "distance": "10", "lat": "41.38", "lon": "2.17"},
        )
        assert filters.search_term == "jazz"
        assert filters.distance == 10
        assert build_canonical_url(filters) == "/barcelona?search=jazz&distance=10&lat=41.38&lon=2.17"

    def test_default_distance_is_omitted(self):
        assert build_canonical_url(parse("/barcelona", {"distance": "50"})) == "/barcelona"

    def test_invalid_numbers_are_ignored(self):
        filters = parse("/barcelona", {"distance": "-5", "lat": "95", "lon": "abc"})
        assert filters.distance is None
        assert filters.lat is None
        assert filters.lon is None


class TestCategoryCatalog:
    def test_unknown_category_is_dropped(self):
        filters = parse("/barcelona/avui/musica", categories=CATALOG)
        assert filters.category is None
        assert get_redirect_url(filters) == "/barcelona/avui"

    def test_query_category_name_resolves_to_slug(self):
        filters = parse("/barcelona", {"category": "Festes Populars"}, CATALOG)
        assert filters.category == "festes-populars"
        assert get_redirect_url(filters) == "/barcelona/festes-populars"

    def test_resolve_category_without_catalog(self):
        assert resolve_category("teatre") == "teatre"
        assert resolve_category("Teatre") is None
        assert resolve_category("avui") is None

    def test_resolve_category_by_name(self):
        assert resolve_category("teatre", CATALOG) == "teatre"
        assert resolve_category("TEATRE", CATALOG) == "teatre"
        assert resolve_category("cinema", CATALOG) is None


class TestCanonicalUrls:
    def test_canonical_path_omits_sentinel(self):
        assert build_canonical_path("barcelona", "tots", "tots") == "/barcelona"
        assert build_canonical_path("barcelona", None, "teatre", "en") == "/en/barcelona/teatre"

    def test_canonical_url_is_a_fixed_point(self):
        """Parsing a canonical URL yields a canonical filter state."""
        first = parse("/Barcelona/teatre/tots", {"search": "jazz", "category": "x"})
        url = build_canonical_url(first)
        path, _, query = url.partition("?")
        second = parse(path, [tuple(pair.split("=", 1)) for pair in query.split("&") if pair])
        assert second.is_canonical
        assert build_canonical_url(second) == url

    def test_fallback_for_invalid_place_keeps_filters(self):
        assert build_fallback_url_for_invalid_place("avui", "teatre") == "/catalunya/avui/teatre"

    def test_fallback_drops_invalid_filters(self):
        assert build_fallback_url_for_invalid_place("ahir", "Bad Cat") == "/catalunya"

    def test_fallback_keeps_search(self):
        assert build_fallback_url_for_invalid_place(None, None, {"search": "jazz"}) == "/catalunya?search=jazz"
