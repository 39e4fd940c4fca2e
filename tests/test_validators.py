"""Tests for slug sanitization and query-string limits."""

from agenda.core.validators import (
    MAX_FILTER_VALUE_LENGTH,
    MAX_QUERY_PARAMS,
    is_resource_slug,
    is_valid_category_slug,
    is_valid_place,
    normalize_place_segment,
    query_within_limits,
    sanitize_slug,
    to_query_params,
)


class TestSanitizeSlug:
    def test_diacritics_and_case(self):
        assert sanitize_slug("Sant Adrià de Besòs") == "sant-adria-de-besos"

    def test_apostrophes_become_separators(self):
        assert sanitize_slug("L'Escala") == "l-escala"
        assert sanitize_slug("l’Hospitalet") == "l-hospitalet"

    def test_catalan_middle_dot_is_removed(self):
        assert sanitize_slug("Cel·lular") == "cellular"

    def test_ampersand(self):
        assert sanitize_slug("Arts & Oficis") == "arts-i-oficis"

    def test_separators_collapse(self):
        assert sanitize_slug("  --Vall   d'Aran--  ") == "vall-d-aran"

    def test_empty_and_unusable(self):
        assert sanitize_slug("") == ""
        assert sanitize_slug(None) == ""
        assert sanitize_slug("!!!") == "n-a"


class TestPlaceValidation:
    def test_system_paths_are_not_places(self):
        for value in ("favicon.ico", "robots.txt", ".well-known", "_next", "api", "file.php"):
            assert not is_valid_place(value), value

    def test_normal_place(self):
        assert is_valid_place("barcelona")

    def test_normalize_place_segment(self):
        assert normalize_place_segment("Barcelona") == "barcelona"
        assert normalize_place_segment("l'escala") == "l-escala"
        assert normalize_place_segment("n-a") == "n-a"

    def test_unnormalizable_segments(self):
        assert normalize_place_segment("[place]") is None
        assert normalize_place_segment("&") is None
        assert normalize_place_segment("sitemap.xml") is None


class TestCategorySlug:
    def test_valid(self):
        assert is_valid_category_slug("teatre")
        assert is_valid_category_slug("festes-populars")

    def test_reserved_values(self):
        assert not is_valid_category_slug("tots")
        assert not is_valid_category_slug("avui")
        assert not is_valid_category_slug("2024-05-01")

    def test_malformed(self):
        assert not is_valid_category_slug("Teatre")
        assert not is_valid_category_slug("teatre--x")
        assert not is_valid_category_slug("")
        assert not is_valid_category_slug(None)


class TestResourceSlug:
    def test_accepts_backend_slugs(self):
        assert is_resource_slug("festa-major-123")
        assert is_resource_slug("a")

    def test_rejects_other_values(self):
        assert not is_resource_slug("-leading")
        assert not is_resource_slug("Upper")
        assert not is_resource_slug("../etc")
        assert not is_resource_slug(42)
        assert not is_resource_slug("x" * 201)


class TestQueryLimits:
    def test_within_limits(self):
        assert query_within_limits("a=1&b=2", [("a", "1"), ("b", "2")])

    def test_too_long(self):
        raw = "a=" + "x" * 2100
        assert not query_within_limits(raw, [("a", "x" * 2100)])

    def test_too_many_params(self):
        pairs = [(f"k{i}", "v") for i in range(MAX_QUERY_PARAMS + 1)]
        assert not query_within_limits("&".join(f"{k}={v}" for k, v in pairs), pairs)

    def test_oversized_key(self):
        assert not query_within_limits("k", [("k" * 101, "v")])


class TestToQueryParams:
    def test_skips_none_values(self):
        assert to_query_params([("a", None), ("b", "x")]) == [("b", "x")]

    def test_caps_number_of_values(self):
        pairs = [(f"k{i}", "v") for i in range(80)]
        assert len(to_query_params(pairs)) == MAX_QUERY_PARAMS

    def test_truncates_long_values(self):
        result = to_query_params([("search", "x" * 5000)])
        assert result == [("search", "x" * MAX_FILTER_VALUE_LENGTH)]

    def test_stops_at_total_length(self):
        pairs = [(f"k{i}", "v" * 900) for i in range(20)]
        result = to_query_params(pairs)
        assert sum(len(k) + len(v) for k, v in result) <= 10_000
        assert len(result) < 20
