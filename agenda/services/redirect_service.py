"""
Canonical Redirect Service

Decides whether a listing request must be permanently redirected to its
canonical URL, so every filter combination is served from exactly one URL.

Rules, applied to place routes only:
- "tots" segments are dropped (/place/tots -> /place,
  /place/tots/category -> /place/category, /place/avui/tots -> /place/avui)
- `date` / `category` query parameters are folded into path segments and
  removed from the query; path segments win, "tots" and invalid dates are
  dropped, unrelated parameters are kept in order
- A query category that is a name rather than a slug (?category=Teatre) is
  left to the listing handler, which maps names to slugs
- Legacy /place/YYYY-MM-DD paths move the calendar date to ?date=
- The place segment is normalized to its slug (/l'escala -> /l-escala)
- The locale prefix is kept

Design Decisions:
- Pure function of path + raw query; the middleware only turns the result
  into a response
- Comparison is semantic (decoded segments and query pairs) so an
  equivalent URL that is merely encoded differently is not redirected,
  which keeps every target a fixed point
- Oversized query strings are not processed at all
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode

from agenda.core.dates import DEFAULT_FILTER_VALUE, is_calendar_date, is_valid_date_slug
from agenda.core.validators import (
    is_valid_category_slug,
    normalize_place_segment,
    query_within_limits,
    sanitize_slug,
)
from agenda.services.filter_parser import build_canonical_path
from agenda.services.url_segments import (
    MAX_LISTING_SEGMENTS,
    extract_segments,
    split_path,
    strip_locale,
)

REDIRECT_STATUS_CODE = 301

# First segments that are never places
NON_PLACE_SEGMENTS = frozenset({
    "api",
    "noticies",
    "publica",
    "login",
    "offline",
    "e",
    "perfil",
    "preferits",
    "dashboard",
    "auth",
    "sitemap",
    "sitemap.xml",
    "rss.xml",
    "qui-som",
    "health",
    "docs",
    "redoc",
    "openapi.json",
    "server-sitemap.xml",
    "server-news-sitemap.xml",
    "server-google-news-sitemap.xml",
})


@dataclass(frozen=True)
class RedirectTarget:
    location: str
    status_code: int = REDIRECT_STATUS_CODE


def _first(pairs: list[tuple[str, str]], key: str) -> Optional[str]:
    for name, value in pairs:
        if name == key:
            return value
    return None


def _remaining_query(
    pairs: list[tuple[str, str]], keep_date: Optional[str]
) -> list[tuple[str, str]]:
    """Drop category and date parameters, keeping one calendar date when asked."""
    remaining = []
    date_kept = False
    for key, value in pairs:
        if key == "category":
            continue
        if key == "date":
            if keep_date is not None and value == keep_date and not date_kept:
                remaining.append((key, value))
                date_kept = True
            continue
        remaining.append((key, value))
    return remaining


def _legacy_category(value: Optional[str]) -> Optional[str]:
    if not value or value == DEFAULT_FILTER_VALUE:
        return None
    if is_valid_category_slug(value):
        return value
    slug = sanitize_slug(value)
    return slug if is_valid_category_slug(slug) else None


def _build(path: str, pairs: list[tuple[str, str]]) -> RedirectTarget:
    query = urlencode(pairs)
    return RedirectTarget(location=f"{path}?{query}" if query else path)


def resolve_redirect(path: str, query: str = "") -> Optional[RedirectTarget]:
    """
    Canonical redirect for a request, if one is needed.

    Args:
        path: Request path (may be percent-encoded)
        query: Raw query string without the leading "?"

    Returns:
        RedirectTarget with a 301 status, or None when the URL is already
        canonical or is not a listing URL
    """
    pairs = parse_qsl(query, keep_blank_values=True)
    if not query_within_limits(query, pairs):
        return None

    locale, raw_segments = strip_locale(split_path(path))
    if not raw_segments or len(raw_segments) > MAX_LISTING_SEGMENTS:
        return None
    if raw_segments[0] in NON_PLACE_SEGMENTS:
        return None

    place = normalize_place_segment(raw_segments[0])
    if place is None:
        return None

    query_date = _first(pairs, "date")
    query_category = _first(pairs, "category")
    rest = raw_segments[1:]

    current_path = build_canonical_path("/".join(raw_segments), locale=locale)

    # Legacy /place/YYYY-MM-DD
    if len(rest) == 1 and is_calendar_date(rest[0]):
        category = _legacy_category(query_category)
        target_path = build_canonical_path(place, None, category, locale)
        return _build(target_path, _remaining_query(pairs, None) + [("date", rest[0])])

    segments = extract_segments(path)
    if segments is None:
        return None

    by_date = segments.by_date if segments.by_date != DEFAULT_FILTER_VALUE else None
    category = segments.category if segments.category != DEFAULT_FILTER_VALUE else None
    if category is not None and not is_valid_category_slug(category):
        # Left to the listing handler, which knows the category catalog
        return None

    keep_date: Optional[str] = None
    if query_date:
        if is_calendar_date(query_date):
            if by_date is None:
                keep_date = query_date
        elif by_date is None and query_date != DEFAULT_FILTER_VALUE and is_valid_date_slug(query_date):
            by_date = query_date

    if query_category and category is None and query_category != DEFAULT_FILTER_VALUE:
        if not is_valid_category_slug(query_category):
            # Category names are resolved by the listing handler
            return None
        category = query_category

    target_path = build_canonical_path(place, by_date, category, locale)
    target_pairs = _remaining_query(pairs, keep_date)

    if target_path == current_path and target_pairs == pairs:
        return None
    return _build(target_path, target_pairs)
