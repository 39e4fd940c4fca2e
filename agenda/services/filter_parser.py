"""
Filter Parser

Turns listing path segments and query parameters into a typed, canonical
filter state, and builds the canonical URL for a filter state.

Design Decisions:
- Pure functions: same segments + query + catalog always give the same result
- Path segments win over query parameters for the same dimension
- A `date` or `category` query parameter always makes the URL
  non-canonical; the canonical form carries them as path segments
- A calendar date (YYYY-MM-DD) in the `date` query parameter is the
  canonical form of a specific-day filter and stays in the query
- Without a category catalog, categories are validated by slug format only;
  with one, unknown categories are dropped and names resolve to slugs
"""

from typing import Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import urlencode

from pydantic import BaseModel, Field

from agenda.core.dates import DEFAULT_FILTER_VALUE, DateSlug, is_calendar_date, to_date_slug
from agenda.core.setting import settings
from agenda.core.validators import is_valid_category_slug, sanitize_slug, to_query_params
from agenda.services.url_segments import UrlSegments

DEFAULT_DISTANCE_KM = 50
MAX_SEARCH_LENGTH = 200

QueryInput = Union[Mapping[str, str], Iterable[tuple[str, str]]]


class CategorySummary(BaseModel):
    """Category as listed by the backend catalog."""
    id: int
    name: str
    slug: str


class ParsedFilters(BaseModel):
    """Canonical filter state of a listing request."""
    place: str
    by_date: Optional[DateSlug] = Field(default=None, description="None means all dates")
    category: Optional[str] = Field(default=None, description="None means all categories")
    distance: Optional[int] = None
    search_term: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    specific_date: Optional[str] = Field(default=None, description="YYYY-MM-DD from ?date=")
    locale: Optional[str] = None
    is_canonical: bool = True


def _query_dict(query: Optional[QueryInput]) -> dict[str, str]:
    # First occurrence wins, like URLSearchParams.get
    if query is None:
        return {}
    pairs = query.items() if isinstance(query, Mapping) else query
    result: dict[str, str] = {}
    for key, value in pairs:
        result.setdefault(key, value)
    return result


def resolve_category(
    value: str, categories: Optional[Sequence[CategorySummary]] = None
) -> Optional[str]:
    """
    Canonical category slug for a raw value.

    With a catalog, matches by slug, then by case-insensitive name or
    sanitized name. Without one, accepts any well-formed category slug.
    """
    if categories is None:
        return value if is_valid_category_slug(value) else None

    for category in categories:
        if category.slug == value:
            return category.slug
    lowered = value.lower()
    slugged = sanitize_slug(value)
    for category in categories:
        if category.name.lower() == lowered or sanitize_slug(category.name) == slugged:
            return category.slug
    return None


def _parse_distance(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.isdigit():
        return None
    distance = int(raw)
    return distance if distance > 0 else None


def _parse_coordinate(raw: Optional[str], limit: float) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if value != value or abs(value) > limit:  # NaN or out of range
        return None
    return value


def parse_filters(
    segments: UrlSegments,
    query: Optional[QueryInput] = None,
    categories: Optional[Sequence[CategorySummary]] = None,
) -> ParsedFilters:
    """
    Combine path segments, query parameters and an optional category catalog.

    Args:
        segments: Output of extract_segments
        query: Query parameters (mapping or key/value pairs)
        categories: Backend category catalog, when available

    Returns:
        ParsedFilters with is_canonical=False whenever the request URL
        differs from build_canonical_url(result)
    """
    params = _query_dict(query)
    is_canonical = True

    place = segments.place or settings.DEFAULT_PLACE
    place_slug = sanitize_slug(place)
    if place_slug != place:
        is_canonical = False

    # Date: path first
    by_date: Optional[DateSlug] = None
    if segments.by_date is not None:
        by_date = to_date_slug(segments.by_date)
        if by_date is None or by_date == DateSlug.ALL:
            by_date = None
            is_canonical = False

    # Category: path first
    category: Optional[str] = None
    if segments.category is not None:
        if segments.category != DEFAULT_FILTER_VALUE:
            category = resolve_category(segments.category, categories)
        if category != segments.category:
            is_canonical = False

    path_has_date = by_date is not None
    path_has_category = category is not None
    specific_date: Optional[str] = None
    query_date = params.get("date")
    if query_date:
        if is_calendar_date(query_date):
            if path_has_date:
                is_canonical = False
            else:
                specific_date = query_date
        else:
            is_canonical = False
            if not path_has_date:
                slug = to_date_slug(query_date)
                if slug is not None and slug != DateSlug.ALL:
                    by_date = slug

    query_category = params.get("category")
    if query_category:
        is_canonical = False
        if not path_has_category and query_category != DEFAULT_FILTER_VALUE:
            category = resolve_category(query_category, categories)

    search = (params.get("search") or "").strip()[:MAX_SEARCH_LENGTH] or None

    return ParsedFilters(
        place=place_slug,
        by_date=by_date,
        category=category,
        distance=_parse_distance(params.get("distance")),
        search_term=search,
        lat=_parse_coordinate(params.get("lat"), 90.0),
        lon=_parse_coordinate(params.get("lon"), 180.0),
        specific_date=specific_date,
        locale=segments.locale,
        is_canonical=is_canonical,
    )


def build_canonical_path(
    place: str,
    by_date: Optional[str] = None,
    category: Optional[str] = None,
    locale: Optional[str] = None,
) -> str:
    """"/[locale/]place[/date][/category]" with the "tots" sentinel omitted."""
    parts = [locale] if locale else []
    parts.append(place)
    if by_date and by_date != DEFAULT_FILTER_VALUE:
        parts.append(by_date)
    if category and category != DEFAULT_FILTER_VALUE:
        parts.append(category)
    return "/" + "/".join(parts)


def build_canonical_url(filters: ParsedFilters) -> str:
    """
    Canonical URL for a filter state.

    Query carries search, non-default distance, coordinates and a
    specific calendar date, in that order.
    """
    path = build_canonical_path(
        filters.place,
        filters.by_date.value if filters.by_date else None,
        filters.category,
        filters.locale,
    )
    pairs = []
    if filters.search_term:
        pairs.append(("search", filters.search_term))
    if filters.distance is not None and filters.distance != DEFAULT_DISTANCE_KM:
        pairs.append(("distance", str(filters.distance)))
    if filters.lat is not None:
        pairs.append(("lat", repr(filters.lat)))
    if filters.lon is not None:
        pairs.append(("lon", repr(filters.lon)))
    if filters.specific_date:
        pairs.append(("date", filters.specific_date))
    query = urlencode(to_query_params(pairs))
    return f"{path}?{query}" if query else path


def get_redirect_url(filters: ParsedFilters) -> Optional[str]:
    """Canonical URL when the parsed request was not canonical, else None."""
    if filters.is_canonical:
        return None
    return build_canonical_url(filters)


def build_fallback_url_for_invalid_place(
    by_date: Optional[str] = None,
    category: Optional[str] = None,
    query: Optional[QueryInput] = None,
) -> str:
    """
    Listing URL on the default place keeping the requested filters.

    Used when the place segment is unknown: invalid dates fall back to all
    dates, malformed categories are dropped.
    """
    date_slug = to_date_slug(by_date)
    filters = parse_filters(
        UrlSegments(
            place=settings.DEFAULT_PLACE,
            by_date=date_slug.value if date_slug else None,
            category=category or None,
        ),
        query,
    )
    return build_canonical_url(filters)
