"""
URL Segment Extractor

Splits a listing path into its locale prefix and the place / date /
category segments.

Design Decisions:
- The first segment after the locale prefix is always the place
- Later segments are classified by content: date slugs are dates,
  anything else is a category, so "/place/teatre/avui" is understood
  (and later canonicalized to "/place/avui/teatre")
- The "tots" sentinel fills whichever dimension is still empty
- Paths that cannot be a listing (more than three place-relative segments,
  two dates, two categories) yield None
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote

from agenda.core.dates import DEFAULT_FILTER_VALUE, is_valid_date_slug

SUPPORTED_LOCALES = ("ca", "es", "en")
DEFAULT_LOCALE = "ca"
PREFIXED_LOCALES = frozenset(locale for locale in SUPPORTED_LOCALES if locale != DEFAULT_LOCALE)

MAX_LISTING_SEGMENTS = 3


@dataclass(frozen=True)
class UrlSegments:
    place: Optional[str] = None
    by_date: Optional[str] = None
    category: Optional[str] = None
    locale: Optional[str] = None


def split_path(path: str) -> list[str]:
    """Non-empty, percent-decoded path segments."""
    return [unquote(segment) for segment in path.split("/") if segment]


def strip_locale(segments: list[str]) -> tuple[Optional[str], list[str]]:
    """Remove a leading non-default locale prefix."""
    if segments and segments[0] in PREFIXED_LOCALES:
        return segments[0], segments[1:]
    return None, segments


def extract_segments(path: str) -> Optional[UrlSegments]:
    """
    Parse a request path into listing segments.

    Args:
        path: Request path, e.g. "/es/barcelona/avui/teatre"

    Returns:
        UrlSegments (all None for the root path) or None when the path
        cannot be a listing
    """
    locale, segments = strip_locale(split_path(path))
    if not segments:
        return UrlSegments(locale=locale)
    if len(segments) > MAX_LISTING_SEGMENTS:
        return None

    place, rest = segments[0], segments[1:]
    by_date: Optional[str] = None
    category: Optional[str] = None
    sentinels = 0

    for segment in rest:
        if segment == DEFAULT_FILTER_VALUE:
            sentinels += 1
        elif is_valid_date_slug(segment):
            if by_date is not None:
                return None
            by_date = segment
        else:
            if category is not None:
                return None
            category = segment

    for _ in range(sentinels):
        if by_date is None:
            by_date = DEFAULT_FILTER_VALUE
        elif category is None:
            category = DEFAULT_FILTER_VALUE
        else:
            return None

    return UrlSegments(place=place, by_date=by_date, category=category, locale=locale)
