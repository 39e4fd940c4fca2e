"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs
that end up in listing URLs: place slugs, category slugs and query strings.

Security Considerations:
- Slugs are reduced to [a-z0-9-] before they are used in redirects
- Length and count limits on query strings prevent DoS attacks
- System paths (dot files, framework prefixes) never reach listing logic
"""

import re
import unicodedata
from typing import Iterable, Optional

from agenda.core.dates import DATE_SLUGS, DEFAULT_FILTER_VALUE, is_calendar_date

# Query string limits for redirect processing
MAX_QUERY_STRING_LENGTH = 2048
MAX_QUERY_PARAMS = 50
MAX_QUERY_KEY_LENGTH = 100
MAX_QUERY_VALUE_LENGTH = 500

# Limits for re-encoding filter query parameters
MAX_FILTER_VALUE_LENGTH = 1000
MAX_FILTER_QUERY_LENGTH = 10_000

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

# Event, news and profile slugs as issued by the backend
RESOURCE_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]{0,199}$")

# Characters a raw place segment may contain and still be normalized to a slug
PLACE_CHARSET_RE = re.compile(r"^[\w\s'’·\-–—]+$")

INVALID_PLACES = frozenset({
    ".well-known",
    "favicon.ico",
    "robots.txt",
    "sitemap.xml",
    "ads.txt",
    "manifest.json",
})


def sanitize_slug(value: Optional[str]) -> str:
    """
    Reduce free text to an ASCII slug.

    Lowercases, strips diacritics, removes the Catalan middle dot (l·l -> ll),
    treats apostrophes as separators (l'escala -> l-escala), turns "&" into
    " i " and collapses separators into single hyphens.

    Returns:
        The slug, "n-a" when nothing usable remains, "" for empty input
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFKD", value.strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.replace("·", "")
    text = re.sub(r"['’]+", " ", text)
    text = re.sub(r"[–—―]", "-", text)
    text = text.replace("&", " i ")
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"[\s_-]+", "-", text)
    text = text.strip("-")
    return text or "n-a"


def is_slug(value: Optional[str]) -> bool:
    return bool(value) and SLUG_RE.match(value) is not None


def is_resource_slug(value: object) -> bool:
    return isinstance(value, str) and RESOURCE_SLUG_RE.match(value) is not None


def is_valid_place(place: Optional[str]) -> bool:
    """
    Check whether a first path segment may be treated as a place.

    Blocks well-known system files, anything with a dot (file extensions)
    and framework/API prefixes.
    """
    if not place:
        return False
    if place in INVALID_PLACES:
        return False
    if "." in place:
        return False
    if place.startswith("_next") or place.startswith("api"):
        return False
    return True


def normalize_place_segment(raw: str) -> Optional[str]:
    """
    Slug for a raw (decoded) place segment, or None when it cannot be one.

    Segments made of characters that never form a slug ("[place]", "&")
    return None so they are left for the router to reject.
    """
    if not is_valid_place(raw) or not PLACE_CHARSET_RE.match(raw):
        return None
    slug = sanitize_slug(raw)
    if slug == "n-a" and raw != "n-a":
        return None
    return slug


def is_valid_category_slug(value: Optional[str]) -> bool:
    """
    Format check for category slugs used without a catalog.

    Date slugs, calendar dates and the "tots" sentinel are not categories.
    """
    if not is_slug(value):
        return False
    if value == DEFAULT_FILTER_VALUE or value in DATE_SLUGS:
        return False
    return not is_calendar_date(value)


def query_within_limits(raw_query: str, pairs: list[tuple[str, str]]) -> bool:
    """
    Check a query string against the redirect DoS limits.

    Args:
        raw_query: Undecoded query string
        pairs: Decoded key/value pairs of the same query

    Returns:
        False when the query is too long, has too many parameters,
        or has an oversized key or value
    """
    if len(raw_query) > MAX_QUERY_STRING_LENGTH:
        return False
    if len(pairs) > MAX_QUERY_PARAMS:
        return False
    for key, value in pairs:
        if len(key) > MAX_QUERY_KEY_LENGTH or len(value) > MAX_QUERY_VALUE_LENGTH:
            return False
    return True


def to_query_params(pairs: Iterable[tuple[str, Optional[str]]]) -> list[tuple[str, str]]:
    """
    Bounded copy of query pairs for re-encoding.

    Drops None values and oversized keys, truncates long values and stops
    after MAX_QUERY_PARAMS values or MAX_FILTER_QUERY_LENGTH characters.
    """
    result: list[tuple[str, str]] = []
    total = 0
    for key, value in pairs:
        if value is None or not key or len(key) > MAX_QUERY_KEY_LENGTH:
            continue
        if len(result) >= MAX_QUERY_PARAMS:
            break
        value = value[:MAX_FILTER_VALUE_LENGTH]
        total += len(key) + len(value)
        if total > MAX_FILTER_QUERY_LENGTH:
            break
        result.append((key, value))
    return result
