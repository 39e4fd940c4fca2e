"""
Favorites Service

Anonymous favorites kept in an httpOnly cookie as a JSON list of event
slugs, newest last. The list is capped; adding beyond the cap evicts the
oldest entries.
"""

import json
import logging
from typing import Optional

from starlette.responses import Response

from agenda.core.setting import settings
from agenda.core.validators import is_resource_slug

logger = logging.getLogger(__name__)


def parse_favorites(cookie_value: Optional[str], max_items: Optional[int] = None) -> list[str]:
    """
    Decode the favorites cookie.

    Malformed cookies decode to an empty list; invalid and duplicate slugs
    are dropped and only the newest `max_items` are kept.
    """
    max_items = max_items or settings.MAX_FAVORITES
    if not cookie_value:
        return []
    try:
        raw = json.loads(cookie_value)
    except ValueError:
        logger.debug("Ignoring malformed favorites cookie")
        return []
    if not isinstance(raw, list):
        return []

    favorites: list[str] = []
    for item in raw:
        if is_resource_slug(item) and item not in favorites:
            favorites.append(item)
    return favorites[-max_items:]


def apply_favorite(
    favorites: list[str], event_slug: str, should_be_favorite: bool, max_items: Optional[int] = None
) -> list[str]:
    """Add or remove one slug, evicting the oldest entries over the cap."""
    max_items = max_items or settings.MAX_FAVORITES
    updated = [slug for slug in favorites if slug != event_slug]
    if should_be_favorite:
        updated.append(event_slug)
    return updated[-max_items:]


def set_favorites_cookie(response: Response, favorites: list[str]) -> None:
    response.set_cookie(
        key=settings.FAVORITES_COOKIE_NAME,
        value=json.dumps(favorites, separators=(",", ":")),
        max_age=settings.FAVORITES_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
