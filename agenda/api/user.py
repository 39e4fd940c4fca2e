"""
User Endpoints

Favorites (cookie based, no login needed) and the events a logged-in
user has published.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from agenda.api.deps import (
    enforce_auth_rate_limit,
    get_backend,
    get_current_user,
    get_ownership_service,
)
from agenda.api.schemas import FavoriteRequest, FavoritesResponse, OwnedEventsResponse
from agenda.core.csrf import require_same_origin
from agenda.core.exceptions import InvalidInputError, UpstreamError
from agenda.core.setting import settings
from agenda.core.validators import is_resource_slug
from agenda.db.models import User
from agenda.services.backend_client import BackendClient
from agenda.services.favorites_service import apply_favorite, parse_favorites, set_favorites_cookie
from agenda.services.ownership_service import OwnershipService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user")


def invalid_body() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"ok": False, "error": "INVALID_BODY"},
    )


@router.get("/favorites", response_model=FavoritesResponse, summary="Favorite event slugs")
async def get_favorites(request: Request) -> FavoritesResponse:
    favorites = parse_favorites(request.cookies.get(settings.FAVORITES_COOKIE_NAME))
    return FavoritesResponse(favorites=favorites)


@router.post(
    "/favorites",
    response_model=FavoritesResponse,
    dependencies=[Depends(require_same_origin)],
    summary="Add or remove a favorite",
)
async def update_favorites(request: Request):
    """
    Toggle one event in the favorites cookie.

    Malformed bodies answer 400 with `{"ok": false, "error": "INVALID_BODY"}`
    and leave the cookie untouched.
    """
    try:
        body = FavoriteRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return invalid_body()
    if not is_resource_slug(body.event_slug):
        return invalid_body()

    current = parse_favorites(request.cookies.get(settings.FAVORITES_COOKIE_NAME))
    favorites = apply_favorite(current, body.event_slug, body.should_be_favorite)

    response = JSONResponse(content=FavoritesResponse(favorites=favorites).model_dump())
    set_favorites_cookie(response, favorites)
    return response


@router.get("/events", response_model=OwnedEventsResponse, summary="Events published by the user")
async def list_owned_events(
    user: User = Depends(get_current_user),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> OwnedEventsResponse:
    return OwnedEventsResponse(events=await ownership.list_owned_slugs(user.id))


@router.post(
    "/events",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_same_origin), Depends(enforce_auth_rate_limit)],
    summary="Publish an event",
)
async def create_event(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> Any:
    """Create the event upstream and remember who published it."""
    created = await backend.create_event(payload)
    slug = created.get("slug") if isinstance(created, dict) else None
    if not is_resource_slug(slug):
        logger.error(f"Backend created an event without a usable slug: {json.dumps(created)[:200]}")
        raise UpstreamError("events")

    await ownership.record(user.id, slug)
    return created


@router.put(
    "/events/{slug}",
    dependencies=[Depends(require_same_origin)],
    summary="Edit a published event",
)
async def update_event(
    slug: str,
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> Any:
    if not is_resource_slug(slug):
        raise InvalidInputError("Invalid slug")
    await ownership.require_owner(user.id, slug)
    return await backend.update_event(slug, payload)
