"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Field names follow the JSON the web client already sends (camelCase),
declared through aliases where Python names differ.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""
    error: str


class MagicLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr = Field(..., description="Address that receives the login link")
    turnstile_token: Optional[str] = Field(
        default=None, alias="turnstileToken", description="Cloudflare Turnstile response"
    )
    redirect_to: Optional[str] = Field(
        default=None, alias="redirectTo", max_length=500, description="Path to open after login"
    )


class OkResponse(BaseModel):
    ok: bool = True


class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None


class SessionResponse(BaseModel):
    user: Optional[UserOut] = None


class FavoriteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_slug: str = Field(..., alias="eventSlug", min_length=1, max_length=200)
    should_be_favorite: bool = Field(..., alias="shouldBeFavorite")


class FavoritesResponse(BaseModel):
    ok: bool = True
    favorites: list[str]


class OwnedEventsResponse(BaseModel):
    events: list[str]


class RevalidateRequest(BaseModel):
    tags: list[str] = Field(..., min_length=1)


class RevalidateResponse(BaseModel):
    revalidated: bool
    tags: list[str]
    now: int


class HealthResponse(BaseModel):
    status: str
    timestamp: str
