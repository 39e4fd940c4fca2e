"""
Database Models

This module defines the SQLModel database schemas for the local account
store:
- User: people who log in by magic link or Google
- UserSession: opaque session tokens behind the `session` cookie
- MagicLinkToken: hashed single-use login tokens
- OAuthState: pending OAuth `state` values (CSRF protection for the callback)
- EventOwnership: which user published which backend event

Design Decisions:
- Only tokens' SHA-256 hashes are stored for magic links
- Timestamps are stored in UTC; SQLite returns them naive, see as_utc()
- Event data itself lives in the backend; only ownership is local
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(SQLModel, table=True):
    """
    Registered user.

    Indexes:
    - email: unique, the login identity for both magic links and OAuth
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(sa_column=Column(String(320), nullable=False, unique=True, index=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(200), nullable=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class UserSession(SQLModel, table=True):
    """Login session; the token is the value of the session cookie."""
    __tablename__ = "user_sessions"

    token: str = Field(sa_column=Column(String(64), primary_key=True))
    user_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )


class MagicLinkToken(SQLModel, table=True):
    """Single-use login link; consumed_at is set on first use."""
    __tablename__ = "magic_link_tokens"

    token_hash: str = Field(sa_column=Column(String(64), primary_key=True))
    email: str = Field(sa_column=Column(String(320), nullable=False, index=True))
    redirect_to: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    consumed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class OAuthState(SQLModel, table=True):
    """Pending OAuth authorization request."""
    __tablename__ = "oauth_states"

    state: str = Field(sa_column=Column(String(64), primary_key=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class EventOwnership(SQLModel, table=True):
    """Link between a local user and an event slug in the backend."""
    __tablename__ = "event_ownership"
    __table_args__ = (UniqueConstraint("event_slug", name="uq_event_ownership_event_slug"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    event_slug: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
