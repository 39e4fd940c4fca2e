"""
Event Ownership Service

Keeps track of which user published which backend event, so edits can be
restricted to their owner.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agenda.core.exceptions import DatabaseError, PermissionDeniedError
from agenda.db.models import EventOwnership

logger = logging.getLogger(__name__)


class OwnershipService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_owned_slugs(self, user_id: int) -> list[str]:
        result = await self.session.exec(
            select(EventOwnership.event_slug)
            .where(EventOwnership.user_id == user_id)
            .order_by(EventOwnership.created_at.desc())
        )
        return list(result.all())

    async def record(self, user_id: int, event_slug: str) -> EventOwnership:
        """
        Store that `user_id` published `event_slug`.

        Raises:
            DatabaseError: the slug already has an owner or the write failed
        """
        ownership = EventOwnership(user_id=user_id, event_slug=event_slug)
        self.session.add(ownership)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record ownership of '{event_slug}': {e!r}")
            raise DatabaseError(f"could not record ownership of {event_slug}", e) from e
        logger.info(f"User {user_id} owns event '{event_slug}'")
        return ownership

    async def is_owner(self, user_id: int, event_slug: str) -> bool:
        result = await self.session.exec(
            select(EventOwnership).where(
                EventOwnership.user_id == user_id,
                EventOwnership.event_slug == event_slug,
            )
        )
        return result.first() is not None

    async def require_owner(self, user_id: int, event_slug: str) -> None:
        if not await self.is_owner(user_id, event_slug):
            raise PermissionDeniedError("You do not own this event")
