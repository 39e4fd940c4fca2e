"""
Database Abstraction Interface

The account store (users, sessions, magic links, OAuth states, event
ownership) is reached through an adapter so the backing database can be
swapped (SQLite locally, PostgreSQL in production) without touching the
services.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import Pool


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    To add a new database backend:
    1. Create a new class inheriting from DatabaseAdapter
    2. Implement all abstract methods
    3. Update get_database_adapter() to return the new adapter
    """

    @abstractmethod
    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create and configure the async database engine.

        Args:
            database_url: Connection string for the database
            **kwargs: Additional engine configuration options

        Returns:
            Configured AsyncEngine instance
        """

    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        """Connection pool class for this database type, None for the default."""

    @abstractmethod
    def get_connect_args(self) -> dict[str, Any]:
        """Driver-specific connection arguments."""

    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        """Additional engine options for this database type."""

    @abstractmethod
    async def create_schema(self, engine: AsyncEngine) -> None:
        """
        Create missing tables for all registered models.

        Development convenience; production schemas are managed by alembic.
        """

    @abstractmethod
    def get_dialect_name(self) -> str:
        """SQLAlchemy dialect name (e.g. 'sqlite', 'postgresql')."""
