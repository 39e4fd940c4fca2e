"""
Database Session Management

This module handles async database connections using SQLAlchemy's async
engine, created through the database adapter.

Key Features:
- Database abstraction: SQLite by default, other backends via adapters
- Async session management with commit on success, rollback on error
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from agenda.core.setting import settings
from agenda.db.sqlite_adapter import get_database_adapter

db_adapter = get_database_adapter()

engine = db_adapter.create_engine(
    settings.DATABASE_URL
)

async_session_maker = async_sessionmaker(
    engine,
    class_=SQLModelAsyncSession,
    expire_on_commit=False,  # Objects stay usable after commit (returned by endpoints)
    autocommit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Create missing tables (development and tests)."""
    await db_adapter.create_schema(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI to get database session.

    This function:
    - Creates a new async session
    - Yields it to the endpoint
    - Commits on success, rolls back on exception

    Usage in FastAPI:
        @router.get("/endpoint")
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
