"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Abstract base class for database implementations
- SQLiteAdapter: SQLite-specific implementation (default)
- Session management: engine, session factory and the FastAPI dependency
"""

from agenda.db.interface import DatabaseAdapter
from agenda.db.session import async_session_maker, engine, get_session, init_db

__all__ = [
    "DatabaseAdapter",
    "get_session",
    "async_session_maker",
    "engine",
    "init_db",
]
