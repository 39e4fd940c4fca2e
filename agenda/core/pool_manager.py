"""
HTTP Client Pool Manager

This module manages the shared httpx.AsyncClient used for every outbound
call (backend API, Nominatim, Turnstile, Google OAuth, mail API).

Design:
- Singleton pattern: one connection pool per application instance
- Initialized on application startup, closed on shutdown
- Lazily created if a caller needs it before startup ran (scripts, tests)
"""

import logging
from typing import Optional

import httpx

from agenda.core.setting import settings

logger = logging.getLogger(__name__)

USER_AGENT = "agenda-service/1.0 (events listing)"

# Global client instance (initialized on startup)
_client: Optional[httpx.AsyncClient] = None


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.BACKEND_TIMEOUT_SECONDS,
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )


async def initialize_pool() -> httpx.AsyncClient:
    """Create the shared HTTP client and return it."""
    global _client
    if _client is None or _client.is_closed:
        _client = _build_client()
        logger.info("HTTP client pool initialized")
    return _client


def get_http_client() -> httpx.AsyncClient:
    """
    Get the shared HTTP client, creating it on first use.

    Returns:
        httpx.AsyncClient shared by all services
    """
    global _client
    if _client is None or _client.is_closed:
        _client = _build_client()
    return _client


async def shutdown_pool() -> None:
    """Close the shared HTTP client."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("HTTP client pool closed")
