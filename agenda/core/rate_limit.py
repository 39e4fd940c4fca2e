"""
Rate Limiting

Two layers of request throttling:

- slowapi limits (`limiter` + `RATE_LIMITS`) on the public proxy routes,
  keyed by client IP.
- `FixedWindowRateLimiter`, an explicitly constructed fixed-window counter
  keyed by "<client-ip>:<path>" that gates the state-changing auth and
  user endpoints.

Design Decisions:
- Client IP comes from the first X-Forwarded-For hop (the upstream proxy
  is trusted), then X-Real-IP, then the socket peer
- The fixed-window limiter owns its state and clock so tests and the app
  can create isolated instances instead of sharing a module-level map
- State is per process; limits scale with the number of instances
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request
from slowapi import Limiter

from agenda.core.setting import settings

PRUNE_INTERVAL_MS = 60_000


def now_ms() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Handles proxies and load balancers by checking X-Forwarded-For header,
    then X-Real-IP.

    Args:
        request: FastAPI Request object

    Returns:
        IP address as string, "unknown" when nothing identifies the client
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def client_key(request: Request) -> str:
    """Rate-limit key for the fixed-window limiter: "<client-ip>:<path>"."""
    return f"{get_client_ip(request)}:{request.url.path}"


# Initialize rate limiter
# Uses the proxy-aware client IP for rate limiting
limiter = Limiter(key_func=get_client_ip, enabled=settings.RATE_LIMIT_ENABLED)

# Rate limit configurations per endpoint group
# Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
RATE_LIMITS = {
    "listing": "120/minute",  # Listing pages and event searches
    "proxy": "60/minute",  # Catalog/detail proxies
    "geocode": "20/minute",  # Nominatim fair use
    "revalidate": "10/minute",
}


@dataclass
class RateLimitEntry:
    """Counter for one key within its current window."""
    count: int
    reset_at: int  # epoch ms


class FixedWindowRateLimiter:
    """
    Fixed-window request counter.

    On the first request for a key the counter starts at 1 and the window
    closes `window_ms` later. Requests after the window closes start a new
    window. Within a window the counter is incremented and the request is
    denied once it exceeds `max_requests`.

    Every read-modify-write below runs without awaiting, so it is atomic
    with respect to other requests on the same event loop.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_ms: int = 60_000,
        clock: Optional[Callable[[], int]] = None,
        enabled: bool = True,
    ):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.enabled = enabled
        self._clock = clock or now_ms
        self._entries: dict[str, RateLimitEntry] = {}
        self._last_prune = self._clock()

    def is_rate_limited(self, key: str) -> bool:
        """
        Record a request for `key` and report whether it must be rejected.

        Args:
            key: Client identifier, usually built by `client_key`

        Returns:
            True when the request exceeds the window quota
        """
        if not self.enabled:
            return False

        now = self._clock()
        self._maybe_prune(now)

        entry = self._entries.get(key)
        if entry is None or now > entry.reset_at:
            self._entries[key] = RateLimitEntry(count=1, reset_at=now + self.window_ms)
            return False

        entry.count += 1
        return entry.count > self.max_requests

    def retry_after(self, key: str) -> int:
        """Seconds until the current window for `key` closes (at least 1)."""
        entry = self._entries.get(key)
        if entry is None:
            return 1
        return max(1, math.ceil((entry.reset_at - self._clock()) / 1000))

    def get_entry(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when none is given."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def _maybe_prune(self, now: int) -> None:
        # Expired windows are dropped lazily at most once per interval
        if now - self._last_prune < PRUNE_INTERVAL_MS:
            return
        self._last_prune = now
        expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
        for key in expired:
            del self._entries[key]


def create_auth_rate_limiter() -> FixedWindowRateLimiter:
    """Build the limiter used by auth and user endpoints from settings."""
    return FixedWindowRateLimiter(
        max_requests=settings.AUTH_RATE_LIMIT_MAX_REQUESTS,
        window_ms=settings.AUTH_RATE_LIMIT_WINDOW_MS,
        enabled=settings.RATE_LIMIT_ENABLED,
    )
