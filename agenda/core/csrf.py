"""
CSRF Origin Validation

Coarse same-origin check for state-changing requests. A request passes when
it carries no Origin header (non-browser clients, same-origin navigations)
or when the Origin equals the request's own origin. Anything else, including
the opaque "null" origin, fails.
"""

from fastapi import Request

from agenda.core.exceptions import PermissionDeniedError


def request_origin(request: Request) -> str:
    """Origin of the request itself: scheme://host[:port] as seen by the app."""
    return f"{request.url.scheme}://{request.url.netloc}".lower()


def validate_csrf(request: Request) -> bool:
    """
    Check the Origin header against the request's own origin.

    Args:
        request: Incoming request

    Returns:
        True when Origin is absent or same-origin, False otherwise
    """
    origin = request.headers.get("Origin")
    if origin is None:
        return True
    return origin.strip().rstrip("/").lower() == request_origin(request)


def require_same_origin(request: Request) -> None:
    """FastAPI dependency form of `validate_csrf`."""
    if not validate_csrf(request):
        raise PermissionDeniedError("Invalid origin")
