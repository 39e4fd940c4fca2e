"""
Canonical Redirect and Security Header Middleware

CanonicalRedirectMiddleware answers non-canonical listing URLs with a
permanent redirect before routing, so listing handlers only ever see
canonical requests (or those the resolver leaves alone).

SecurityHeadersMiddleware adds the baseline response headers every page
and API response carries.
"""

import logging

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

from agenda.services.redirect_service import resolve_redirect

logger = logging.getLogger(__name__)

REDIRECT_METHODS = frozenset({"GET", "HEAD"})

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(self)",
}


class CanonicalRedirectMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if request.method in REDIRECT_METHODS and not path.startswith("/api/"):
            target = resolve_redirect(path, request.url.query)
            if target is not None:
                logger.debug(f"Canonical redirect {path} -> {target.location}")
                return RedirectResponse(target.location, status_code=target.status_code)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def add_redirect_middleware(app: FastAPI) -> None:
    app.add_middleware(CanonicalRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
