"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes (auth, user, proxies, pages)
- Middleware (logging, CORS, security headers, canonical redirects)
- Shared components created at startup (HTTP pool, backend client,
  catalogs, auth rate limiter)
- Exception handlers rendering the `{"error": ...}` envelope

Design Decisions:
- Clean separation: Routes, middleware, and app config are separate
- Long-lived components live on app.state so dependencies can hand them
  out and tests can override them
- The listing catch-all router is included last
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from agenda.api import auth, pages, proxies, user
from agenda.core.exceptions import AgendaError, RateLimitedError
from agenda.core.pool_manager import initialize_pool, shutdown_pool
from agenda.core.rate_limit import create_auth_rate_limiter, limiter
from agenda.core.setting import settings
from agenda.db import init_db
from agenda.middleware.logging import add_logging_middleware
from agenda.middleware.redirects import add_redirect_middleware
from agenda.services.backend_client import BackendClient
from agenda.services.catalog_service import CatalogService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared components on startup, release them on shutdown."""
    http_client = await initialize_pool()
    backend = BackendClient(http_client)
    app.state.http_client = http_client
    app.state.backend = backend
    app.state.catalog = CatalogService(backend, http_client)
    app.state.auth_limiter = create_auth_rate_limiter()

    if settings.AUTO_CREATE_TABLES:
        await init_db()
    logger.info(f"Agenda service started ({settings.ENV_SETTING.value})")

    yield

    await shutdown_pool()


app = FastAPI(
    title="Agenda Service",
    description="Event listings with canonical filter URLs, backend proxies and accounts",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AgendaError)
async def agenda_error_handler(request: Request, exc: AgendaError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


add_logging_middleware(app)
add_redirect_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, tags=["Auth"])
app.include_router(user.router, tags=["User"])
app.include_router(proxies.router, tags=["Proxies"])
app.include_router(pages.router, tags=["Pages"])
