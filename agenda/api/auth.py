"""
Authentication Endpoints

Magic-link login, Google OAuth, session lookup and logout.

State-changing endpoints are gated by the CSRF origin check and the
fixed-window limiter before any work is done.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse

from agenda.api.deps import (
    enforce_auth_rate_limit,
    get_auth_service,
    get_optional_user,
    session_token,
)
from agenda.api.schemas import MagicLinkRequest, OkResponse, SessionResponse, UserOut
from agenda.core.csrf import require_same_origin
from agenda.core.exceptions import AgendaError, InvalidInputError, PermissionDeniedError
from agenda.core.rate_limit import get_client_ip
from agenda.core.setting import settings
from agenda.db.models import User
from agenda.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth")

DEFAULT_LOGIN_REDIRECT = "/dashboard"


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


@router.post(
    "/magic-link",
    response_model=OkResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_same_origin), Depends(enforce_auth_rate_limit)],
    summary="Send a magic login link",
)
async def request_magic_link(
    request: Request,
    body: MagicLinkRequest,
    auth: AuthService = Depends(get_auth_service),
) -> OkResponse:
    """
    Email a single-use login link.

    The answer is the same whether or not the address already has an
    account.
    """
    if not await auth.verify_turnstile(body.turnstile_token, get_client_ip(request)):
        raise PermissionDeniedError("Captcha verification failed")

    token = await auth.create_magic_link(body.email, body.redirect_to)
    await auth.send_magic_link(body.email, auth.build_magic_link(token))
    return OkResponse()


@router.get("/magic-link/verify", summary="Log in with a magic link")
async def verify_magic_link(
    token: Optional[str] = None,
    auth: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    if not token:
        raise InvalidInputError("Missing token")

    link = await auth.consume_magic_link(token)
    user = await auth.find_or_create_user(link.email)
    session = await auth.create_session(user.id)

    response = RedirectResponse(link.redirect_to or DEFAULT_LOGIN_REDIRECT, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, session.token)
    logger.info(f"User {user.id} logged in with magic link")
    return response


@router.get("/google", summary="Start Google login")
async def google_login(auth: AuthService = Depends(get_auth_service)) -> RedirectResponse:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise AgendaError("Google login is not configured")
    state = await auth.create_oauth_state()
    return RedirectResponse(auth.google_authorize_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/google/callback", summary="Google OAuth callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    auth: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    if not code or not state:
        raise InvalidInputError("Missing code/state")
    if not await auth.consume_oauth_state(state):
        raise InvalidInputError("Invalid state")
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise AgendaError("Google login is not configured")

    profile = await auth.exchange_google_code(code)
    email = profile["email"]
    name = profile.get("name") or email.split("@")[0]

    user = await auth.find_or_create_user(email, name)
    session = await auth.create_session(user.id)

    response = RedirectResponse(DEFAULT_LOGIN_REDIRECT, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, session.token)
    logger.info(f"User {user.id} logged in with Google")
    return response


@router.get("/session", response_model=SessionResponse, summary="Current user")
async def get_session_info(user: Optional[User] = Depends(get_optional_user)) -> SessionResponse:
    if user is None:
        return SessionResponse(user=None)
    return SessionResponse(user=UserOut(id=user.id, email=user.email, name=user.name))


@router.post(
    "/logout",
    response_model=OkResponse,
    dependencies=[Depends(require_same_origin), Depends(enforce_auth_rate_limit)],
    summary="End the current session",
)
async def logout(
    response: Response,
    token: Optional[str] = Depends(session_token),
    auth: AuthService = Depends(get_auth_service),
) -> OkResponse:
    await auth.delete_session(token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return OkResponse()
