"""
Authentication Service

Lightweight accounts for publishing and managing events:
- session tokens stored server-side and carried in the `session` cookie
- single-use magic links delivered by email
- Google OAuth (authorization code flow) with a stored `state`
- Cloudflare Turnstile verification for the magic-link form

Design Decisions:
- Tokens are random URL-safe strings from `secrets`; magic-link tokens are
  stored as SHA-256 hashes only
- Expired sessions, links and states are rejected on read and deleted;
  expired OAuth states are also pruned whenever a new one is created
- Third-party failures surface as UpstreamError; invalid credentials as
  AuthenticationError
"""

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agenda.core.exceptions import AuthenticationError, UpstreamError
from agenda.core.setting import settings
from agenda.db.models import MagicLinkToken, OAuthState, User, UserSession, as_utc, utcnow

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = "openid email profile"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def is_safe_redirect(target: Optional[str]) -> bool:
    """Only same-site absolute paths are accepted as post-login targets."""
    return bool(target) and target.startswith("/") and not target.startswith("//") and "\\" not in target


class AuthService:
    """Account, session and login-flow operations on one database session."""

    def __init__(self, session: AsyncSession, http_client: Optional[httpx.AsyncClient] = None):
        self.session = session
        self.http = http_client

    # Users
    async def find_or_create_user(self, email: str, name: Optional[str] = None) -> User:
        email = email.strip().lower()
        result = await self.session.exec(select(User).where(User.email == email))
        user = result.first()
        if user is not None:
            if name and not user.name:
                user.name = name
                self.session.add(user)
            return user

        user = User(email=email, name=name)
        self.session.add(user)
        await self.session.flush()
        logger.info(f"Created user {user.id}")
        return user

    # Sessions
    async def create_session(self, user_id: int) -> UserSession:
        record = UserSession(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=utcnow() + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS),
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_session_user(self, token: Optional[str]) -> Optional[User]:
        """User behind a session token, None when missing or expired."""
        if not token:
            return None
        record = await self.session.get(UserSession, token)
        if record is None:
            return None
        if as_utc(record.expires_at) <= utcnow():
            await self.session.delete(record)
            return None
        return await self.session.get(User, record.user_id)

    async def require_user(self, token: Optional[str]) -> User:
        user = await self.get_session_user(token)
        if user is None:
            raise AuthenticationError()
        return user

    async def delete_session(self, token: Optional[str]) -> None:
        if not token:
            return
        record = await self.session.get(UserSession, token)
        if record is not None:
            await self.session.delete(record)

    # Magic links
    async def create_magic_link(self, email: str, redirect_to: Optional[str] = None) -> str:
        """
        Store a single-use login token for an email.

        Returns:
            The raw token; only its hash is persisted
        """
        token = secrets.token_urlsafe(32)
        self.session.add(MagicLinkToken(
            token_hash=hash_token(token),
            email=email.strip().lower(),
            redirect_to=redirect_to if is_safe_redirect(redirect_to) else None,
            expires_at=utcnow() + timedelta(seconds=settings.MAGIC_LINK_TTL_SECONDS),
        ))
        await self.session.flush()
        return token

    async def consume_magic_link(self, token: str) -> MagicLinkToken:
        """
        Mark a magic-link token as used.

        Raises:
            AuthenticationError: unknown, expired or already used token
        """
        record = await self.session.get(MagicLinkToken, hash_token(token))
        if record is None or record.consumed_at is not None:
            raise AuthenticationError("Invalid or expired link")
        if as_utc(record.expires_at) <= utcnow():
            raise AuthenticationError("Invalid or expired link")
        record.consumed_at = utcnow()
        self.session.add(record)
        return record

    def build_magic_link(self, token: str) -> str:
        return f"{settings.SITE_URL.rstrip('/')}/api/auth/magic-link/verify?{urlencode({'token': token})}"

    async def send_magic_link(self, email: str, link: str) -> None:
        """Deliver a login link through the mail API (logged when none is configured)."""
        if not settings.MAIL_API_URL or self.http is None:
            logger.info(f"Magic link for {email}: {link}")
            return
        try:
            response = await self.http.post(
                settings.MAIL_API_URL,
                json={"to": email, "template": "magic-link", "data": {"link": link}},
                headers={"Authorization": f"Bearer {settings.MAIL_API_KEY}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send magic link: {e!r}")
            raise UpstreamError("mail", e) from e

    # OAuth
    async def create_oauth_state(self) -> str:
        """Store a new pending state, pruning states that can no longer be used."""
        cutoff = utcnow() - timedelta(seconds=settings.OAUTH_STATE_TTL_SECONDS)
        await self.session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        state = secrets.token_urlsafe(24)
        self.session.add(OAuthState(state=state))
        await self.session.flush()
        return state

    async def consume_oauth_state(self, state: Optional[str]) -> bool:
        """Delete a pending state; True only when it existed and was fresh."""
        if not state:
            return False
        record = await self.session.get(OAuthState, state)
        if record is None:
            return False
        await self.session.delete(record)
        age = utcnow() - as_utc(record.created_at)
        return age <= timedelta(seconds=settings.OAUTH_STATE_TTL_SECONDS)

    def google_authorize_url(self, state: str) -> str:
        params = {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_google_code(self, code: str) -> dict[str, Any]:
        """
        Exchange an authorization code and fetch the Google profile.

        Raises:
            AuthenticationError: Google rejected the code or returned no email
            UpstreamError: Google could not be reached
        """
        try:
            token_response = await self.http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )
            if token_response.status_code != 200:
                logger.warning(f"Google token exchange failed: {token_response.status_code}")
                raise AuthenticationError("OAuth code exchange failed")
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise AuthenticationError("OAuth code exchange failed")

            profile_response = await self.http.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError("google", e) from e

        if profile_response.status_code != 200:
            raise AuthenticationError("Could not read Google profile")
        profile = profile_response.json()
        if not profile.get("email"):
            raise AuthenticationError("Google profile has no email")
        return profile

    # Turnstile
    async def verify_turnstile(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        """
        Verify a Turnstile challenge response.

        Always True when no secret is configured (local development).
        """
        if not settings.TURNSTILE_SECRET_KEY:
            return True
        if not token:
            return False
        data = {"secret": settings.TURNSTILE_SECRET_KEY, "response": token}
        if remote_ip and remote_ip != "unknown":
            data["remoteip"] = remote_ip
        try:
            response = await self.http.post(settings.TURNSTILE_VERIFY_URL, data=data)
            response.raise_for_status()
            return bool(response.json().get("success"))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Turnstile verification failed: {e!r}")
            return False
