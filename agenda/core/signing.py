"""
HMAC request signing for the backend API.

Every backend request carries:
- x-timestamp: epoch milliseconds
- x-hmac: hex HMAC-SHA256 over "METHOD|timestamp|path?query|body"

The backend accepts timestamps up to five minutes old and one minute in
the future.
"""

import hashlib
import hmac
import logging
import time
from typing import Generator, Optional

import httpx

logger = logging.getLogger(__name__)

TIMESTAMP_HEADER = "x-timestamp"
SIGNATURE_HEADER = "x-hmac"

MAX_TIMESTAMP_AGE_MS = 5 * 60 * 1000
MAX_TIMESTAMP_SKEW_MS = 60 * 1000


def build_string_to_sign(body: str, timestamp: int, path_and_query: str, method: str) -> str:
    return f"{method.upper()}|{timestamp}|{path_and_query}|{body}"


def generate_hmac(secret: str, body: str, timestamp: int, path_and_query: str, method: str) -> str:
    message = build_string_to_sign(body, timestamp, path_and_query, method)
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_hmac_signature(secret: str, string_to_sign: str, signature: str) -> bool:
    """Constant-time check of a hex signature."""
    expected = hmac.new(secret.encode(), string_to_sign.encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.lower())


def validate_timestamp(timestamp: str, now_ms: Optional[int] = None) -> bool:
    try:
        value = int(timestamp)
    except (TypeError, ValueError):
        return False
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    if value > now_ms + MAX_TIMESTAMP_SKEW_MS:
        return False
    return now_ms - value <= MAX_TIMESTAMP_AGE_MS


class HmacAuth(httpx.Auth):
    """
    httpx auth flow adding the signature headers to each request.

    The signed path is the raw request target (path plus query) exactly as
    sent, so the backend recomputes the same string.
    """

    requires_request_body = True

    def __init__(self, secret: str):
        self.secret = secret

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        timestamp = int(time.time() * 1000)
        body = request.content.decode("utf-8") if request.content else ""
        path_and_query = request.url.raw_path.decode("ascii")
        request.headers[TIMESTAMP_HEADER] = str(timestamp)
        request.headers[SIGNATURE_HEADER] = generate_hmac(
            self.secret, body, timestamp, path_and_query, request.method
        )
        yield request
