"""
Browser Session Cookie
======================

The cookie carries only an opaque browser identifier, signed as an HS256
JWT so a client cannot forge or tamper with it. Authority credentials never
leave the server.

The cookie's expiry matches the store's inactivity timeout and is re-issued
on every request.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

logger = logging.getLogger(__name__)

COOKIE_ISSUER = "frontdoor"
COOKIE_ALGORITHM = "HS256"


def new_browser_id() -> str:
    """Generate a fresh opaque browser identifier."""
    return secrets.token_urlsafe(32)


def issue_browser_cookie(browser_id: str, secret: str, max_age_seconds: int) -> str:
    """
    Sign a browser identifier into a cookie value.

    Args:
        browser_id: Opaque identifier keying the session store
        secret: SESSION_COOKIE_SECRET
        max_age_seconds: Lifetime of the cookie

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sid": browser_id,
        "iat": now,
        "exp": now + timedelta(seconds=max_age_seconds),
        "iss": COOKIE_ISSUER,
    }
    return jwt.encode(payload, secret, algorithm=COOKIE_ALGORITHM)


def read_browser_cookie(token: Optional[str], secret: str) -> Optional[str]:
    """
    Verify a cookie value and return the browser identifier it carries.

    Returns None for a missing, expired, or tampered cookie; the caller then
    starts a new anonymous browser session.
    """
    if not token:
        return None

    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=[COOKIE_ALGORITHM],
            issuer=COOKIE_ISSUER,
            options={"require": ["exp", "iat", "iss", "sid"]},
        )
    except ExpiredSignatureError:
        logger.debug("Browser session cookie expired")
        return None
    except InvalidTokenError as e:
        logger.warning(f"Invalid browser session cookie: {e}")
        return None

    browser_id = decoded.get("sid")
    if not isinstance(browser_id, str) or not browser_id:
        logger.warning("Browser session cookie has no usable sid")
        return None
    return browser_id


__all__ = [
    "issue_browser_cookie",
    "new_browser_id",
    "read_browser_cookie",
]
