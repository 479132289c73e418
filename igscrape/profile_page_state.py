from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from igscrape.profile_config import DEFAULT_HOST
from igscrape.profile_result import ErrorType

logger = logging.getLogger(__name__)

_LOGIN_PATH_HINTS = (
    "/accounts/login",
    "/accounts/emailsignup",
)
_NOT_FOUND_PATH_HINTS = ("/404",)
_NOT_FOUND_TEXT_HINTS = (
    "Sorry, this page isn't available",
    "The link you followed may be broken",
    "User not found",
)
_PRIVATE_TEXT_HINTS = (
    "This Account is Private",
    "This account is private",
)
_BODY_TEXT_SCRIPT = "() => (document.body && document.body.textContent) || ''"


def is_login_url(url: str) -> bool:
    path = urlparse(url).path.lower()
    return any(path.startswith(prefix) for prefix in _LOGIN_PATH_HINTS)


def _is_home_url(url: str, host: str) -> bool:
    parsed = urlparse(url)
    return parsed.netloc.lower() == host and parsed.path in ("", "/") and not parsed.query


async def _body_text(page: Any) -> str:
    text = await page.evaluate(_BODY_TEXT_SCRIPT)
    return text if isinstance(text, str) else ""


async def is_auth_required(page: Any) -> bool:
    try:
        return is_login_url(page.url)
    except Exception:
        logger.debug("auth check could not read page url", exc_info=True)
        return False


async def is_not_found(page: Any, *, host: str = DEFAULT_HOST) -> bool:
    try:
        url = page.url
        if is_login_url(url):
            return False

        body_text = await _body_text(page)
        if any(hint in body_text for hint in _NOT_FOUND_TEXT_HINTS):
            return True

        path = urlparse(url).path.lower()
        if any(path.startswith(prefix) for prefix in _NOT_FOUND_PATH_HINTS):
            return True
        # A missing profile bounces back to the bare home page.
        return _is_home_url(url, host)
    except Exception:
        logger.debug("not-found check could not inspect page", exc_info=True)
        return False


async def is_private_restricted(page: Any) -> bool:
    try:
        body_text = await _body_text(page)
    except Exception:
        logger.debug("private check could not inspect page", exc_info=True)
        return False
    return any(hint in body_text for hint in _PRIVATE_TEXT_HINTS)


async def classify_page_state(page: Any, *, host: str = DEFAULT_HOST) -> ErrorType | None:
    """Return the first matching error condition, checked as auth, not-found, private."""
    if await is_auth_required(page):
        return ErrorType.auth_required
    if await is_not_found(page, host=host):
        return ErrorType.not_found
    if await is_private_restricted(page):
        return ErrorType.private_restricted
    return None
