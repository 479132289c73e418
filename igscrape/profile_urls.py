from __future__ import annotations

import re
from urllib.parse import urlparse

from igscrape.profile_config import DEFAULT_HOST

_WHITESPACE_RE = re.compile(r"\s+")


class InvalidProfileInputError(ValueError):
    """Caller supplied neither a usable username nor a usable profile URL."""


def _clean_username(username: str) -> str:
    cleaned = _WHITESPACE_RE.sub("", username)
    if cleaned.startswith("@"):
        cleaned = cleaned[1:]
    return cleaned


def _path_segments(url: str) -> list[str]:
    return [segment for segment in urlparse(url).path.split("/") if segment]


def normalize_profile_url(
    username: str | None = None,
    url: str | None = None,
    *,
    host: str = DEFAULT_HOST,
) -> str:
    """Return the canonical ``https://<host>/<username>/`` address.

    The username wins when both inputs are given.
    """
    if username:
        cleaned = _clean_username(username)
        if not cleaned:
            raise InvalidProfileInputError("username is empty after cleaning")
        return f"https://{host}/{cleaned}/"

    if url:
        parsed = urlparse(url.strip())
        if not parsed.scheme or not parsed.netloc:
            raise InvalidProfileInputError(f"Invalid URL format: {url!r} is not an absolute URL")
        segments = _path_segments(url.strip())
        if not segments:
            raise InvalidProfileInputError("Invalid URL: could not extract username")
        return f"https://{host}/{segments[0]}/"

    raise InvalidProfileInputError("Either username or url must be provided")


def username_from_profile_url(profile_url: str) -> str:
    segments = _path_segments(profile_url)
    if not segments:
        raise InvalidProfileInputError("Could not extract username from URL")
    return segments[0]
