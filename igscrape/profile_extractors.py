from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from igscrape.profile_config import DEFAULT_INTERCEPTOR_TIMEOUT_MS
from igscrape.schemas import RawProfileData, is_username_like, normalize_optional_text

logger = logging.getLogger(__name__)

_DATA_ENDPOINT_HINTS = (
    "/api/v1/users/web_profile_info",
    "/api/v1/users/",
    "/graphql/query",
    "/api/graphql",
    "?__a=1",
)
_PROFILE_PAGE_USER_PATH: tuple[str | int, ...] = ("entry_data", "ProfilePage", 0, "graphql", "user")
_API_CANDIDATE_PATHS: tuple[tuple[str | int, ...], ...] = (
    (),
    ("data", "user"),
    _PROFILE_PAGE_USER_PATH,
    ("graphql", "user"),
    ("items", 0),
    ("data", "items", 0),
    ("users", 0),
)
_EMBEDDED_CANDIDATE_PATHS: tuple[tuple[str | int, ...], ...] = (
    _PROFILE_PAGE_USER_PATH,
    ("graphql", "user"),
    ("user",),
)
_EMBEDDED_SOURCES_SCRIPT = """() => {
  const scripts = Array.from(document.querySelectorAll('script[type="application/json"]'));
  return {
    sharedData: window._sharedData || null,
    scripts: scripts.map((node) => node.textContent || ''),
  };
}"""
_TITLE_HANDLE_RE = re.compile(r"([^(@]+?)\s*\(@([^)]+)\)")
_OG_TITLE_NAME_RE = re.compile(r"^(.+?)\s*\(@")


def _dig(payload: Any, path: tuple[str | int, ...]) -> Any:
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
    return current


def _accept_candidate(candidate: Any) -> RawProfileData | None:
    if not isinstance(candidate, dict):
        return None
    if is_username_like(candidate.get("username")):
        return candidate
    nested = candidate.get("user")
    if isinstance(nested, dict) and is_username_like(nested.get("username")):
        return nested
    return None


def find_user_candidate(
    payload: Any,
    paths: tuple[tuple[str | int, ...], ...] = _API_CANDIDATE_PATHS,
) -> RawProfileData | None:
    for path in paths:
        accepted = _accept_candidate(_dig(payload, path))
        if accepted is not None:
            return accepted
    return None


def is_data_endpoint(url: str) -> bool:
    return any(hint in url for hint in _DATA_ENDPOINT_HINTS)


class ResponseInterceptor:
    """Watches page responses for a profile payload until found or timed out.

    Must be armed before navigation starts. Resolves once, to the first accepted
    record or to ``None`` on timeout/close, and detaches its listener on either path.
    """

    def __init__(self, page: Any, *, timeout_ms: int = DEFAULT_INTERCEPTOR_TIMEOUT_MS) -> None:
        self._page = page
        self._timeout_ms = timeout_ms
        self._handler = self._on_response
        self._result: asyncio.Future[RawProfileData | None] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._listening = False

    def arm(self) -> None:
        if self._result is not None:
            raise RuntimeError("response interceptor already armed")
        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self._page.on("response", self._handler)
        self._listening = True
        self._timer = loop.call_later(self._timeout_ms / 1000, self._resolve, None)

    @property
    def resolved(self) -> bool:
        return self._result is not None and self._result.done()

    @property
    def listening(self) -> bool:
        return self._listening

    def peek(self) -> RawProfileData | None:
        if self._result is None or not self._result.done():
            return None
        return self._result.result()

    async def wait(self) -> RawProfileData | None:
        if self._result is None:
            raise RuntimeError("response interceptor was never armed")
        return await asyncio.shield(self._result)

    def close(self) -> None:
        self._resolve(None)

    def _resolve(self, data: RawProfileData | None) -> None:
        if self._result is not None and not self._result.done():
            self._result.set_result(data)
        self._detach()

    def _detach(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._listening:
            return
        self._listening = False
        try:
            self._page.remove_listener("response", self._handler)
        except Exception:
            logger.debug("failed to detach response listener", exc_info=True)

    async def _on_response(self, response: Any) -> None:
        if self._result is None or self._result.done():
            return
        try:
            url = str(response.url)
            if not is_data_endpoint(url):
                return
            status = int(response.status)
            if status < 200 or status >= 300:
                return
            body = await response.json()
        except Exception:
            logger.debug("skipping unreadable profile response", exc_info=True)
            return
        candidate = find_user_candidate(body, _API_CANDIDATE_PATHS)
        if candidate is None:
            return
        logger.debug("profile payload intercepted from %s", url)
        self._resolve(candidate)


async def extract_embedded_json(page: Any) -> RawProfileData | None:
    try:
        sources = await page.evaluate(_EMBEDDED_SOURCES_SCRIPT)
    except Exception:
        logger.debug("embedded json evaluation failed", exc_info=True)
        return None
    if not isinstance(sources, dict):
        return None

    blobs: list[Any] = []
    shared_data = sources.get("sharedData")
    if shared_data is not None:
        blobs.append(shared_data)
    for text in sources.get("scripts") or []:
        if not isinstance(text, str) or not text.strip():
            continue
        try:
            blobs.append(json.loads(text))
        except ValueError:
            continue

    for blob in blobs:
        candidate = find_user_candidate(blob, _EMBEDDED_CANDIDATE_PATHS)
        if candidate is not None:
            return candidate
    return None


async def _meta_content(page: Any, name: str) -> str | None:
    selectors = (
        f"meta[property='{name}']",
        f"meta[name='{name}']",
    )
    for selector in selectors:
        try:
            locator = page.locator(selector).first
            if await locator.count() == 0:
                continue
            content = await locator.get_attribute("content", timeout=1500)
        except Exception:
            continue
        normalized = normalize_optional_text(content)
        if normalized is not None:
            return normalized
    return None


async def extract_dom_meta(page: Any) -> RawProfileData | None:
    try:
        data: RawProfileData = {}
        username = await _meta_content(page, "og:username")
        if username is not None:
            data["username"] = username.lstrip("@")
        else:
            title = normalize_optional_text(await page.title()) or ""
            match = _TITLE_HANDLE_RE.search(title)
            if match is not None:
                data["username"] = match.group(2).strip()
                data["full_name"] = match.group(1).strip()

        og_title = await _meta_content(page, "og:title")
        if og_title is not None:
            name_match = _OG_TITLE_NAME_RE.match(og_title)
            if name_match is not None:
                data["full_name"] = name_match.group(1).strip()

        description = await _meta_content(page, "og:description")
        if description is not None:
            data["biography"] = description

        image = await _meta_content(page, "og:image")
        if image is not None:
            data["profile_pic_url"] = image
            data["profile_pic_url_hd"] = image
    except Exception:
        logger.debug("dom meta extraction failed", exc_info=True)
        return None

    if not is_username_like(data.get("username")):
        return None
    return data
