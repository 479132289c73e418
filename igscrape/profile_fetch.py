from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from igscrape.profile_config import ScraperConfig
from igscrape.profile_extract import extract_profile
from igscrape.profile_normalize import NormalizedProfile, normalize_profile
from igscrape.profile_page_state import is_login_url
from igscrape.profile_result import (
    ErrorRecord,
    ErrorType,
    ProfileScrapeError,
    ResultEnvelope,
    build_error,
    fail_result,
    ok_result,
    start_timer,
)
from igscrape.profile_urls import InvalidProfileInputError, normalize_profile_url, username_from_profile_url
from igscrape.schemas import IGRecordModel

logger = logging.getLogger(__name__)

PARSE_CHANGED_HINT = (
    "Instagram may have changed their page structure. The extraction logic may need to be updated."
)
AUTH_REQUIRED_MESSAGE = "Session is invalid or expired. Please login again."
AUTH_REQUIRED_HINT = "Create a new session by logging in again, then retry with the refreshed storage state."
_LOGGED_IN_SELECTORS = (
    "nav[role='navigation']",
    "a[href='/']",
)


class SessionValidity(IGRecordModel):
    valid: bool


def _extraction_error(error_type: ErrorType, username: str) -> ErrorRecord:
    if error_type == ErrorType.not_found:
        return build_error(error_type, f"Profile not found: {username}")
    if error_type == ErrorType.private_restricted:
        return build_error(error_type, f"Profile is private and not accessible: {username}")
    if error_type == ErrorType.auth_required:
        return build_error(
            error_type,
            AUTH_REQUIRED_MESSAGE,
            hint=AUTH_REQUIRED_HINT,
        )
    if error_type == ErrorType.parse_changed:
        return build_error(
            error_type,
            "Instagram page structure changed. Expected data sources not found.",
            hint=PARSE_CHANGED_HINT,
        )
    if error_type == ErrorType.network:
        return build_error(error_type, "Network error while fetching profile")
    return build_error(ErrorType.scrape_failed, f"Profile extraction failed: {error_type.value}")


def _finish(result: ResultEnvelope[Any], settings: ScraperConfig) -> ResultEnvelope[Any]:
    if settings.raise_on_error and not result.ok:
        raise ProfileScrapeError(result)
    return result


async def _fetch_profile(
    page: Any,
    *,
    username: str | None,
    url: str | None,
    settings: ScraperConfig,
    started_at: float,
    debug_id: str,
) -> ResultEnvelope[NormalizedProfile]:
    try:
        profile_url = normalize_profile_url(username, url, host=settings.host)
        canonical_username = username_from_profile_url(profile_url)
    except InvalidProfileInputError as exc:
        return fail_result(
            build_error(ErrorType.scrape_failed, str(exc), cause=exc),
            started_at=started_at,
            debug_id=debug_id,
        )

    outcome = await extract_profile(page, profile_url, config=settings)
    if outcome.data is None or outcome.source is None:
        error_type = outcome.error or ErrorType.scrape_failed
        logger.info("profile %s failed with %s [%s]", canonical_username, error_type.value, debug_id)
        return fail_result(
            _extraction_error(error_type, canonical_username),
            started_at=started_at,
            debug_id=debug_id,
        )

    source = outcome.source
    normalized, warnings = normalize_profile(outcome.data, canonical_username)
    logger.info(
        "profile %s extracted from %s with %d warning(s) [%s]",
        canonical_username,
        source.value,
        len(warnings),
        debug_id,
    )
    return ok_result(
        outcome.data,
        normalized,
        started_at=started_at,
        warnings=warnings,
        debug_id=debug_id,
    )


async def get_profile(
    page: Any,
    *,
    username: str | None = None,
    url: str | None = None,
    config: ScraperConfig | None = None,
    debug_id: str | None = None,
) -> ResultEnvelope[NormalizedProfile]:
    """Fetch and normalize one profile using a page owned by the caller.

    ``username`` is preferred over ``url``. Expected failures come back as a failed
    envelope; they only raise when ``config.raise_on_error`` is set.
    """
    started_at = start_timer()
    settings = config or ScraperConfig()
    run_debug_id = debug_id or uuid4().hex
    try:
        result = await _fetch_profile(
            page,
            username=username,
            url=url,
            settings=settings,
            started_at=started_at,
            debug_id=run_debug_id,
        )
    except Exception as exc:
        logger.warning("unexpected profile extraction error [%s]", run_debug_id, exc_info=True)
        result = fail_result(
            build_error(
                ErrorType.scrape_failed,
                f"Unexpected error during profile extraction: {exc}",
                cause=exc,
            ),
            started_at=started_at,
            debug_id=run_debug_id,
        )
    return _finish(result, settings)


async def _has_logged_in_markers(page: Any) -> bool:
    for selector in _LOGGED_IN_SELECTORS:
        if await page.locator(selector).count() > 0:
            return True
    return False


async def validate_session(
    page: Any,
    *,
    config: ScraperConfig | None = None,
    debug_id: str | None = None,
) -> ResultEnvelope[SessionValidity]:
    """Best-effort check that the page's session is still logged in."""
    started_at = start_timer()
    settings = config or ScraperConfig()
    run_debug_id = debug_id or uuid4().hex
    try:
        await page.goto(
            settings.home_url,
            wait_until=settings.wait_until.value,
            timeout=settings.navigation_timeout_ms,
        )
    except Exception as exc:
        result = fail_result(
            build_error(ErrorType.network, f"Failed to navigate to Instagram: {exc}", cause=exc),
            started_at=started_at,
            debug_id=run_debug_id,
        )
        logger.info("session validation could not reach %s [%s]", settings.home_url, run_debug_id)
        return _finish(result, settings)

    try:
        valid = await _has_logged_in_markers(page) and not is_login_url(page.url)
        if valid:
            validity = SessionValidity(valid=True)
            result = ok_result(validity.model_dump(), validity, started_at=started_at, debug_id=run_debug_id)
        else:
            result = fail_result(
                build_error(
                    ErrorType.auth_required,
                    AUTH_REQUIRED_MESSAGE,
                    hint=AUTH_REQUIRED_HINT,
                ),
                started_at=started_at,
                debug_id=run_debug_id,
            )
    except Exception as exc:
        logger.warning("unexpected session validation error [%s]", run_debug_id, exc_info=True)
        result = fail_result(
            build_error(ErrorType.scrape_failed, f"Session validation failed: {exc}", cause=exc),
            started_at=started_at,
            debug_id=run_debug_id,
        )
    logger.info("session validation %s [%s]", "passed" if result.ok else "failed", run_debug_id)
    return _finish(result, settings)
