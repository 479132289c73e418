from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import model_validator

from igscrape.profile_config import ScraperConfig
from igscrape.profile_extractors import ResponseInterceptor, extract_dom_meta, extract_embedded_json
from igscrape.profile_page_state import classify_page_state
from igscrape.profile_result import ErrorType
from igscrape.schemas import IGRecordModel, RawProfileData

logger = logging.getLogger(__name__)

_NETWORK_MESSAGE_HINTS = ("net::", "navigation")


class ExtractionSource(str, Enum):
    api = "api"
    json = "json"
    dom = "dom"


class ExtractionOutcome(IGRecordModel):
    success: bool
    data: RawProfileData | None = None
    source: ExtractionSource | None = None
    error: ErrorType | None = None

    @model_validator(mode="after")
    def validate_single_branch(self) -> "ExtractionOutcome":
        if self.success:
            if self.data is None or self.source is None or self.error is not None:
                raise ValueError("successful outcomes carry data and source only")
        elif self.error is None or self.data is not None or self.source is not None:
            raise ValueError("failed outcomes carry an error only")
        return self

    @classmethod
    def succeeded(cls, data: RawProfileData, source: ExtractionSource) -> "ExtractionOutcome":
        return cls(success=True, data=data, source=source)

    @classmethod
    def failed(cls, error: ErrorType) -> "ExtractionOutcome":
        return cls(success=False, error=error)


def classify_navigation_error(exc: BaseException) -> ErrorType:
    if isinstance(exc, PlaywrightTimeoutError):
        return ErrorType.network
    message = str(exc).lower()
    if any(hint in message for hint in _NETWORK_MESSAGE_HINTS):
        return ErrorType.network
    return ErrorType.scrape_failed


async def extract_profile(
    page: Any,
    profile_url: str,
    *,
    config: ScraperConfig | None = None,
) -> ExtractionOutcome:
    """Run the extraction strategies against ``profile_url`` on a caller-owned page.

    Order: intercepted API payload, page error states, embedded JSON, DOM meta tags.
    Never raises for page faults; the page is left open.
    """
    settings = config or ScraperConfig()
    interceptor = ResponseInterceptor(page, timeout_ms=settings.interceptor_timeout_ms)
    try:
        interceptor.arm()
        await page.goto(
            profile_url,
            wait_until=settings.wait_until.value,
            timeout=settings.navigation_timeout_ms,
        )
        await page.wait_for_timeout(settings.settle_delay_ms)

        api_data = await interceptor.wait()
        if api_data is not None:
            logger.debug("profile resolved from intercepted api response: %s", profile_url)
            return ExtractionOutcome.succeeded(api_data, ExtractionSource.api)

        page_state = await classify_page_state(page, host=settings.host)
        if page_state is not None:
            logger.debug("profile page classified as %s: %s", page_state.value, profile_url)
            return ExtractionOutcome.failed(page_state)

        json_data = await extract_embedded_json(page)
        if json_data is not None:
            logger.debug("profile resolved from embedded json: %s", profile_url)
            return ExtractionOutcome.succeeded(json_data, ExtractionSource.json)

        dom_data = await extract_dom_meta(page)
        if dom_data is not None:
            logger.debug("profile resolved from dom meta tags: %s", profile_url)
            return ExtractionOutcome.succeeded(dom_data, ExtractionSource.dom)

        logger.debug("no extraction strategy produced profile data: %s", profile_url)
        return ExtractionOutcome.failed(ErrorType.parse_changed)
    except Exception as exc:
        error_type = classify_navigation_error(exc)
        logger.debug("profile extraction aborted (%s): %s", error_type.value, exc)
        return ExtractionOutcome.failed(error_type)
    finally:
        interceptor.close()
