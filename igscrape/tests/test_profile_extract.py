from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from igscrape.profile_config import ScraperConfig
from igscrape.profile_extract import (
    ExtractionOutcome,
    ExtractionSource,
    classify_navigation_error,
    extract_profile,
)
from igscrape.profile_result import ErrorType
from igscrape.tests.page_stubs import PageStub, ResponseStub

_PROFILE_URL = "https://www.instagram.com/instagram/"
_PROFILE_API = "https://www.instagram.com/api/v1/users/web_profile_info/?username=instagram"
_FAST = ScraperConfig(settle_delay_ms=0, interceptor_timeout_ms=50)


def _run(page: PageStub, config: ScraperConfig = _FAST) -> ExtractionOutcome:
    return asyncio.run(extract_profile(page, _PROFILE_URL, config=config))


def test_intercepted_api_payload_wins() -> None:
    page = PageStub(
        responses=[ResponseStub(_PROFILE_API, body={"user": {"username": "instagram", "is_private": False}})],
        body_text="This account is private",
    )
    outcome = _run(page)

    assert outcome.success is True
    assert outcome.source == ExtractionSource.api
    assert outcome.data == {"username": "instagram", "is_private": False}
    assert page.listener_count() == 0
    assert page.evaluated == []


def test_navigation_uses_configured_wait_and_timeout() -> None:
    page = PageStub(body_text="Sorry, this page isn't available")
    config = ScraperConfig(settle_delay_ms=250, interceptor_timeout_ms=50, navigation_timeout_ms=12_000)
    _run(page, config)

    assert page.gotos == [{"url": _PROFILE_URL, "wait_until": "domcontentloaded", "timeout": 12_000}]
    assert page.waits == [250]


def test_not_found_text_resolves_not_found() -> None:
    page = PageStub(body_text="Sorry, this page isn't available.")
    outcome = _run(page)

    assert outcome.success is False
    assert outcome.error == ErrorType.not_found
    assert page.listener_count() == 0


def test_login_redirect_resolves_auth_required() -> None:
    page = PageStub(final_url="https://www.instagram.com/accounts/login/?next=%2Finstagram%2F")
    assert _run(page).error == ErrorType.auth_required


def test_private_wall_resolves_private_restricted() -> None:
    page = PageStub(body_text="This account is private. Follow to see their photos.")
    assert _run(page).error == ErrorType.private_restricted


def test_embedded_json_used_when_no_api_payload() -> None:
    page = PageStub(embedded={"sharedData": None, "scripts": ['{"graphql": {"user": {"username": "instagram"}}}']})
    outcome = _run(page)

    assert outcome.source == ExtractionSource.json
    assert outcome.data == {"username": "instagram"}


def test_dom_meta_used_as_last_resort() -> None:
    page = PageStub(
        embedded={"sharedData": None, "scripts": []},
        meta={"meta[property='og:username']": "instagram"},
    )
    outcome = _run(page)

    assert outcome.source == ExtractionSource.dom
    assert outcome.data == {"username": "instagram"}


def test_nothing_found_resolves_parse_changed() -> None:
    page = PageStub(embedded={"sharedData": None, "scripts": []}, title="Instagram")
    outcome = _run(page)

    assert outcome.success is False
    assert outcome.error == ErrorType.parse_changed
    assert outcome.data is None


def test_network_navigation_failure_maps_to_network() -> None:
    page = PageStub(goto_error=RuntimeError("Page.goto: net::ERR_NAME_NOT_RESOLVED at https://www.instagram.com/x/"))
    outcome = _run(page)

    assert outcome.error == ErrorType.network
    assert page.listener_count() == 0


def test_other_navigation_failure_maps_to_scrape_failed() -> None:
    page = PageStub(goto_error=RuntimeError("boom"))
    assert _run(page).error == ErrorType.scrape_failed


def test_classify_navigation_error_reads_message() -> None:
    assert classify_navigation_error(RuntimeError("Navigation failed because page crashed!")) == ErrorType.network
    assert classify_navigation_error(ValueError("unexpected")) == ErrorType.scrape_failed


def test_pipeline_never_closes_the_page() -> None:
    page = PageStub(body_text="User not found")
    _run(page)
    assert page.closed is False


def test_extraction_outcome_enforces_single_branch() -> None:
    with pytest.raises(ValidationError):
        ExtractionOutcome(success=True, error=ErrorType.network)
    with pytest.raises(ValidationError):
        ExtractionOutcome(success=False, error=ErrorType.network, data={"username": "x"})
    with pytest.raises(ValidationError):
        ExtractionOutcome(success=False)


def test_api_response_arriving_after_navigation_is_awaited() -> None:
    page = PageStub(
        late_responses=[ResponseStub(_PROFILE_API, body={"data": {"user": {"username": "instagram"}}})],
        late_delay_s=0.05,
        body_text="This account is private",
    )
    outcome = _run(page, ScraperConfig(settle_delay_ms=0, interceptor_timeout_ms=2_000))

    assert outcome.success is True
    assert outcome.source == ExtractionSource.api
    assert outcome.data == {"username": "instagram"}
    assert page.listener_count() == 0
    assert page.evaluated == []


def test_interceptor_timeout_falls_through_to_page_state() -> None:
    page = PageStub(
        late_responses=[ResponseStub(_PROFILE_API, body={"user": {"username": "instagram"}})],
        late_delay_s=1.0,
        body_text="This account is private",
    )
    outcome = _run(page, ScraperConfig(settle_delay_ms=0, interceptor_timeout_ms=50))

    assert outcome.success is False
    assert outcome.error == ErrorType.private_restricted
    assert page.listener_count() == 0


def test_interceptor_timeout_without_responses_reaches_embedded_json() -> None:
    shared_data = {"entry_data": {"ProfilePage": [{"graphql": {"user": {"username": "instagram"}}}]}}
    page = PageStub(embedded={"sharedData": shared_data, "scripts": []})
    outcome = _run(page, ScraperConfig(settle_delay_ms=0, interceptor_timeout_ms=50))

    assert outcome.source == ExtractionSource.json
    assert outcome.data == {"username": "instagram"}
