from __future__ import annotations

import asyncio
import json

from igscrape.profile_extractors import (
    ResponseInterceptor,
    extract_dom_meta,
    extract_embedded_json,
    find_user_candidate,
    is_data_endpoint,
)
from igscrape.tests.page_stubs import PageStub, ResponseStub

_PROFILE_API = "https://www.instagram.com/api/v1/users/web_profile_info/?username=nasa"


def test_find_user_candidate_walks_known_shapes() -> None:
    user = {"username": "nasa", "id": "1"}
    assert find_user_candidate(user) == user
    assert find_user_candidate({"user": user}) == user
    assert find_user_candidate({"data": {"user": user}}) == user
    assert find_user_candidate({"entry_data": {"ProfilePage": [{"graphql": {"user": user}}]}}) == user
    assert find_user_candidate({"graphql": {"user": user}}) == user
    assert find_user_candidate({"items": [{"user": user}]}) == user
    assert find_user_candidate({"data": {"items": [user]}}) == user
    assert find_user_candidate({"users": [{"user": user}]}) == user


def test_find_user_candidate_rejects_values_without_username() -> None:
    assert find_user_candidate({"data": {"user": {"id": "1"}}}) is None
    assert find_user_candidate({"users": []}) is None
    assert find_user_candidate({"user": {"username": "not a handle!"}}) is None
    assert find_user_candidate(["nasa"]) is None


def test_is_data_endpoint_matches_known_patterns() -> None:
    assert is_data_endpoint(_PROFILE_API)
    assert is_data_endpoint("https://www.instagram.com/graphql/query")
    assert is_data_endpoint("https://www.instagram.com/nasa/?__a=1&__d=dis")
    assert not is_data_endpoint("https://static.cdninstagram.com/rsrc.php/app.js")


def test_interceptor_resolves_first_accepted_response_and_detaches() -> None:
    async def scenario() -> tuple[object, int, bool]:
        page = PageStub()
        interceptor = ResponseInterceptor(page, timeout_ms=5_000)
        interceptor.arm()
        await page.emit_response(ResponseStub("https://www.instagram.com/static/app.js", body={"username": "x"}))
        await page.emit_response(ResponseStub(_PROFILE_API, status=500, body={"user": {"username": "err"}}))
        await page.emit_response(ResponseStub(_PROFILE_API, error=ValueError("not json")))
        await page.emit_response(ResponseStub(_PROFILE_API, body={"data": {"user": {"username": "nasa"}}}))
        result = await interceptor.wait()
        return result, page.listener_count(), interceptor.listening

    result, listeners, listening = asyncio.run(scenario())
    assert result == {"username": "nasa"}
    assert listeners == 0
    assert listening is False


def test_interceptor_times_out_to_none() -> None:
    async def scenario() -> tuple[object, bool, int]:
        page = PageStub()
        interceptor = ResponseInterceptor(page, timeout_ms=10)
        interceptor.arm()
        result = await interceptor.wait()
        return result, interceptor.resolved, page.listener_count()

    result, resolved, listeners = asyncio.run(scenario())
    assert result is None
    assert resolved is True
    assert listeners == 0


def test_interceptor_close_detaches_before_resolution() -> None:
    async def scenario() -> tuple[object, int]:
        page = PageStub()
        interceptor = ResponseInterceptor(page, timeout_ms=5_000)
        interceptor.arm()
        assert interceptor.peek() is None
        interceptor.close()
        interceptor.close()
        await page.emit_response(ResponseStub(_PROFILE_API, body={"user": {"username": "late"}}))
        return interceptor.peek(), page.listener_count()

    assert asyncio.run(scenario()) == (None, 0)


def test_extract_embedded_json_reads_shared_data() -> None:
    page = PageStub(
        embedded={
            "sharedData": {"entry_data": {"ProfilePage": [{"graphql": {"user": {"username": "nasa"}}}]}},
            "scripts": [],
        }
    )
    assert asyncio.run(extract_embedded_json(page)) == {"username": "nasa"}


def test_extract_embedded_json_skips_broken_scripts() -> None:
    page = PageStub(
        embedded={
            "sharedData": None,
            "scripts": [
                "{not json",
                "",
                json.dumps({"require": []}),
                json.dumps({"graphql": {"user": {"username": "nasa", "is_private": False}}}),
            ],
        }
    )
    assert asyncio.run(extract_embedded_json(page)) == {"username": "nasa", "is_private": False}


def test_extract_embedded_json_returns_none_on_evaluation_failure() -> None:
    page = PageStub(evaluate_error=RuntimeError("Execution context was destroyed"))
    assert asyncio.run(extract_embedded_json(page)) is None


def test_extract_dom_meta_reads_social_preview_tags() -> None:
    page = PageStub(
        meta={
            "meta[property='og:username']": "nasa",
            "meta[property='og:title']": "NASA (@nasa) • Instagram photos and videos",
            "meta[property='og:description']": "Exploring the universe.",
            "meta[property='og:image']": "https://cdn.example/nasa.jpg",
        }
    )
    assert asyncio.run(extract_dom_meta(page)) == {
        "username": "nasa",
        "full_name": "NASA",
        "biography": "Exploring the universe.",
        "profile_pic_url": "https://cdn.example/nasa.jpg",
        "profile_pic_url_hd": "https://cdn.example/nasa.jpg",
    }


def test_extract_dom_meta_falls_back_to_title() -> None:
    page = PageStub(title="Jane Doe (@jane.doe) • Instagram photos and videos")
    assert asyncio.run(extract_dom_meta(page)) == {"username": "jane.doe", "full_name": "Jane Doe"}


def test_extract_dom_meta_returns_none_without_username() -> None:
    page = PageStub(
        title="Instagram",
        meta={"meta[property='og:description']": "Create an account or log in."},
    )
    assert asyncio.run(extract_dom_meta(page)) is None
