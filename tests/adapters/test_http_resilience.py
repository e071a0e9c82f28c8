from __future__ import annotations

import asyncio

import httpx
import pytest

from kinsync.adapters.http_resilience import (
    ProviderHttpClient,
    _cache_policy,  # type: ignore[reportPrivateUsage]
    _ReadableAnswerFilter,  # type: ignore[reportPrivateUsage]
    build_retry,
)
from kinsync.config.http_resilience import (
    ProviderHttpConfig,
    RateLimit,
    ResponseCache,
    RetryPolicy,
)
from kinsync.config.wikitree import (
    PROFILE_CACHE,
    WIKITREE_RATE_LIMIT,
    get_wikitree_config,
    should_cache_profile,
)
from kinsync.domain.model import Provider
from tests.helpers.wikitree import load_fixture


def test_retries_only_idempotent_lookups() -> None:
    retry = build_retry(RetryPolicy(attempts=5, backoff_factor=0.1))

    assert retry.total == 5
    assert retry.backoff_factor == 0.1
    assert "GET" in retry.allowed_methods
    assert "POST" not in retry.allowed_methods


def test_cache_policy_needs_a_predicate() -> None:
    assert _cache_policy(ResponseCache()) is None
    assert _cache_policy(PROFILE_CACHE) is not None


def test_only_readable_answers_are_cached() -> None:
    response_filter = _ReadableAnswerFilter(should_cache_profile)
    ok = b'[{"status": 0, "profile": {"Id": 1, "Name": "Smith-1"}}]'
    refused = b'[{"status": "Permission denied."}]'

    assert response_filter.apply(None, ok)  # type: ignore[arg-type]
    assert not response_filter.apply(None, refused)  # type: ignore[arg-type]
    assert not response_filter.apply(None, b"<html>maintenance</html>")  # type: ignore[arg-type]
    assert not response_filter.apply(None, None)  # type: ignore[arg-type]


def test_should_cache_profile_accepts_only_profile_answers() -> None:
    assert should_cache_profile(load_fixture("get_profile_smith_1.json"))
    assert not should_cache_profile([{"status": "Illegal WikiTree ID"}])
    assert not should_cache_profile("unexpected")


def test_wikitree_config_throttles_and_caches_profiles(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WIKITREE_APP_ID", "family-desk")

    config = get_wikitree_config()

    assert config.app_id == "family-desk"
    assert config.http.provider is Provider.WIKITREE
    assert config.http.user_agent == "family-desk (kinsync)"
    assert config.http.ratelimit == WIKITREE_RATE_LIMIT
    assert config.http.cache is PROFILE_CACHE
    assert get_wikitree_config(cache=None).http.cache is None


def test_rate_limited_client_sends_lookups() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    config = ProviderHttpConfig(
        provider=Provider.WIKITREE,
        base_url="https://example.org",
        user_agent="kinsync-tests",
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
    )

    async def scenario() -> list[int]:
        async with ProviderHttpClient(config) as client:
            client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
                base_url="https://example.org",
                transport=httpx.MockTransport(handler),
            )
            first = await client.get("api.php", params={"key": "Smith-1"})
            second = await client.get("api.php", params={"key": "Smith-2"})
            return [first.status_code, second.status_code]

    assert asyncio.run(scenario()) == [200, 200]
    assert [str(request.url) for request in seen] == [
        "https://example.org/api.php?key=Smith-1",
        "https://example.org/api.php?key=Smith-2",
    ]


def test_client_identifies_itself() -> None:
    config = ProviderHttpConfig(
        provider=Provider.WIKITREE,
        base_url="https://example.org",
        user_agent="kinsync-tests",
    )

    async def scenario() -> str | None:
        async with ProviderHttpClient(config) as client:
            http = client._client  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            return http.headers.get("User-Agent")

    assert asyncio.run(scenario()) == "kinsync-tests"
