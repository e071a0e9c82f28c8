"""Throttled, retrying and optionally caching GET client for provider APIs.

``httpx-retries`` retries transient failures, ``aiolimiter`` keeps lookups
under the provider's rate and ``hishel`` caches readable answers in memory or
SQLite. A driver keeps one client open so the limiter and the cache span all of
its lookups.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as CachedResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from kinsync.config.http_resilience import TRANSIENT_ERRORS, TRANSIENT_STATUSES
from kinsync.config.storage import get_storage_config

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from kinsync.config.http_resilience import (
        CachePredicate,
        ProviderHttpConfig,
        ResponseCache,
        RetryPolicy,
    )

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.attempts,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_seconds,
        backoff_jitter=policy.jitter,
        respect_retry_after_header=True,
        allowed_methods=("GET",),
        status_forcelist=tuple(sorted(TRANSIENT_STATUSES)),
        retry_on_exceptions=TRANSIENT_ERRORS,
    )


class ProviderHttpClient:
    def __init__(self, config: ProviderHttpConfig) -> None:
        self.config = config
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        self._client = _build_client(config)

    async def __aenter__(self) -> ProviderHttpClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, *, params: Mapping[str, str] | None = None) -> httpx.Response:
        if self._limiter is None:
            return await self._client.get(path, params=params)
        async with self._limiter:
            return await self._client.get(path, params=params)


def _build_client(config: ProviderHttpConfig) -> httpx.AsyncClient:
    transport = RetryTransport(retry=build_retry(config.retry))
    headers = {"User-Agent": config.user_agent}
    if config.cache is None:
        return httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers=headers,
            transport=transport,
        )
    log.debug("Caching %s responses in %s", config.provider, config.cache.backend)
    return AsyncCacheClient(
        base_url=config.base_url,
        timeout=config.timeout_seconds,
        headers=headers,
        transport=transport,
        storage=_cache_storage(config.cache),
        policy=_cache_policy(config.cache),
    )


class _ReadableAnswerFilter(BaseFilter[CachedResponse]):
    """Keep a response only when its JSON body passes the provider's predicate."""

    def __init__(self, predicate: CachePredicate) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: CachedResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if not body:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _cache_storage(cache: ResponseCache) -> AsyncSqliteStorage:
    if cache.backend == "memory":
        database_path = ":memory:"
    else:
        database_path = cache.sqlite_path or str(get_storage_config().http_cache_path)
    return AsyncSqliteStorage(database_path=database_path, default_ttl=cache.ttl_seconds)


def _cache_policy(cache: ResponseCache) -> FilterPolicy | None:
    if cache.should_cache is None:
        return None
    return FilterPolicy(response_filters=[_ReadableAnswerFilter(cache.should_cache)])
