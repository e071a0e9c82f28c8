"""HTTP settings for provider drivers.

Provider lookups are idempotent GETs. They are retried on transient failures,
throttled per provider, and cached only when the provider answered with a
readable record.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Literal

import httpx

if TYPE_CHECKING:
    from kinsync.domain.model import Provider

type CachePredicate = Callable[[object], bool]

TRANSIENT_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS: Final[tuple[type[httpx.HTTPError], ...]] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = 3
    backoff_factor: float = 0.5
    max_backoff_seconds: float = 30.0
    jitter: float = 1.0


@dataclass(frozen=True, slots=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(frozen=True, slots=True)
class ResponseCache:
    """``should_cache`` receives the decoded JSON answer; undecodable bodies are never kept."""

    backend: Literal["sqlite", "memory"] = "memory"
    sqlite_path: str | None = None
    ttl_seconds: float | None = None
    should_cache: CachePredicate | None = None


@dataclass(frozen=True, slots=True)
class ProviderHttpConfig:
    provider: Provider
    base_url: str
    user_agent: str
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: ResponseCache | None = None
