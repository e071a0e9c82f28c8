"""WikiTree API configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from kinsync.domain.model import Provider

from .http_resilience import ProviderHttpConfig, RateLimit, ResponseCache

DEFAULT_WIKITREE_BASE_URL = "https://api.wikitree.com"
WIKITREE_API_PATH = "api.php"
DEFAULT_WIKITREE_APP_ID = "kinsync"
WIKITREE_PROFILE_URL = "https://www.wikitree.com/wiki/{key}"
WIKITREE_RATE_LIMIT: Final[RateLimit] = RateLimit(max_calls=1, per_seconds=1.0)


def should_cache_profile(payload: object) -> bool:
    """Cache only answers that carried a profile; errors and private profiles are refetched."""

    if isinstance(payload, list) and payload:
        payload = payload[0]
    if not isinstance(payload, dict):
        return False
    return payload.get("status") in (0, "0") and payload.get("profile") is not None


PROFILE_CACHE: Final[ResponseCache] = ResponseCache(should_cache=should_cache_profile)


@dataclass(frozen=True, slots=True)
class WikiTreeConfig:
    app_id: str
    http: ProviderHttpConfig


def get_wikitree_config(*, cache: ResponseCache | None = PROFILE_CACHE) -> WikiTreeConfig:
    """``WIKITREE_APP_ID`` identifies kinsync to the API; pass ``cache=None`` to disable caching."""

    app_id = os.getenv("WIKITREE_APP_ID") or DEFAULT_WIKITREE_APP_ID
    http = ProviderHttpConfig(
        provider=Provider.WIKITREE,
        base_url=DEFAULT_WIKITREE_BASE_URL,
        user_agent=f"{app_id} (kinsync)",
        ratelimit=WIKITREE_RATE_LIMIT,
        cache=cache,
    )
    return WikiTreeConfig(app_id=app_id, http=http)
