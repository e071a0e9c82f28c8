"""Per-provider discovery settings.

Every supported provider has an entry; the map is validated once when the
service is built so a bad value fails at startup instead of mid-traversal.
Environment overrides follow ``KINSYNC_<PROVIDER>_<SETTING>`` with the provider
name upper-cased (``KINSYNC_FAMILYSEARCH_RATE_LIMIT_MS``; 23andMe uses
``KINSYNC_23ANDME_...``).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from kinsync.domain.model import Provider

from .env import optional_env_float, optional_env_int
from .errors import InvalidProviderSettingsError

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_MAX_GENERATION_DEPTH: Final[int] = 50
DEFAULT_NAME_MATCH_THRESHOLD: Final[float] = 0.8


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    rate_limit_ms: int
    rate_limit_jitter_ms: int = 0
    max_generation_depth: int = DEFAULT_MAX_GENERATION_DEPTH
    max_duration_seconds: float | None = None

    def validate(self, provider: Provider) -> None:
        if self.rate_limit_ms < 0:
            raise InvalidProviderSettingsError(f"{provider}: rate_limit_ms must be >= 0")
        if self.rate_limit_jitter_ms < 0:
            raise InvalidProviderSettingsError(f"{provider}: rate_limit_jitter_ms must be >= 0")
        if self.max_generation_depth < 1:
            raise InvalidProviderSettingsError(f"{provider}: max_generation_depth must be >= 1")
        if self.max_duration_seconds is not None and self.max_duration_seconds <= 0:
            raise InvalidProviderSettingsError(f"{provider}: max_duration_seconds must be > 0")


PROVIDER_DEFAULTS: Final[Mapping[Provider, ProviderSettings]] = MappingProxyType(
    {
        Provider.FAMILYSEARCH: ProviderSettings(rate_limit_ms=500, rate_limit_jitter_ms=1000),
        Provider.ANCESTRY: ProviderSettings(rate_limit_ms=1000, rate_limit_jitter_ms=2000),
        Provider.TWENTYTHREE_AND_ME: ProviderSettings(
            rate_limit_ms=1000, rate_limit_jitter_ms=2000
        ),
        Provider.WIKITREE: ProviderSettings(rate_limit_ms=500, rate_limit_jitter_ms=1000),
    }
)


@dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    providers: Mapping[Provider, ProviderSettings]
    name_match_threshold: float = DEFAULT_NAME_MATCH_THRESHOLD

    def __post_init__(self) -> None:
        missing = [provider for provider in Provider if provider not in self.providers]
        if missing:
            names = ", ".join(sorted(missing))
            raise InvalidProviderSettingsError(f"Missing provider settings for: {names}")
        for provider, settings in self.providers.items():
            settings.validate(provider)
        if not 0.0 < self.name_match_threshold <= 1.0:
            raise InvalidProviderSettingsError("name_match_threshold must be in (0, 1]")

    def settings_for(self, provider: Provider) -> ProviderSettings:
        return self.providers[provider]


def _env_prefix(provider: Provider) -> str:
    return f"KINSYNC_{provider.value.upper()}"


def get_discovery_config() -> DiscoveryConfig:
    providers: dict[Provider, ProviderSettings] = {}
    for provider, defaults in PROVIDER_DEFAULTS.items():
        prefix = _env_prefix(provider)
        settings = defaults
        rate_limit = optional_env_int(f"{prefix}_RATE_LIMIT_MS")
        if rate_limit is not None:
            settings = replace(settings, rate_limit_ms=rate_limit)
        jitter = optional_env_int(f"{prefix}_RATE_LIMIT_JITTER_MS")
        if jitter is not None:
            settings = replace(settings, rate_limit_jitter_ms=jitter)
        generations = optional_env_int(f"{prefix}_MAX_GENERATIONS")
        if generations is not None:
            settings = replace(settings, max_generation_depth=generations)
        duration = optional_env_float(f"{prefix}_MAX_DURATION_SECONDS")
        if duration is not None:
            settings = replace(settings, max_duration_seconds=duration)
        providers[provider] = settings

    threshold = optional_env_float("KINSYNC_NAME_MATCH_THRESHOLD")
    return DiscoveryConfig(
        providers=MappingProxyType(providers),
        name_match_threshold=threshold if threshold is not None else DEFAULT_NAME_MATCH_THRESHOLD,
    )
