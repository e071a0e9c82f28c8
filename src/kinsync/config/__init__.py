"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_float, optional_env_int, require_env_vars
from .errors import ConfigurationError, InvalidProviderSettingsError, MissingConfigurationError
from .http_resilience import ProviderHttpConfig, RateLimit, ResponseCache, RetryPolicy
from .logging import configure_logging
from .providers import (
    PROVIDER_DEFAULTS,
    DiscoveryConfig,
    ProviderSettings,
    get_discovery_config,
)
from .storage import StorageConfig, get_database_uri, get_storage_config
from .wikitree import WikiTreeConfig, get_wikitree_config

__all__ = [
    "PROVIDER_DEFAULTS",
    "ConfigurationError",
    "DiscoveryConfig",
    "InvalidProviderSettingsError",
    "MissingConfigurationError",
    "ProviderHttpConfig",
    "ProviderSettings",
    "RateLimit",
    "ResponseCache",
    "RetryPolicy",
    "StorageConfig",
    "WikiTreeConfig",
    "configure_logging",
    "get_database_uri",
    "get_discovery_config",
    "get_storage_config",
    "get_wikitree_config",
    "optional_env_float",
    "optional_env_int",
    "require_env_vars",
]
