from __future__ import annotations

import pytest

from kinsync.config import (
    PROVIDER_DEFAULTS,
    DiscoveryConfig,
    InvalidProviderSettingsError,
    ProviderSettings,
    get_discovery_config,
)
from kinsync.domain.model import Provider


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for provider in Provider:
        prefix = f"KINSYNC_{provider.value.upper()}"
        for suffix in (
            "RATE_LIMIT_MS",
            "RATE_LIMIT_JITTER_MS",
            "MAX_GENERATIONS",
            "MAX_DURATION_SECONDS",
        ):
            monkeypatch.delenv(f"{prefix}_{suffix}", raising=False)
    monkeypatch.delenv("KINSYNC_NAME_MATCH_THRESHOLD", raising=False)


def test_defaults_cover_every_provider() -> None:
    config = get_discovery_config()

    assert set(config.providers) == set(Provider)
    assert config.settings_for(Provider.FAMILYSEARCH).rate_limit_ms == 500
    assert config.settings_for(Provider.ANCESTRY).rate_limit_ms == 1000
    assert config.name_match_threshold == 0.8


def test_environment_overrides_one_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINSYNC_WIKITREE_RATE_LIMIT_MS", "250")
    monkeypatch.setenv("KINSYNC_WIKITREE_MAX_GENERATIONS", "4")
    monkeypatch.setenv("KINSYNC_23ANDME_MAX_DURATION_SECONDS", "90")

    config = get_discovery_config()

    wikitree = config.settings_for(Provider.WIKITREE)
    assert wikitree.rate_limit_ms == 250
    assert wikitree.max_generation_depth == 4
    defaults = PROVIDER_DEFAULTS[Provider.WIKITREE]
    assert wikitree.rate_limit_jitter_ms == defaults.rate_limit_jitter_ms
    assert config.settings_for(Provider.TWENTYTHREE_AND_ME).max_duration_seconds == 90.0
    assert config.settings_for(Provider.ANCESTRY) == PROVIDER_DEFAULTS[Provider.ANCESTRY]


def test_invalid_environment_value_fails_at_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINSYNC_ANCESTRY_MAX_GENERATIONS", "0")

    with pytest.raises(InvalidProviderSettingsError, match="max_generation_depth"):
        get_discovery_config()


def test_missing_provider_is_rejected() -> None:
    partial = {Provider.WIKITREE: ProviderSettings(rate_limit_ms=0)}

    with pytest.raises(InvalidProviderSettingsError, match="Missing provider settings"):
        DiscoveryConfig(providers=partial)


def test_negative_rate_limit_is_rejected() -> None:
    with pytest.raises(InvalidProviderSettingsError):
        ProviderSettings(rate_limit_ms=-1).validate(Provider.WIKITREE)


def test_threshold_must_be_a_fraction(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINSYNC_NAME_MATCH_THRESHOLD", "1.5")

    with pytest.raises(InvalidProviderSettingsError):
        get_discovery_config()
