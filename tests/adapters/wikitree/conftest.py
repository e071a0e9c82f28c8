"""Shared fixtures for WikiTree adapter tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from kinsync.adapters.wikitree import WikiTreeClient, WikiTreeDriver
from kinsync.config.http_resilience import ProviderHttpConfig
from kinsync.config.wikitree import DEFAULT_WIKITREE_BASE_URL, WikiTreeConfig
from kinsync.domain.model import Provider
from tests.helpers.wikitree import WikiTreePayload, load_fixture, make_client_factory

if TYPE_CHECKING:
    from collections.abc import Callable

    from tests.helpers.wikitree import Handler


@pytest.fixture
def wikitree_config() -> WikiTreeConfig:
    return WikiTreeConfig(
        app_id="kinsync-tests",
        http=ProviderHttpConfig(
            provider=Provider.WIKITREE,
            base_url=DEFAULT_WIKITREE_BASE_URL,
            user_agent="kinsync-tests",
        ),
    )


@pytest.fixture
def smith_payload() -> WikiTreePayload:
    return load_fixture("get_profile_smith_1.json")


@pytest.fixture
def orphan_payload() -> WikiTreePayload:
    return load_fixture("get_profile_orphan.json")


@pytest.fixture
def make_client(wikitree_config: WikiTreeConfig) -> Callable[[Handler], WikiTreeClient]:
    def build(handler: Handler) -> WikiTreeClient:
        return WikiTreeClient(config=wikitree_config, client_factory=make_client_factory(handler))

    return build


@pytest.fixture
def make_driver(
    make_client: Callable[[Handler], WikiTreeClient],
) -> Callable[[Handler], WikiTreeDriver]:
    def build(handler: Handler) -> WikiTreeDriver:
        return WikiTreeDriver(make_client(handler))

    return build
