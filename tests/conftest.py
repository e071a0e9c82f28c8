from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from kinsync.adapters.sqlalchemy import start_mappers
from kinsync.adapters.sqlalchemy.migrations import upgrade_head
from kinsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    shutdown,
    startup,
)
from kinsync.config import PROVIDER_DEFAULTS, DiscoveryConfig, ProviderSettings
from tests.helpers.genealogy import FakeStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyReconciliationUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyReconciliationUnitOfWork:
        return SqlAlchemyReconciliationUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def discovery_config() -> DiscoveryConfig:
    """Provider defaults without delays so traversals run instantly."""

    return DiscoveryConfig(
        providers={
            provider: ProviderSettings(
                rate_limit_ms=0,
                max_generation_depth=settings.max_generation_depth,
            )
            for provider, settings in PROVIDER_DEFAULTS.items()
        }
    )
