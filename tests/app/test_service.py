from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from kinsync.adapters.sqlalchemy.unit_of_work import shutdown
from kinsync.app import ReconciliationService, build_service
from kinsync.domain.discovery import DiscoveryScope, EventType, JobStatus
from kinsync.domain.errors import DiscoveryInProgressError, NotFoundError, NotLinkedError
from kinsync.domain.model import ComparisonStatus, ParentRole, Person, Provider, new_id
from tests.helpers.genealogy import (
    FakeDriver,
    FakeStore,
    FakeUnitOfWork,
    RecordingSleep,
    make_record,
    parent_ref,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from kinsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyReconciliationUnitOfWork
    from kinsync.config import DiscoveryConfig
    from kinsync.domain.discovery import DiscoveryEvent, DiscoverySummary
    from kinsync.domain.ports import UnitOfWorkFactory


def _service(
    unit_of_work_factory: UnitOfWorkFactory,
    driver: FakeDriver,
    config: DiscoveryConfig,
) -> ReconciliationService:
    return ReconciliationService(
        unit_of_work_factory=unit_of_work_factory,
        drivers={driver.provider: driver},
        config=config,
        sleep=RecordingSleep(),
    )


def _driver() -> FakeDriver:
    return FakeDriver(
        records={
            "Smith-1": make_record(
                "Smith-1",
                {"name": "John Smith", "birth_date": "1847", "alternate_names": ("Jack",)},
            )
        },
        parents={
            "Smith-1": [
                parent_ref(ParentRole.FATHER, "Smith-2", "James Smith"),
                parent_ref(ParentRole.MOTHER, "Jones-3", "Mary Jones"),
            ],
        },
    )


def _family(store: FakeStore) -> Person:
    child = store.add_person("John Smith", birth_date="12 Mar 1847")
    store.add_parent(child, store.add_person("James Smith"), ParentRole.FATHER)
    store.add_parent(child, store.add_person("Mary Jones"), ParentRole.MOTHER)
    store.link(child, "Smith-1")
    return child


async def _run_to_end(
    service: ReconciliationService, job_id: str
) -> tuple[DiscoverySummary, list[DiscoveryEvent]]:
    summary = await service.wait_for(job_id)
    events = [event async for event in service.events(job_id)]
    return summary, events


def test_ancestor_discovery_job_publishes_and_retires(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    service = _service(store.unit_of_work, _driver(), discovery_config)

    async def scenario() -> tuple[DiscoverySummary, list[DiscoveryEvent]]:
        job_id = service.start_ancestor_discovery(child.id, Provider.WIKITREE)
        assert service.jobs.get(job_id).scope is DiscoveryScope.ANCESTORS
        return await _run_to_end(service, job_id)

    summary, events = asyncio.run(scenario())

    assert summary.status is JobStatus.COMPLETED
    assert summary.total_discovered == 2
    assert events[-1].type is EventType.COMPLETED
    assert events[-1].summary == summary
    assert not service.jobs.active_jobs()
    assert set(store.active_identities()) == {"Smith-1", "Smith-2", "Jones-3"}


def test_one_discovery_per_provider_and_cancellation(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    driver = _driver()
    service = _service(store.unit_of_work, driver, discovery_config)

    async def scenario() -> DiscoverySummary:
        job_id = service.start_ancestor_discovery(child.id, Provider.WIKITREE)
        with pytest.raises(DiscoveryInProgressError):
            service.start_bulk_discovery(Provider.WIKITREE)
        assert service.cancel_discovery(job_id)
        return await service.wait_for(job_id)

    summary = asyncio.run(scenario())

    assert summary.status is JobStatus.CANCELLED
    assert driver.extract_calls == []
    assert service.cancel_discovery("missing") is False


def test_finished_job_can_still_be_read(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    service = _service(store.unit_of_work, _driver(), discovery_config)

    async def scenario() -> tuple[str, DiscoverySummary]:
        job_id = service.start_ancestor_discovery(child.id, Provider.WIKITREE)
        return job_id, await service.wait_for(job_id)

    job_id, summary = asyncio.run(scenario())

    job = service.jobs.get(job_id)
    job.task = None
    assert asyncio.run(service.wait_for(job_id)) == summary
    replay = asyncio.run(_run_to_end(service, job_id))[1]
    assert [event.type for event in replay][-1] is EventType.COMPLETED


def test_discover_parents_links_matching_parents(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    driver = _driver()
    service = _service(store.unit_of_work, driver, discovery_config)

    result = asyncio.run(service.discover_parents(child.id, Provider.WIKITREE))
    again = asyncio.run(service.discover_parents(child.id, Provider.WIKITREE, refresh=True))

    assert result.error is None
    assert sorted(parent.external_id for parent in result.discovered) == ["Jones-3", "Smith-2"]
    assert again.discovered == []
    assert again.unresolved == 0
    assert driver.extract_calls == ["Smith-1"]


def test_ancestor_discovery_needs_a_linked_person(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    unlinked = store.add_person("Ruth Brown")
    service = _service(store.unit_of_work, _driver(), discovery_config)

    with pytest.raises(NotLinkedError, match="person has no wikitree external id"):
        service.start_ancestor_discovery(unlinked.id, Provider.WIKITREE)
    with pytest.raises(NotFoundError):
        service.start_ancestor_discovery(new_id(), Provider.WIKITREE)
    assert not service.jobs.active_jobs()


def test_bulk_discovery_starts_from_linkage_gaps(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    cousin = store.add_person("Alice Brown")
    walter = store.add_person("Walter Brown")
    store.add_parent(cousin, walter, ParentRole.FATHER)
    store.link(cousin, "Brown-1")
    driver = _driver()
    driver.parents["Brown-1"] = [parent_ref(ParentRole.FATHER, "Brown-2", "Walter Brown")]
    service = _service(store.unit_of_work, driver, discovery_config)

    async def scenario() -> DiscoverySummary:
        job_id = service.start_bulk_discovery(Provider.WIKITREE)
        assert service.jobs.get(job_id).scope is DiscoveryScope.BULK
        return await service.wait_for(job_id)

    summary = asyncio.run(scenario())

    assert summary.total_discovered == 3
    assert sorted(driver.extract_calls) == ["Brown-1", "Smith-1"]
    assert store.active_identities()["Brown-2"] == walter.id
    assert store.active_identities()["Smith-1"] == child.id


def test_failed_bulk_start_leaves_provider_free(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    _family(store)
    driver = _driver()
    calls: list[int] = []

    def unit_of_work() -> FakeUnitOfWork:
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return store.unit_of_work()

    service = _service(unit_of_work, driver, discovery_config)

    with pytest.raises(RuntimeError, match="database unavailable"):
        service.start_bulk_discovery(Provider.WIKITREE)
    assert service.jobs.active_jobs() == []

    async def scenario() -> DiscoverySummary:
        return await service.wait_for(service.start_bulk_discovery(Provider.WIKITREE))

    summary = asyncio.run(scenario())

    assert summary.status is JobStatus.COMPLETED
    assert driver.extract_calls == ["Smith-1"]


def test_refresh_provider_reports_differences(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    service = _service(store.unit_of_work, _driver(), discovery_config)

    summary = asyncio.run(service.refresh_provider(child.id, Provider.WIKITREE))

    assert summary.external_id == "Smith-1"
    assert summary.field_count == 3
    assert summary.differences == 1
    assert summary.source_url == "https://example.org/Smith-1"
    birth = next(
        result
        for result in service.comparison(child.id, providers=(Provider.WIKITREE,))
        if result.field_name == "birth_date"
    )
    assert birth.providers[Provider.WIKITREE].status is ComparisonStatus.DIFFERENT


def test_applying_provider_value_resolves_difference(
    store: FakeStore, discovery_config: DiscoveryConfig
) -> None:
    child = _family(store)
    service = _service(store.unit_of_work, _driver(), discovery_config)
    asyncio.run(service.refresh_provider(child.id, Provider.WIKITREE))

    service.apply_provider_value(child.id, "birth_date", Provider.WIKITREE)
    service.apply_provider_value(child.id, "alternate_names", Provider.WIKITREE)

    results = {result.field_name: result for result in service.comparison(child.id)}
    assert not results["birth_date"].has_differences
    assert [override.override_value for override in service.list_overrides(child.id)] == ["1847"]
    assert [claim.value for claim in service.list_claims(child.id, "alias")] == ["Jack"]


@pytest.fixture
def sqlite_service(
    sqlite_unit_of_work: Callable[[], SqlAlchemyReconciliationUnitOfWork],
    discovery_config: DiscoveryConfig,
) -> tuple[ReconciliationService, FakeDriver]:
    driver = _driver()
    return _service(sqlite_unit_of_work, driver, discovery_config), driver


def test_discovery_against_sqlite(
    sqlite_unit_of_work: Callable[[], SqlAlchemyReconciliationUnitOfWork],
    sqlite_service: tuple[ReconciliationService, FakeDriver],
) -> None:
    service, _ = sqlite_service
    seeded = FakeStore()
    child = _family(seeded)
    with sqlite_unit_of_work() as uow:
        for person in seeded.persons.values():
            uow.repositories.persons.add(person)
        uow.session.flush()
        for event in seeded.vital_events:
            uow.repositories.vital_events.add(event)
        for edge in seeded.edges:
            uow.repositories.relationships.add(edge)
        for identity in seeded.identities:
            uow.repositories.identities.add(identity)
        uow.commit()

    async def scenario() -> DiscoverySummary:
        job_id = service.start_ancestor_discovery(child.id, Provider.WIKITREE)
        return await service.wait_for(job_id)

    summary = asyncio.run(scenario())

    assert summary.total_discovered == 2
    with sqlite_unit_of_work() as uow:
        linked = uow.repositories.identities.list_active(Provider.WIKITREE)
        assert {identity.external_id for identity in linked} == {"Smith-1", "Smith-2", "Jones-3"}
        snapshot = uow.repositories.provider_records.latest(Provider.WIKITREE, "Smith-1")
        assert snapshot is not None
        assert snapshot.parent_references is not None
        assert len(snapshot.parent_references) == 2


@pytest.fixture
def fresh_adapter() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


@pytest.mark.usefixtures("fresh_adapter")
def test_build_service_starts_the_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KINSYNC_WIKITREE_RATE_LIMIT_MS", "0")
    driver = FakeDriver()

    service = build_service(
        database_uri="sqlite+pysqlite:///:memory:", drivers={driver.provider: driver}
    )

    assert service.cache.driver(Provider.WIKITREE) is driver
    with pytest.raises(NotFoundError):
        service.comparison(new_id())
