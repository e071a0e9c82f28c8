"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from kinsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    is_started,
    startup,
)
from kinsync.adapters.wikitree import WikiTreeClient, WikiTreeDriver
from kinsync.config import configure_logging, get_discovery_config, get_wikitree_config
from kinsync.domain.cache import ProviderCache
from kinsync.domain.comparison import DEFAULT_SCHEMA, compare_person, load_person_view
from kinsync.domain.discovery import (
    AncestorDiscovery,
    DiscoveryJobRegistry,
    DiscoveryScope,
    ParentDiscovery,
    find_linkage_gaps,
)
from kinsync.domain.errors import NotFoundError, NotLinkedError
from kinsync.domain.identity import IdentityResolver
from kinsync.domain.model import Provider
from kinsync.domain.overrides import OverrideService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable, Mapping
    from datetime import datetime
    from uuid import UUID

    from kinsync.config import DiscoveryConfig
    from kinsync.domain.comparison import ComparisonResult, ComparisonSchema
    from kinsync.domain.discovery import (
        DiscoverParentsResult,
        DiscoveryEvent,
        DiscoveryJob,
        DiscoverySummary,
    )
    from kinsync.domain.model import Claim, Override, ParentRole, RelationshipEdge
    from kinsync.domain.overrides import AppliedValue
    from kinsync.domain.ports import ProviderDriver, UnitOfWorkFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderRecordSummary:
    provider: Provider
    person_id: UUID
    external_id: str
    fetched_at: datetime
    source_url: str | None
    field_count: int
    differences: int


class ReconciliationService:
    """Facade over comparison, provider refresh, discovery and user corrections.

    ``start_*_discovery`` schedule worker tasks on the running event loop and
    must be called from inside it.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        drivers: Mapping[Provider, ProviderDriver],
        config: DiscoveryConfig,
        schema: ComparisonSchema = DEFAULT_SCHEMA,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._config = config
        self._schema = schema
        self._sleep = sleep
        self._clock = clock
        self.jobs = DiscoveryJobRegistry()
        self.cache = ProviderCache(unit_of_work_factory=unit_of_work_factory, drivers=drivers)
        self.overrides = OverrideService(unit_of_work_factory=unit_of_work_factory, schema=schema)
        self.parents = ParentDiscovery(
            unit_of_work_factory=unit_of_work_factory,
            cache=self.cache,
            name_match_threshold=config.name_match_threshold,
        )

    # Comparison --------------------------------------------------------------

    def comparison(
        self,
        person_id: UUID,
        *,
        providers: Iterable[Provider] = tuple(Provider),
    ) -> list[ComparisonResult]:
        provider_list = tuple(providers)
        with self._uow_factory() as uow:
            view = load_person_view(uow.repositories, person_id, providers=provider_list)
        return compare_person(view, schema=self._schema, providers=provider_list)

    async def refresh_provider(self, person_id: UUID, provider: Provider) -> ProviderRecordSummary:
        """Fetch the provider's current record and report how it compares."""

        record = await self.cache.refresh(person_id, provider)
        results = self.comparison(person_id, providers=(provider,))
        differences = sum(1 for result in results if result.has_differences)
        return ProviderRecordSummary(
            provider=provider,
            person_id=person_id,
            external_id=record.external_id,
            fetched_at=record.fetched_at,
            source_url=record.source_url,
            field_count=len(record.fields),
            differences=differences,
        )

    # Discovery ---------------------------------------------------------------

    async def discover_parents(
        self,
        person_id: UUID,
        provider: Provider,
        *,
        refresh: bool = False,
    ) -> DiscoverParentsResult:
        return await self.parents.discover(person_id, provider, refresh=refresh)

    def start_ancestor_discovery(self, person_id: UUID, provider: Provider) -> str:
        with self._uow_factory() as uow:
            repositories = uow.repositories
            if repositories.persons.get(person_id) is None:
                raise NotFoundError(f"person {person_id} not found")
            if IdentityResolver(repositories.identities).resolve(person_id, provider) is None:
                raise NotLinkedError(person_id, provider)
        job = self.jobs.create(provider, DiscoveryScope.ANCESTORS, root_person_id=person_id)
        return self._launch(job, [person_id])

    def start_bulk_discovery(self, provider: Provider) -> str:
        """Walk upwards from every child whose parents are not all linked yet."""

        with self._uow_factory() as uow:
            seeds = find_linkage_gaps(uow.repositories, provider)
        job = self.jobs.create(provider, DiscoveryScope.BULK)
        log.info("Bulk %s discovery seeded with %d children", provider, len(seeds))
        return self._launch(job, seeds)

    def events(self, job_id: str) -> AsyncIterator[DiscoveryEvent]:
        return self.jobs.get(job_id).events()

    def cancel_discovery(self, job_id: str) -> bool:
        return self.jobs.cancel(job_id)

    async def wait_for(self, job_id: str) -> DiscoverySummary:
        job = self.jobs.get(job_id)
        if job.task is not None:
            return await job.task
        if job.summary is None:
            raise NotFoundError(f"discovery job {job_id} has no result")
        return job.summary

    def _launch(self, job: DiscoveryJob, seeds: list[UUID]) -> str:
        worker = AncestorDiscovery(
            unit_of_work_factory=self._uow_factory,
            parent_discovery=self.parents,
            settings=self._config.settings_for(job.provider),
            sleep=self._sleep,
            clock=self._clock,
        )
        job.task = asyncio.create_task(worker.run(job, seeds), name=f"discovery-{job.job_id}")
        job.task.add_done_callback(lambda _task: self._retire(job))
        return job.job_id

    def _retire(self, job: DiscoveryJob) -> None:
        if job.status.terminal:
            self.jobs.retire(job)
        else:
            log.warning("Discovery job %s stopped while %s", job.job_id, job.status)

    # User corrections --------------------------------------------------------

    def apply_provider_value(
        self, person_id: UUID, field_name: str, provider: Provider
    ) -> AppliedValue:
        return self.overrides.apply_provider_value(person_id, field_name, provider)

    def apply_provider_parent(
        self, person_id: UUID, role: ParentRole, provider: Provider
    ) -> RelationshipEdge:
        return self.overrides.apply_provider_parent(person_id, role, provider)

    def set_override(
        self,
        person_id: UUID,
        field_name: str,
        value: str | None,
        *,
        reason: str | None = None,
    ) -> Override:
        return self.overrides.set_override(person_id, field_name, value, reason=reason)

    def remove_override(self, person_id: UUID, field_name: str) -> bool:
        return self.overrides.remove_override(person_id, field_name)

    def list_overrides(self, person_id: UUID) -> list[Override]:
        return self.overrides.list_overrides(person_id)

    def add_claim(self, person_id: UUID, predicate: str, value: str) -> Claim:
        return self.overrides.add_claim(person_id, predicate, value)

    def delete_claim(self, claim_id: UUID) -> None:
        self.overrides.delete_claim(claim_id)

    def list_claims(self, person_id: UUID, predicate: str | None = None) -> list[Claim]:
        return self.overrides.list_claims(person_id, predicate)

    def sync_provider_claims(self, person_id: UUID, provider: Provider) -> list[Claim]:
        return self.overrides.sync_provider_claims(person_id, provider)


def build_service(
    *,
    database_uri: str | None = None,
    drivers: Mapping[Provider, ProviderDriver] | None = None,
) -> ReconciliationService:
    """Build a service against the configured database and the WikiTree driver."""

    load_dotenv()
    configure_logging()
    config = get_discovery_config()
    if not is_started():
        startup(database_uri=database_uri)
    if drivers is None:
        wikitree = WikiTreeDriver(WikiTreeClient(config=get_wikitree_config()))
        drivers = {Provider.WIKITREE: wikitree}
    log.info("Built reconciliation service with drivers for %s", ", ".join(sorted(drivers)))
    return ReconciliationService(
        unit_of_work_factory=SqlAlchemyReconciliationUnitOfWork,
        drivers=drivers,
        config=config,
    )
