"""Breadth-first ancestor discovery.

The worker walks parent links generation by generation. The frontier is FIFO
and seeded with one root (ancestor discovery) or with every child that has a
parent linkage gap (bulk discovery). Each person is visited at most once per
traversal; after a visit, parents that are linked to the provider (now or
before) are queued one generation further out.

Between persons the worker waits the provider's rate-limit delay. Cancellation
is checked before every person and again after each delay, so a fetch already
in flight always completes but no new one starts. Per-person failures become
``error`` events; authentication or storage failures fail the job.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from kinsync.domain.errors import (
    IdentityConflictError,
    NotFoundError,
    ProviderAuthError,
    ProviderFetchError,
)

from .jobs import DiscoveryEvent, DiscoverySummary, EventType, JobStatus

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from kinsync.config.providers import ProviderSettings
    from kinsync.domain.model import Provider
    from kinsync.domain.ports import ReconciliationRepositories, UnitOfWorkFactory

    from .jobs import DiscoveryJob
    from .parents import ParentDiscovery

log = getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]
type Clock = Callable[[], float]

_PER_PERSON_ERRORS = (ProviderFetchError, IdentityConflictError, NotFoundError)


@dataclass(slots=True)
class _Progress:
    discovered: int = 0
    possible: int = 0
    errors: int = 0
    visited: int = 0
    generation: int = 0
    deepest: int = -1


def find_linkage_gaps(repositories: ReconciliationRepositories, provider: Provider) -> list[UUID]:
    """Children linked to ``provider`` with at least one parent that is not."""

    children: dict[UUID, None] = {}
    identities = repositories.identities
    for edge in repositories.relationships.all_parent_edges():
        child_id = edge.subject_id
        if child_id in children:
            continue
        if identities.active_for(child_id, provider) is None:
            continue
        if identities.active_for(edge.object_id, provider) is None:
            children[child_id] = None
    return list(children)


class AncestorDiscovery:
    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        parent_discovery: ParentDiscovery,
        settings: ProviderSettings,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._parents = parent_discovery
        self._settings = settings
        self._sleep = sleep
        self._clock = clock
        self._jitter = jitter

    async def run(self, job: DiscoveryJob, seeds: Iterable[UUID]) -> DiscoverySummary:
        """Drive ``job`` to a terminal state and return its summary."""

        job.transition(JobStatus.RUNNING)
        progress = _Progress()
        log.info("Starting %s discovery job %s on %s", job.scope, job.job_id, job.provider)
        try:
            status, note = await self._traverse(job, seeds, progress)
        except ProviderAuthError as exc:
            log.error("Discovery job %s failed: %s", job.job_id, exc)
            status, note = JobStatus.FAILED, f"authentication failed: {exc}"
        except Exception as exc:
            log.exception("Discovery job %s failed", job.job_id)
            status, note = JobStatus.FAILED, f"failed: {exc}"
        return self._finish(job, progress, status, note)

    async def _traverse(
        self,
        job: DiscoveryJob,
        seeds: Iterable[UUID],
        progress: _Progress,
    ) -> tuple[JobStatus, str | None]:
        provider = job.provider
        token = job.token
        frontier: deque[tuple[UUID, int]] = deque()
        seen: set[UUID] = set()
        for seed in seeds:
            if seed not in seen:
                seen.add(seed)
                frontier.append((seed, 0))

        started = self._clock()
        limit = self._settings.max_duration_seconds
        first = True
        while frontier:
            if token.cancelled:
                return JobStatus.CANCELLED, None
            if limit is not None and self._clock() - started >= limit:
                return JobStatus.COMPLETED, f"stopped after the {limit:g}s time limit"

            person_id, depth = frontier.popleft()
            if not first:
                await self._throttle()
                if token.cancelled:
                    return JobStatus.CANCELLED, None
            first = False

            progress.visited += 1
            progress.generation = depth
            progress.deepest = max(progress.deepest, depth)
            name = self._person_name(person_id)
            try:
                result = await self._parents.discover(person_id, provider)
            except _PER_PERSON_ERRORS as exc:
                progress.errors += 1
                log.warning(
                    "Skipping %s (%s) during job %s: %s", name, person_id, job.job_id, exc
                )
                self._publish(job, progress, EventType.ERROR, name, str(exc))
                continue

            progress.discovered += len(result.discovered)
            progress.possible += len(result.discovered) + result.unresolved
            self._publish(job, progress, EventType.PROGRESS, name, result.error)

            if depth + 1 >= self._settings.max_generation_depth:
                continue
            for parent_id in self._linked_parents(person_id, provider):
                if parent_id not in seen:
                    seen.add(parent_id)
                    frontier.append((parent_id, depth + 1))

        return JobStatus.COMPLETED, None

    async def _throttle(self) -> None:
        settings = self._settings
        delay_ms = settings.rate_limit_ms + self._jitter() * settings.rate_limit_jitter_ms
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    def _person_name(self, person_id: UUID) -> str | None:
        with self._uow_factory() as uow:
            person = uow.repositories.persons.get(person_id)
            return person.name if person is not None else None

    def _linked_parents(self, person_id: UUID, provider: Provider) -> list[UUID]:
        with self._uow_factory() as uow:
            repositories = uow.repositories
            return [
                edge.object_id
                for edge in repositories.relationships.parents_of(person_id)
                if repositories.identities.active_for(edge.object_id, provider) is not None
            ]

    def _publish(
        self,
        job: DiscoveryJob,
        progress: _Progress,
        event_type: EventType,
        name: str | None,
        message: str | None,
    ) -> None:
        job.channel.publish(
            DiscoveryEvent(
                type=event_type,
                job_id=job.job_id,
                provider=job.provider,
                discovered_count=progress.discovered,
                generation=progress.generation,
                current_person_name=name,
                message=message,
                error_count=progress.errors,
            )
        )

    def _finish(
        self,
        job: DiscoveryJob,
        progress: _Progress,
        status: JobStatus,
        note: str | None,
    ) -> DiscoverySummary:
        message = (
            f"discovered {progress.discovered} of {progress.possible} possible links; "
            f"{progress.errors} skipped due to fetch errors"
        )
        if status is JobStatus.CANCELLED:
            message = f"cancelled; {message}"
        if note:
            message = f"{message} ({note})"
        summary = DiscoverySummary(
            total_discovered=progress.discovered,
            generations_traversed=progress.deepest + 1,
            persons_visited=progress.visited,
            possible_links=progress.possible,
            skipped_due_to_errors=progress.errors,
            status=status,
            message=message,
        )
        job.transition(status)
        job.summary = summary
        event_type = {
            JobStatus.COMPLETED: EventType.COMPLETED,
            JobStatus.CANCELLED: EventType.CANCELLED,
        }.get(status, EventType.ERROR)
        job.channel.publish(
            DiscoveryEvent(
                type=event_type,
                job_id=job.job_id,
                provider=job.provider,
                discovered_count=progress.discovered,
                generation=progress.generation,
                message=message,
                error_count=progress.errors,
                summary=summary,
            )
        )
        log.info("Discovery job %s %s: %s", job.job_id, status, message)
        return summary
