"""Discovery jobs: state machine, event channel and registry.

A job moves ``pending -> running -> completed | cancelled | failed``. Each job
owns a cancellation token and an event channel; the worker publishes onto the
channel and any number of subscribers read from it, starting with a replay of
everything already published. The registry holds running jobs and admits at
most one per provider; finished jobs are retired so late subscribers can still
read their events.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final
from uuid import uuid4

from kinsync.domain.errors import DiscoveryInProgressError, InvalidJobTransitionError, NotFoundError
from kinsync.domain.model import utcnow

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime
    from uuid import UUID

    from kinsync.domain.model import Provider

log = getLogger(__name__)

RETIRED_JOBS_KEPT: Final[int] = 32


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL: Final[frozenset[JobStatus]] = frozenset(
    {JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED}
)

_TRANSITIONS: Final[dict[JobStatus, frozenset[JobStatus]]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED}),
}


class DiscoveryScope(StrEnum):
    ANCESTORS = "ancestors"
    BULK = "bulk"


class EventType(StrEnum):
    PROGRESS = "progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class DiscoverySummary:
    total_discovered: int
    generations_traversed: int
    persons_visited: int
    possible_links: int
    skipped_due_to_errors: int
    status: JobStatus
    message: str


@dataclass(frozen=True, slots=True)
class DiscoveryEvent:
    type: EventType
    job_id: str
    provider: Provider
    discovered_count: int
    generation: int
    current_person_name: str | None = None
    message: str | None = None
    error_count: int = 0
    summary: DiscoverySummary | None = None

    @property
    def terminal(self) -> bool:
        return self.summary is not None


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class EventChannel:
    """Fan-out of job events with replay for late subscribers."""

    def __init__(self) -> None:
        self._history: list[DiscoveryEvent] = []
        self._subscribers: list[asyncio.Queue[DiscoveryEvent | None]] = []
        self._closed = False

    @property
    def history(self) -> tuple[DiscoveryEvent, ...]:
        return tuple(self._history)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: DiscoveryEvent) -> None:
        if self._closed:
            raise RuntimeError("cannot publish on a closed event channel")
        self._history.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)
        if event.terminal:
            self._closed = True
            for queue in self._subscribers:
                queue.put_nowait(None)
            self._subscribers.clear()

    async def subscribe(self) -> AsyncIterator[DiscoveryEvent]:
        replay = list(self._history)
        queue: asyncio.Queue[DiscoveryEvent | None] | None = None
        if not self._closed:
            queue = asyncio.Queue()
            self._subscribers.append(queue)
        try:
            for event in replay:
                yield event
            if queue is None:
                return
            while (event := await queue.get()) is not None:
                yield event
        finally:
            if queue is not None and queue in self._subscribers:
                self._subscribers.remove(queue)


@dataclass(eq=False, kw_only=True)
class DiscoveryJob:
    provider: Provider
    scope: DiscoveryScope
    root_person_id: UUID | None = None
    job_id: str = field(default_factory=lambda: uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    token: CancellationToken = field(default_factory=CancellationToken)
    channel: EventChannel = field(default_factory=EventChannel)
    created_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    summary: DiscoverySummary | None = None
    task: asyncio.Task[DiscoverySummary] | None = None

    def transition(self, target: JobStatus) -> None:
        allowed = _TRANSITIONS.get(self.status, frozenset())
        if target not in allowed:
            raise InvalidJobTransitionError(
                f"job {self.job_id} cannot move from {self.status} to {target}"
            )
        log.debug("Job %s: %s -> %s", self.job_id, self.status, target)
        self.status = target
        if target.terminal:
            self.finished_at = utcnow()

    async def events(self) -> AsyncIterator[DiscoveryEvent]:
        async for event in self.channel.subscribe():
            yield event


class DiscoveryJobRegistry:
    """Job id -> job for one database."""

    def __init__(self, *, retired_jobs_kept: int = RETIRED_JOBS_KEPT) -> None:
        self._active: dict[str, DiscoveryJob] = {}
        self._retired: OrderedDict[str, DiscoveryJob] = OrderedDict()
        self._retired_jobs_kept = retired_jobs_kept

    def create(
        self,
        provider: Provider,
        scope: DiscoveryScope,
        *,
        root_person_id: UUID | None = None,
    ) -> DiscoveryJob:
        for job in self._active.values():
            if job.provider is provider:
                raise DiscoveryInProgressError(
                    f"{provider} discovery {job.job_id} is already {job.status}"
                )
        job = DiscoveryJob(provider=provider, scope=scope, root_person_id=root_person_id)
        self._active[job.job_id] = job
        log.info("Created %s discovery job %s for %s", scope, job.job_id, provider)
        return job

    def get(self, job_id: str) -> DiscoveryJob:
        job = self._active.get(job_id) or self._retired.get(job_id)
        if job is None:
            raise NotFoundError(f"discovery job {job_id} not found")
        return job

    def is_active(self, job_id: str) -> bool:
        return job_id in self._active

    def active_jobs(self) -> list[DiscoveryJob]:
        return list(self._active.values())

    def cancel(self, job_id: str) -> bool:
        """Request cancellation; ``False`` when the job is unknown or already finished."""

        job = self._active.get(job_id)
        if job is None:
            return False
        job.token.cancel()
        log.info("Cancellation requested for discovery job %s", job_id)
        return True

    def retire(self, job: DiscoveryJob) -> None:
        if not job.status.terminal:
            raise InvalidJobTransitionError(f"job {job.job_id} is still {job.status}")
        self._active.pop(job.job_id, None)
        self._retired[job.job_id] = job
        while len(self._retired) > self._retired_jobs_kept:
            self._retired.popitem(last=False)
