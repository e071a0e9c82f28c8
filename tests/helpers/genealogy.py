"""In-memory fakes and builders for reconciliation and discovery tests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from kinsync.domain.errors import (
    IdentityConflictError,
    ProviderNotFoundError,
    ProviderRedirectError,
)
from kinsync.domain.model import (
    Claim,
    DriverCapability,
    EntityType,
    ExternalIdentity,
    Override,
    ParentReference,
    ParentRole,
    Person,
    Provider,
    ProviderRecord,
    RelationshipEdge,
    RelationshipKind,
    VitalEvent,
    VitalEventType,
)
from kinsync.domain.ports import ReconciliationRepositories

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from types import TracebackType
    from uuid import UUID

    from kinsync.domain.model import FieldValue


@dataclass
class FakeStore:
    """Shared state behind every fake unit of work of one test."""

    persons: dict[UUID, Person] = field(default_factory=dict)
    vital_events: list[VitalEvent] = field(default_factory=list)
    edges: list[RelationshipEdge] = field(default_factory=list)
    identities: list[ExternalIdentity] = field(default_factory=list)
    records: list[ProviderRecord] = field(default_factory=list)
    overrides: list[Override] = field(default_factory=list)
    claims: list[Claim] = field(default_factory=list)
    commits: int = 0

    def unit_of_work(self) -> FakeUnitOfWork:
        return FakeUnitOfWork(self)

    # Builders ----------------------------------------------------------------

    def add_person(
        self,
        name: str,
        *,
        gender: str | None = None,
        birth_date: str | None = None,
        birth_place: str | None = None,
        death_date: str | None = None,
    ) -> Person:
        person = Person(name=name, gender=gender)
        self.persons[person.id] = person
        if birth_date or birth_place:
            self.vital_events.append(
                VitalEvent(
                    person_id=person.id,
                    event_type=VitalEventType.BIRTH,
                    date=birth_date,
                    place=birth_place,
                )
            )
        if death_date:
            self.vital_events.append(
                VitalEvent(person_id=person.id, event_type=VitalEventType.DEATH, date=death_date)
            )
        return person

    def add_parent(self, child: Person, parent: Person, role: ParentRole) -> RelationshipEdge:
        edge = RelationshipEdge.parent(child_id=child.id, parent_id=parent.id, role=role)
        self.edges.append(edge)
        return edge

    def link(
        self,
        person: Person,
        external_id: str,
        provider: Provider = Provider.WIKITREE,
    ) -> ExternalIdentity:
        identity = ExternalIdentity(person_id=person.id, provider=provider, external_id=external_id)
        self.identities.append(identity)
        return identity

    def add_record(
        self,
        external_id: str,
        fields: Mapping[str, FieldValue] | None = None,
        *,
        provider: Provider = Provider.WIKITREE,
        parents: Iterable[ParentReference] | None = None,
    ) -> ProviderRecord:
        record = make_record(external_id, fields, provider=provider, parents=parents)
        self.records.append(record)
        return record

    def active_identities(self, provider: Provider = Provider.WIKITREE) -> dict[str, UUID]:
        return {
            identity.external_id: identity.person_id
            for identity in self.identities
            if identity.provider is provider and identity.active
        }


def make_record(
    external_id: str,
    fields: Mapping[str, FieldValue] | None = None,
    *,
    provider: Provider = Provider.WIKITREE,
    parents: Iterable[ParentReference] | None = None,
) -> ProviderRecord:
    return ProviderRecord(
        provider=provider,
        external_id=external_id,
        fields=dict(fields or {}),
        parent_references=tuple(parents) if parents is not None else None,
        source_url=f"https://example.org/{external_id}",
    )


def parent_ref(role: ParentRole, external_id: str, display_name: str) -> ParentReference:
    return ParentReference(
        role=role,
        external_id=external_id,
        display_name=display_name,
        url=f"https://example.org/{external_id}",
    )


class FakePersonRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def add(self, entity: Person) -> None:
        self._store.persons[entity.id] = entity

    def get(self, person_id: UUID) -> Person | None:
        return self._store.persons.get(person_id)


class FakeVitalEventRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def add(self, entity: VitalEvent) -> None:
        self._store.vital_events.append(entity)

    def for_person(self, person_id: UUID) -> list[VitalEvent]:
        return [event for event in self._store.vital_events if event.person_id == person_id]


class FakeRelationshipRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def add(self, entity: RelationshipEdge) -> None:
        self._store.edges.append(entity)

    def parents_of(self, person_id: UUID) -> list[RelationshipEdge]:
        return [
            edge
            for edge in self._store.edges
            if edge.subject_id == person_id and edge.kind is RelationshipKind.PARENT
        ]

    def parent_edge(self, person_id: UUID, role: ParentRole) -> RelationshipEdge | None:
        for edge in self.parents_of(person_id):
            if edge.role is role:
                return edge
        return None

    def children_of(self, person_id: UUID) -> list[RelationshipEdge]:
        return [
            edge
            for edge in self._store.edges
            if edge.object_id == person_id and edge.kind is RelationshipKind.PARENT
        ]

    def all_parent_edges(self) -> list[RelationshipEdge]:
        return [edge for edge in self._store.edges if edge.kind is RelationshipKind.PARENT]

    def remove(self, edge: RelationshipEdge) -> None:
        self._store.edges.remove(edge)


class FakeExternalIdentityRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store
        self.flushes = 0

    def add(self, entity: ExternalIdentity) -> None:
        self._store.identities.append(entity)

    def active_for(self, person_id: UUID, provider: Provider) -> ExternalIdentity | None:
        for identity in self._store.identities:
            if identity.person_id == person_id and identity.provider is provider:
                if identity.active:
                    return identity
        return None

    def history(self, person_id: UUID, provider: Provider) -> list[ExternalIdentity]:
        matches = [
            identity
            for identity in self._store.identities
            if identity.person_id == person_id and identity.provider is provider
        ]
        return sorted(matches, key=lambda identity: identity.sequence)

    def find_active(self, provider: Provider, external_id: str) -> ExternalIdentity | None:
        for identity in self._store.identities:
            if identity.provider is provider and identity.external_id == external_id:
                if identity.active:
                    return identity
        return None

    def find_historical(self, provider: Provider, external_id: str) -> list[ExternalIdentity]:
        return [
            identity
            for identity in self._store.identities
            if identity.provider is provider
            and identity.external_id == external_id
            and not identity.active
        ]

    def list_active(self, provider: Provider) -> list[ExternalIdentity]:
        return [
            identity
            for identity in self._store.identities
            if identity.provider is provider and identity.active
        ]

    def flush(self) -> None:
        self.flushes += 1
        seen: dict[tuple[Provider, str], ExternalIdentity] = {}
        for identity in self._store.identities:
            if not identity.active:
                continue
            key = (identity.provider, identity.external_id)
            holder = seen.setdefault(key, identity)
            if holder is not identity:
                raise IdentityConflictError(
                    identity.provider,
                    identity.external_id,
                    existing_person_id=holder.person_id,
                    requested_person_id=identity.person_id,
                )


class FakeProviderRecordRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def append(self, record: ProviderRecord) -> None:
        self._store.records.append(record)

    def latest(self, provider: Provider, external_id: str) -> ProviderRecord | None:
        history = self.history(provider, external_id)
        return history[-1] if history else None

    def history(self, provider: Provider, external_id: str) -> list[ProviderRecord]:
        matches = [
            record
            for record in self._store.records
            if record.provider is provider and record.external_id == external_id
        ]
        return sorted(matches, key=lambda record: record.fetched_at)


class FakeOverrideRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def add(self, entity: Override) -> None:
        self._store.overrides.append(entity)

    def get(self, person_id: UUID, entity_type: EntityType, field_name: str) -> Override | None:
        for override in self._store.overrides:
            if (
                override.person_id == person_id
                and override.entity_type is entity_type
                and override.field_name == field_name
            ):
                return override
        return None

    def for_person(self, person_id: UUID) -> list[Override]:
        return [override for override in self._store.overrides if override.person_id == person_id]

    def remove(self, override: Override) -> None:
        self._store.overrides.remove(override)


class FakeClaimRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def add(self, entity: Claim) -> None:
        self._store.claims.append(entity)

    def get(self, claim_id: UUID) -> Claim | None:
        for claim in self._store.claims:
            if claim.id == claim_id:
                return claim
        return None

    def for_person(self, person_id: UUID, predicate: str | None = None) -> list[Claim]:
        return [
            claim
            for claim in self._store.claims
            if claim.person_id == person_id and (predicate is None or claim.predicate == predicate)
        ]

    def remove(self, claim: Claim) -> None:
        self._store.claims.remove(claim)


class FakeUnitOfWork:
    """Writes land in the store immediately; ``commit`` only counts."""

    def __init__(self, store: FakeStore) -> None:
        self._store = store
        self._repositories = ReconciliationRepositories(
            persons=FakePersonRepository(store),
            vital_events=FakeVitalEventRepository(store),
            relationships=FakeRelationshipRepository(store),
            identities=FakeExternalIdentityRepository(store),
            provider_records=FakeProviderRecordRepository(store),
            overrides=FakeOverrideRepository(store),
            claims=FakeClaimRepository(store),
        )
        self.committed = False
        self.rolled_back = False

    @property
    def repositories(self) -> ReconciliationRepositories:
        return self._repositories

    def __enter__(self) -> FakeUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.committed = True
        self._store.commits += 1

    def rollback(self) -> None:
        self.rolled_back = True


class FakeDriver:
    """Scriptable provider driver that records every call."""

    def __init__(
        self,
        provider: Provider = Provider.WIKITREE,
        *,
        records: Mapping[str, ProviderRecord] | None = None,
        parents: Mapping[str, Iterable[ParentReference]] | None = None,
        redirects: Mapping[str, str] | None = None,
        errors: Mapping[str, Exception] | None = None,
        parent_extraction: bool = True,
    ) -> None:
        self._provider = provider
        self.records: dict[str, ProviderRecord] = dict(records or {})
        self.parents: dict[str, list[ParentReference]] = {
            key: list(value) for key, value in (parents or {}).items()
        }
        self.redirects: dict[str, str] = dict(redirects or {})
        self.errors: dict[str, Exception] = dict(errors or {})
        self._capabilities = frozenset(
            {DriverCapability.FETCH_RECORD}
            | ({DriverCapability.PARENT_EXTRACTION} if parent_extraction else set())
        )
        self.fetch_calls: list[str] = []
        self.extract_calls: list[str] = []
        self.on_extract: Callable[[str], None] | None = None

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def capabilities(self) -> frozenset[DriverCapability]:
        return self._capabilities

    async def fetch_record(self, external_id: str) -> ProviderRecord:
        self.fetch_calls.append(external_id)
        self._raise_for(external_id)
        record = self.records.get(external_id)
        if record is None:
            raise ProviderNotFoundError(self._provider, external_id, "no such record")
        return record

    async def extract_parent_references(self, external_id: str) -> list[ParentReference]:
        self.extract_calls.append(external_id)
        if self.on_extract is not None:
            self.on_extract(external_id)
        self._raise_for(external_id)
        return list(self.parents.get(external_id, ()))

    def _raise_for(self, external_id: str) -> None:
        if external_id in self.errors:
            raise self.errors[external_id]
        if external_id in self.redirects:
            raise ProviderRedirectError(self._provider, external_id, self.redirects[external_id])


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


if TYPE_CHECKING:
    from kinsync.domain.ports import ProviderDriver, ReconciliationUnitOfWork

    _check_uow: ReconciliationUnitOfWork = FakeUnitOfWork(FakeStore())
    _check_driver: ProviderDriver = FakeDriver()
