"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kinsync.domain.model import (
    Claim,
    ExternalIdentity,
    Override,
    Person,
    ProviderRecord,
    RelationshipEdge,
    VitalEvent,
)

if TYPE_CHECKING:
    from uuid import UUID

    from kinsync.domain.model import EntityType, ParentRole, Provider


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class PersonRepository(Repository[Person], Protocol):
    def get(self, person_id: UUID) -> Person | None: ...


@runtime_checkable
class VitalEventRepository(Repository[VitalEvent], Protocol):
    def for_person(self, person_id: UUID) -> list[VitalEvent]: ...


@runtime_checkable
class RelationshipRepository(Repository[RelationshipEdge], Protocol):
    """Parent and spouse edges. Parent edges point child -> parent."""

    def parents_of(self, person_id: UUID) -> list[RelationshipEdge]: ...

    def parent_edge(self, person_id: UUID, role: ParentRole) -> RelationshipEdge | None: ...

    def children_of(self, person_id: UUID) -> list[RelationshipEdge]: ...

    def all_parent_edges(self) -> list[RelationshipEdge]: ...

    def remove(self, edge: RelationshipEdge) -> None: ...


@runtime_checkable
class ExternalIdentityRepository(Repository[ExternalIdentity], Protocol):
    def active_for(self, person_id: UUID, provider: Provider) -> ExternalIdentity | None: ...

    def history(self, person_id: UUID, provider: Provider) -> list[ExternalIdentity]:
        """All identities of the person for the provider, oldest sequence first."""
        ...

    def find_active(self, provider: Provider, external_id: str) -> ExternalIdentity | None: ...

    def find_historical(self, provider: Provider, external_id: str) -> list[ExternalIdentity]: ...

    def list_active(self, provider: Provider) -> list[ExternalIdentity]: ...

    def flush(self) -> None:
        """Push pending writes so uniqueness is checked before the next write."""
        ...


@runtime_checkable
class ProviderRecordRepository(Protocol):
    """Append-only store of provider snapshots."""

    def append(self, record: ProviderRecord) -> None: ...

    def latest(self, provider: Provider, external_id: str) -> ProviderRecord | None: ...

    def history(self, provider: Provider, external_id: str) -> list[ProviderRecord]: ...


@runtime_checkable
class OverrideRepository(Repository[Override], Protocol):
    def get(
        self, person_id: UUID, entity_type: EntityType, field_name: str
    ) -> Override | None: ...

    def for_person(self, person_id: UUID) -> list[Override]: ...

    def remove(self, override: Override) -> None: ...


@runtime_checkable
class ClaimRepository(Repository[Claim], Protocol):
    def get(self, claim_id: UUID) -> Claim | None: ...

    def for_person(self, person_id: UUID, predicate: str | None = None) -> list[Claim]: ...

    def remove(self, claim: Claim) -> None: ...
