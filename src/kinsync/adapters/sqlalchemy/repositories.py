"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from kinsync.adapters.sqlalchemy.mappings import (
    claim_table,
    external_identity_table,
    override_table,
    provider_record_table,
    relationship_edge_table,
    vital_event_table,
)
from kinsync.domain.errors import IdentityConflictError
from kinsync.domain.model import (
    Claim,
    ExternalIdentity,
    Override,
    ParentReference,
    ParentRole,
    Person,
    ProviderRecord,
    RelationshipEdge,
    RelationshipKind,
    VitalEvent,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from kinsync.domain.model import EntityType, FieldValue, Provider


class SqlAlchemyPersonRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Person) -> None:
        self.session.add(entity)

    def get(self, person_id: UUID) -> Person | None:
        return self.session.get(Person, person_id)


class SqlAlchemyVitalEventRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: VitalEvent) -> None:
        self.session.add(entity)

    def for_person(self, person_id: UUID) -> list[VitalEvent]:
        stmt = select(VitalEvent).where(vital_event_table.c.person_id == person_id)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyRelationshipRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: RelationshipEdge) -> None:
        self.session.add(entity)

    def parents_of(self, person_id: UUID) -> list[RelationshipEdge]:
        stmt = (
            select(RelationshipEdge)
            .where(relationship_edge_table.c.subject_id == person_id)
            .where(relationship_edge_table.c.kind == RelationshipKind.PARENT)
        )
        return list(self.session.execute(stmt).scalars())

    def parent_edge(self, person_id: UUID, role: ParentRole) -> RelationshipEdge | None:
        stmt = (
            select(RelationshipEdge)
            .where(relationship_edge_table.c.subject_id == person_id)
            .where(relationship_edge_table.c.kind == RelationshipKind.PARENT)
            .where(relationship_edge_table.c.role == role)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def children_of(self, person_id: UUID) -> list[RelationshipEdge]:
        stmt = (
            select(RelationshipEdge)
            .where(relationship_edge_table.c.object_id == person_id)
            .where(relationship_edge_table.c.kind == RelationshipKind.PARENT)
        )
        return list(self.session.execute(stmt).scalars())

    def all_parent_edges(self) -> list[RelationshipEdge]:
        stmt = select(RelationshipEdge).where(
            relationship_edge_table.c.kind == RelationshipKind.PARENT
        )
        return list(self.session.execute(stmt).scalars())

    def remove(self, edge: RelationshipEdge) -> None:
        self.session.delete(edge)


class SqlAlchemyExternalIdentityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session
        self._last_added: ExternalIdentity | None = None

    def add(self, entity: ExternalIdentity) -> None:
        self.session.add(entity)
        self._last_added = entity

    def active_for(self, person_id: UUID, provider: Provider) -> ExternalIdentity | None:
        stmt = (
            select(ExternalIdentity)
            .where(external_identity_table.c.person_id == person_id)
            .where(external_identity_table.c.provider == provider)
            .where(external_identity_table.c.active.is_(True))
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def history(self, person_id: UUID, provider: Provider) -> list[ExternalIdentity]:
        stmt = (
            select(ExternalIdentity)
            .where(external_identity_table.c.person_id == person_id)
            .where(external_identity_table.c.provider == provider)
            .order_by(external_identity_table.c.sequence)
        )
        return list(self.session.execute(stmt).scalars())

    def find_active(self, provider: Provider, external_id: str) -> ExternalIdentity | None:
        stmt = (
            select(ExternalIdentity)
            .where(external_identity_table.c.provider == provider)
            .where(external_identity_table.c.external_id == external_id)
            .where(external_identity_table.c.active.is_(True))
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_historical(self, provider: Provider, external_id: str) -> list[ExternalIdentity]:
        stmt = (
            select(ExternalIdentity)
            .where(external_identity_table.c.provider == provider)
            .where(external_identity_table.c.external_id == external_id)
            .where(external_identity_table.c.active.is_(False))
            .order_by(external_identity_table.c.deactivated_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def list_active(self, provider: Provider) -> list[ExternalIdentity]:
        stmt = (
            select(ExternalIdentity)
            .where(external_identity_table.c.provider == provider)
            .where(external_identity_table.c.active.is_(True))
        )
        return list(self.session.execute(stmt).scalars())

    def flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            pending = self._last_added
            if pending is None:
                raise
            raise IdentityConflictError(
                pending.provider,
                pending.external_id,
                existing_person_id=None,
                requested_person_id=pending.person_id,
            ) from exc


class SqlAlchemyProviderRecordRepository:
    """Snapshots are value objects, so they go through Core rather than the ORM."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, record: ProviderRecord) -> None:
        self.session.execute(provider_record_table.insert().values(**_record_row(record)))

    def latest(self, provider: Provider, external_id: str) -> ProviderRecord | None:
        stmt = (
            select(provider_record_table)
            .where(provider_record_table.c.provider == provider)
            .where(provider_record_table.c.external_id == external_id)
            .order_by(provider_record_table.c.fetched_at.desc(), provider_record_table.c.id.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).one_or_none()
        return _record_from_row(row) if row is not None else None

    def history(self, provider: Provider, external_id: str) -> list[ProviderRecord]:
        stmt = (
            select(provider_record_table)
            .where(provider_record_table.c.provider == provider)
            .where(provider_record_table.c.external_id == external_id)
            .order_by(provider_record_table.c.fetched_at, provider_record_table.c.id)
        )
        return [_record_from_row(row) for row in self.session.execute(stmt)]


def _record_row(record: ProviderRecord) -> dict[str, Any]:
    references = None
    if record.parent_references is not None:
        references = [
            {
                "role": reference.role.value,
                "external_id": reference.external_id,
                "display_name": reference.display_name,
                "url": reference.url,
            }
            for reference in record.parent_references
        ]
    return {
        "provider": record.provider,
        "external_id": record.external_id,
        "fetched_at": record.fetched_at,
        "fields": {
            name: list(value) if isinstance(value, tuple) else value
            for name, value in record.fields.items()
        },
        "parent_references": references,
        "source_url": record.source_url,
    }


def _record_from_row(row: Row[Any]) -> ProviderRecord:
    raw_fields: Mapping[str, Any] = row.fields or {}
    fields: dict[str, FieldValue] = {
        name: tuple(value) if isinstance(value, list) else value
        for name, value in raw_fields.items()
    }
    references = None
    if row.parent_references is not None:
        references = tuple(
            ParentReference(
                role=ParentRole(item["role"]),
                external_id=item["external_id"],
                display_name=item.get("display_name"),
                url=item.get("url"),
            )
            for item in row.parent_references
        )
    return ProviderRecord(
        provider=row.provider,
        external_id=row.external_id,
        fields=fields,
        parent_references=references,
        source_url=row.source_url,
        fetched_at=row.fetched_at,
    )


class SqlAlchemyOverrideRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Override) -> None:
        self.session.add(entity)

    def get(self, person_id: UUID, entity_type: EntityType, field_name: str) -> Override | None:
        stmt = (
            select(Override)
            .where(override_table.c.person_id == person_id)
            .where(override_table.c.entity_type == entity_type)
            .where(override_table.c.field_name == field_name)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def for_person(self, person_id: UUID) -> list[Override]:
        stmt = (
            select(Override)
            .where(override_table.c.person_id == person_id)
            .order_by(override_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def remove(self, override: Override) -> None:
        self.session.delete(override)


class SqlAlchemyClaimRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Claim) -> None:
        self.session.add(entity)

    def get(self, claim_id: UUID) -> Claim | None:
        return self.session.get(Claim, claim_id)

    def for_person(self, person_id: UUID, predicate: str | None = None) -> list[Claim]:
        stmt = select(Claim).where(claim_table.c.person_id == person_id)
        if predicate is not None:
            stmt = stmt.where(claim_table.c.predicate == predicate)
        stmt = stmt.order_by(claim_table.c.created_at)
        return list(self.session.execute(stmt).scalars())

    def remove(self, claim: Claim) -> None:
        self.session.delete(claim)
