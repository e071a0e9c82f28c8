"""SQLAlchemy mapping metadata for the kinsync domain model.

Entities are mapped imperatively so the domain dataclasses stay free of ORM
imports. Provider snapshots are immutable value objects and live in a Core
table that the repository reads and writes directly.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
    text,
)
from sqlalchemy.orm import configure_mappers

from kinsync.domain.model import (
    Claim,
    ClaimSource,
    EntityType,
    ExternalIdentity,
    Override,
    ParentRole,
    Person,
    Provider,
    RelationshipEdge,
    RelationshipKind,
    VitalEvent,
    VitalEventType,
    utcnow,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(enum_cls, native_enum=False, length=32)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Canonical records -----------------------------------------------------------

person_table = Table(
    "person",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String, nullable=False),
    Column("gender", String(16), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
)

vital_event_table = Table(
    "vital_event",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("event_type", _enum(VitalEventType), nullable=False),
    Column("date", String, nullable=True),
    Column("place", String, nullable=True),
    UniqueConstraint("person_id", "event_type", name="uq_vital_event_person_type"),
)

relationship_edge_table = Table(
    "relationship_edge",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("subject_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("object_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("kind", _enum(RelationshipKind), nullable=False),
    Column("role", _enum(ParentRole), nullable=True),
    UniqueConstraint("subject_id", "object_id", "kind", name="uq_relationship_edge_pair"),
    Index("ix_relationship_edge_subject_kind", "subject_id", "kind"),
    Index("ix_relationship_edge_object_kind", "object_id", "kind"),
)

# Identity --------------------------------------------------------------------

external_identity_table = Table(
    "external_identity",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("provider", _enum(Provider), nullable=False),
    Column("external_id", String, nullable=False),
    Column("url", String, nullable=True),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("active", Boolean, nullable=False, default=True),
    Column("sequence", Integer, nullable=False, default=0),
    Column("activated_at", UTCDateTime(), nullable=False, default=utcnow),
    Column("deactivated_at", UTCDateTime(), nullable=True),
    Index("ix_external_identity_lookup", "provider", "external_id"),
    Index(
        "uq_external_identity_active_person",
        "person_id",
        "provider",
        unique=True,
        sqlite_where=text("active = 1"),
        postgresql_where=text("active"),
    ),
    Index(
        "uq_external_identity_active_external",
        "provider",
        "external_id",
        unique=True,
        sqlite_where=text("active = 1"),
        postgresql_where=text("active"),
    ),
)

# Provider cache --------------------------------------------------------------

provider_record_table = Table(
    "provider_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("provider", _enum(Provider), nullable=False),
    Column("external_id", String, nullable=False),
    Column("fetched_at", UTCDateTime(), nullable=False),
    Column("fields", JSON, nullable=False),
    Column("parent_references", JSON, nullable=True),
    Column("source_url", String, nullable=True),
    Index("ix_provider_record_lookup", "provider", "external_id", "fetched_at"),
)

# User layer ------------------------------------------------------------------

override_table = Table(
    "override",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("entity_type", _enum(EntityType), nullable=False),
    Column("field_name", String, nullable=False),
    Column("override_value", String, nullable=True),
    Column("original_value", String, nullable=True),
    Column("reason", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Column("updated_at", UTCDateTime(), nullable=False, default=utcnow),
    UniqueConstraint("person_id", "entity_type", "field_name", name="uq_override_field"),
)

claim_table = Table(
    "claim",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("predicate", String, nullable=False),
    Column("value", String, nullable=False),
    Column("source", _enum(ClaimSource), nullable=False),
    Column("provider", _enum(Provider), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Index("ix_claim_person_predicate", "person_id", "predicate"),
)


def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model. Safe to call repeatedly."""

    if mapper_registry.mappers:
        return mapper_registry

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Person, person_table)
    mapper_registry.map_imperatively(VitalEvent, vital_event_table)
    mapper_registry.map_imperatively(RelationshipEdge, relationship_edge_table)
    mapper_registry.map_imperatively(ExternalIdentity, external_identity_table)
    mapper_registry.map_imperatively(Override, override_table)
    mapper_registry.map_imperatively(Claim, claim_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
