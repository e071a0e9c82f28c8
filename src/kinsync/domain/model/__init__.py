"""Public domain model surface."""

from __future__ import annotations

from kinsync.domain.model.entity import Entity, new_id, utcnow
from kinsync.domain.model.enums import (
    ClaimSource,
    ComparisonStatus,
    DriverCapability,
    EntityType,
    ParentRole,
    Provider,
    RelationshipKind,
    ValueSource,
    VitalEventType,
)
from kinsync.domain.model.external_ids import ExternalIdentity
from kinsync.domain.model.overrides import Claim, Override
from kinsync.domain.model.person import Person, RelationshipEdge, VitalEvent
from kinsync.domain.model.primitives import (
    DateQualifier,
    ExternalId,
    FieldName,
    GenealogicalDate,
    PartialDate,
    Predicate,
    parse_genealogical_date,
)
from kinsync.domain.model.provider_records import FieldValue, ParentReference, ProviderRecord

__all__ = [
    "Claim",
    "ClaimSource",
    "ComparisonStatus",
    "DateQualifier",
    "DriverCapability",
    "Entity",
    "EntityType",
    "ExternalId",
    "ExternalIdentity",
    "FieldName",
    "FieldValue",
    "GenealogicalDate",
    "Override",
    "ParentReference",
    "ParentRole",
    "PartialDate",
    "Person",
    "Predicate",
    "Provider",
    "ProviderRecord",
    "RelationshipEdge",
    "RelationshipKind",
    "ValueSource",
    "VitalEvent",
    "VitalEventType",
    "new_id",
    "parse_genealogical_date",
    "utcnow",
]
