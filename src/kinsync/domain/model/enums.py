"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    FAMILYSEARCH = "familysearch"
    ANCESTRY = "ancestry"
    WIKITREE = "wikitree"
    TWENTYTHREE_AND_ME = "23andme"


class EntityType(StrEnum):
    """Discriminator for what an override targets."""

    PERSON = "person"
    VITAL_EVENT = "vital_event"


class VitalEventType(StrEnum):
    BIRTH = "birth"
    DEATH = "death"
    BURIAL = "burial"


class RelationshipKind(StrEnum):
    PARENT = "parent"
    SPOUSE = "spouse"


class ParentRole(StrEnum):
    FATHER = "father"
    MOTHER = "mother"


class ClaimSource(StrEnum):
    USER = "user"
    PROVIDER = "provider"


class ComparisonStatus(StrEnum):
    MATCH = "match"
    DIFFERENT = "different"
    MISSING_LOCAL = "missing_local"
    MISSING_PROVIDER = "missing_provider"


class ValueSource(StrEnum):
    """Which layer a local value came from."""

    OVERRIDE = "override"
    CANONICAL = "canonical"


class DriverCapability(StrEnum):
    FETCH_RECORD = "fetch_record"
    PARENT_EXTRACTION = "parent_extraction"
