"""User corrections layered over canonical data."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kinsync.domain.model.entity import Entity, utcnow
from kinsync.domain.model.enums import ClaimSource

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from kinsync.domain.model.enums import EntityType, Provider


@dataclass(eq=False, kw_only=True)
class Override(Entity):
    """Field-level correction; one active row per (person, entity type, field).

    ``original_value`` is the canonical value when the override was first
    created and is kept across later edits.
    """

    person_id: UUID
    entity_type: EntityType
    field_name: str
    override_value: str | None
    original_value: str | None = None
    reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(eq=False, kw_only=True)
class Claim(Entity):
    """One value of a multi-valued fact (alias, occupation ...)."""

    person_id: UUID
    predicate: str
    value: str
    source: ClaimSource = ClaimSource.USER
    provider: Provider | None = None
    created_at: datetime = field(default_factory=utcnow)
