"""Canonical genealogy records: people, their vital events and relationship edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kinsync.domain.model.entity import Entity, utcnow
from kinsync.domain.model.enums import ParentRole, RelationshipKind, VitalEventType

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class Person(Entity):
    """A canonical person. Never deleted; identity is assigned once."""

    name: str
    gender: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(eq=False, kw_only=True)
class VitalEvent(Entity):
    person_id: UUID
    event_type: VitalEventType
    date: str | None = None
    place: str | None = None


@dataclass(eq=False, kw_only=True)
class RelationshipEdge(Entity):
    """Directed edge ``subject -> object``.

    For parent edges the subject is the child and the object the parent, tagged
    with the parent's role. Spouse edges carry no role.
    """

    subject_id: UUID
    object_id: UUID
    kind: RelationshipKind
    role: ParentRole | None = None

    def __post_init__(self) -> None:
        if self.kind is RelationshipKind.PARENT and self.role is None:
            raise ValueError("parent edges require a role")
        if self.kind is RelationshipKind.SPOUSE and self.role is not None:
            raise ValueError("spouse edges carry no role")
        if self.subject_id == self.object_id:
            raise ValueError("relationship edges cannot point at their own subject")

    @classmethod
    def parent(cls, *, child_id: UUID, parent_id: UUID, role: ParentRole) -> RelationshipEdge:
        return cls(
            subject_id=child_id,
            object_id=parent_id,
            kind=RelationshipKind.PARENT,
            role=role,
        )
