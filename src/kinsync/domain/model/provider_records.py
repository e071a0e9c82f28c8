"""Immutable provider snapshots.

A ``ProviderRecord`` is what a provider said about one of its records at a point
in time. Refreshing appends a newer snapshot; nothing here is ever edited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kinsync.domain.model.entity import utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from kinsync.domain.model.enums import ParentRole, Provider


type FieldValue = str | tuple[str, ...] | None


@dataclass(frozen=True, kw_only=True)
class ParentReference:
    role: ParentRole
    external_id: str
    display_name: str | None = None
    url: str | None = None


@dataclass(frozen=True, kw_only=True)
class ProviderRecord:
    """Snapshot of a provider record.

    ``fields`` is keyed by comparison field name (``name``, ``birth_date`` ...);
    multi-valued fields hold tuples. ``parent_references`` is ``None`` when the
    snapshot did not include parent data at all and an empty tuple when the
    provider reported no parents.
    """

    provider: Provider
    external_id: str
    fields: Mapping[str, FieldValue]
    parent_references: tuple[ParentReference, ...] | None = None
    source_url: str | None = None
    fetched_at: datetime = field(default_factory=utcnow)

    def value(self, field_name: str) -> FieldValue:
        return self.fields.get(field_name)

    def parent(self, role: ParentRole) -> ParentReference | None:
        for reference in self.parent_references or ():
            if reference.role is role:
                return reference
        return None
