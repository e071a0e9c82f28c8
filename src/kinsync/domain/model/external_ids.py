"""External identities: which provider record a canonical person corresponds to.

A person has at most one *active* identity per provider and a provider id is
active for at most one person. Superseded identities stay around as history so
redirects can be traced back to the person they used to mean.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kinsync.domain.model.entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from kinsync.domain.model.enums import Provider


@dataclass(eq=False, kw_only=True)
class ExternalIdentity(Entity):
    person_id: UUID
    provider: Provider
    external_id: str
    url: str | None = None
    confidence: float = 1.0
    active: bool = True
    sequence: int = 0
    activated_at: datetime = field(default_factory=utcnow)
    deactivated_at: datetime | None = None

    def deactivate(self, *, at: datetime | None = None) -> None:
        self.active = False
        self.deactivated_at = at or utcnow()

    def __repr__(self) -> str:
        state = "active" if self.active else "historical"
        return (
            f"ExternalIdentity({self.provider}:{self.external_id} -> {self.person_id}, "
            f"{state}, seq={self.sequence})"
        )
