"""Canonical identity resolution.

Maps canonical persons to provider ids. At most one active identity exists per
``(person, provider)`` and per ``(provider, external_id)``; replacing a mapping
demotes the previous one to history instead of deleting it, which is what lets a
provider-side merge or redirect be traced back to the person it used to mean.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from kinsync.domain.errors import IdentityConflictError, NotFoundError, ValidationError
from kinsync.domain.locks import identity_locks
from kinsync.domain.model import ExternalIdentity

if TYPE_CHECKING:
    from uuid import UUID

    from kinsync.domain.model import Provider
    from kinsync.domain.ports import ExternalIdentityRepository

log = getLogger(__name__)


class IdentityResolver:
    """Identity operations against one unit of work's identity repository."""

    def __init__(self, identities: ExternalIdentityRepository) -> None:
        self._identities = identities

    def resolve(self, person_id: UUID, provider: Provider) -> str | None:
        identity = self._identities.active_for(person_id, provider)
        return identity.external_id if identity is not None else None

    def history_of(self, person_id: UUID, provider: Provider) -> list[ExternalIdentity]:
        return sorted(self._identities.history(person_id, provider), key=lambda i: i.sequence)

    def person_for(
        self,
        provider: Provider,
        external_id: str,
        *,
        include_historical: bool = False,
    ) -> UUID | None:
        identity = self._identities.find_active(provider, external_id)
        if identity is not None:
            return identity.person_id
        if not include_historical:
            return None
        historical = self._identities.find_historical(provider, external_id)
        if not historical:
            return None
        return max(historical, key=lambda i: i.activated_at).person_id

    def register(
        self,
        person_id: UUID,
        provider: Provider,
        external_id: str,
        *,
        url: str | None = None,
        confidence: float = 1.0,
    ) -> ExternalIdentity:
        """Make ``external_id`` the person's active identity for ``provider``.

        Re-registering the current id only refreshes url/confidence. Raises
        ``IdentityConflictError`` when the id is active for someone else.
        """

        external_id = external_id.strip()
        if not external_id:
            raise ValidationError("external id must not be blank")
        if not 0.0 <= confidence <= 1.0:
            raise ValidationError(f"confidence must be within [0, 1], got {confidence}")

        with identity_locks.hold((provider, external_id)):
            holder = self._identities.find_active(provider, external_id)
            if holder is not None and holder.person_id != person_id:
                raise IdentityConflictError(
                    provider,
                    external_id,
                    existing_person_id=holder.person_id,
                    requested_person_id=person_id,
                )

            current = self._identities.active_for(person_id, provider)
            if current is not None and current.external_id == external_id:
                if url is not None:
                    current.url = url
                current.confidence = confidence
                return current

            history = self.history_of(person_id, provider)
            if current is not None:
                current.deactivate()
                self._identities.flush()
                log.info(
                    "Demoted %s identity %s for person %s",
                    provider,
                    current.external_id,
                    person_id,
                )

            identity = ExternalIdentity(
                person_id=person_id,
                provider=provider,
                external_id=external_id,
                url=url,
                confidence=confidence,
                sequence=history[-1].sequence + 1 if history else 0,
            )
            self._identities.add(identity)
            self._identities.flush()
            log.debug("Registered %r", identity)
            return identity

    def absorb_redirect(
        self,
        provider: Provider,
        old_external_id: str,
        new_external_id: str,
    ) -> ExternalIdentity:
        """Move whoever ``old_external_id`` identifies onto ``new_external_id``."""

        previous = self._identities.find_active(provider, old_external_id)
        person_id = (
            previous.person_id
            if previous is not None
            else self.person_for(provider, old_external_id, include_historical=True)
        )
        if person_id is None:
            raise NotFoundError(f"{provider}:{old_external_id} is not linked to any person")

        log.info(
            "Absorbing %s redirect %s -> %s for person %s",
            provider,
            old_external_id,
            new_external_id,
            person_id,
        )
        return self.register(
            person_id,
            provider,
            new_external_id,
            confidence=previous.confidence if previous is not None else 1.0,
        )
