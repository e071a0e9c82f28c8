"""Error taxonomy for reconciliation and discovery.

Per-person failures inside a traversal are reported as events and skipped;
``ProviderAuthError`` and storage failures end the whole job. Everything else
propagates to the caller of the synchronous operation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from uuid import UUID

    from kinsync.domain.model import Provider

NO_EXTRACTABLE_PARENT_DATA: Final[str] = "no extractable parent data"
NO_LOCAL_PARENTS: Final[str] = "no parents found in local database"


class KinsyncError(Exception):
    """Base class for domain errors."""


class ProviderError(KinsyncError):
    """A provider driver could not deliver a record."""

    def __init__(self, provider: Provider, external_id: str, message: str) -> None:
        super().__init__(f"{provider}:{external_id}: {message}")
        self.provider = provider
        self.external_id = external_id


class ProviderAuthError(ProviderError):
    """The provider session is not authenticated; retrying will not help."""


class ProviderFetchError(ProviderError):
    """Transient fetch failure (network, throttling, unexpected payload)."""


class ProviderNotFoundError(ProviderFetchError):
    """The provider has no record under this id."""


class ProviderRedirectError(ProviderError):
    """The provider merged or moved the record to a new id."""

    def __init__(self, provider: Provider, external_id: str, new_external_id: str) -> None:
        super().__init__(provider, external_id, f"redirected to {new_external_id}")
        self.new_external_id = new_external_id


class NoExtractableDataError(KinsyncError):
    """The provider record carries no parent references."""

    def __init__(self) -> None:
        super().__init__(NO_EXTRACTABLE_PARENT_DATA)


class IdentityConflictError(KinsyncError):
    """A provider id is already actively mapped to a different person."""

    def __init__(
        self,
        provider: Provider,
        external_id: str,
        *,
        existing_person_id: UUID | None,
        requested_person_id: UUID,
    ) -> None:
        holder = existing_person_id if existing_person_id is not None else "another person"
        super().__init__(
            f"{provider}:{external_id} is already linked to {holder}; "
            f"cannot link it to {requested_person_id}"
        )
        self.provider = provider
        self.external_id = external_id
        self.existing_person_id = existing_person_id
        self.requested_person_id = requested_person_id


class ValidationError(KinsyncError):
    """Input rejected before anything was written."""


class NotFoundError(KinsyncError):
    """Unknown person, claim or job."""


class NotLinkedError(KinsyncError):
    """The person has no active identity for the provider."""

    def __init__(self, person_id: UUID, provider: Provider) -> None:
        super().__init__(f"person has no {provider} external id")
        self.person_id = person_id
        self.provider = provider


class ProviderValueUnavailableError(KinsyncError):
    """An apply action found nothing cached to apply."""


class DiscoveryInProgressError(KinsyncError):
    """A discovery job for this provider is already running."""


class InvalidJobTransitionError(KinsyncError):
    """A discovery job was moved to a state it cannot reach from its current one."""
