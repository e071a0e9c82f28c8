"""Single-person parent discovery.

Given a person linked to a provider, find the provider ids of their canonical
parents: read the provider's parent references (cached or freshly extracted),
pair them with local parents by role and name similarity, and register the
confident pairs as external identities. Ambiguous and low-scoring pairs are
reported and left alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from kinsync.domain.errors import (
    NO_LOCAL_PARENTS,
    IdentityConflictError,
    NoExtractableDataError,
    NotFoundError,
)
from kinsync.domain.identity import IdentityResolver
from kinsync.domain.model import EntityType
from kinsync.domain.normalize import name_similarity

if TYPE_CHECKING:
    from uuid import UUID

    from kinsync.domain.cache import ProviderCache
    from kinsync.domain.model import ParentReference, ParentRole, Provider
    from kinsync.domain.ports import ReconciliationRepositories, UnitOfWorkFactory

log = getLogger(__name__)


class SkipReason(StrEnum):
    ALREADY_LINKED = "already_linked"
    NOT_FOUND_ON_PROVIDER = "not_found_on_provider"
    NAME_MISMATCH = "name_mismatch_below_threshold"
    AMBIGUOUS_MATCH = "ambiguous_match"
    NO_LOCAL_PARENT = "no_local_parent"
    IDENTITY_CONFLICT = "identity_conflict"


@dataclass(frozen=True, slots=True)
class DiscoveredParent:
    role: ParentRole
    parent_person_id: UUID
    parent_name: str
    external_id: str
    url: str | None
    confidence: float


@dataclass(frozen=True, slots=True)
class SkippedParent:
    role: ParentRole
    parent_person_id: UUID | None
    reason: SkipReason
    detail: str | None = None


@dataclass(slots=True)
class DiscoverParentsResult:
    discovered: list[DiscoveredParent] = field(default_factory=list)
    skipped: list[SkippedParent] = field(default_factory=list)
    error: str | None = None

    @property
    def unresolved(self) -> int:
        """Parents that could have been linked but were not."""
        return sum(1 for skip in self.skipped if skip.reason is not SkipReason.ALREADY_LINKED)


@dataclass(frozen=True, slots=True)
class _LocalParent:
    role: ParentRole
    person_id: UUID
    name: str
    linked_external_id: str | None


class ParentDiscovery:
    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        cache: ProviderCache,
        name_match_threshold: float = 0.8,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._cache = cache
        self._threshold = name_match_threshold

    async def discover(
        self,
        person_id: UUID,
        provider: Provider,
        *,
        refresh: bool = False,
    ) -> DiscoverParentsResult:
        """Discover and register provider ids for the person's parents.

        Provider errors (auth, fetch, not found) propagate; missing
        preconditions and empty provider data come back as ``error``.
        """

        with self._uow_factory() as uow:
            repositories = uow.repositories
            if repositories.persons.get(person_id) is None:
                raise NotFoundError(f"person {person_id} not found")
            external_id = IdentityResolver(repositories.identities).resolve(person_id, provider)
            if external_id is None:
                return DiscoverParentsResult(error=f"person has no {provider} external id")
            local_parents = _local_parents(repositories, person_id, provider)
        if not local_parents:
            return DiscoverParentsResult(error=NO_LOCAL_PARENTS)

        result = DiscoverParentsResult()
        pending: list[_LocalParent] = []
        for parent in local_parents:
            if parent.linked_external_id is None:
                pending.append(parent)
            else:
                result.skipped.append(
                    SkippedParent(
                        role=parent.role,
                        parent_person_id=parent.person_id,
                        reason=SkipReason.ALREADY_LINKED,
                        detail=parent.linked_external_id,
                    )
                )
        if not pending:
            return result

        try:
            references = await self._references(provider, external_id, refresh=refresh)
        except NoExtractableDataError as exc:
            result.error = str(exc)
            return result
        if references is None:
            result.error = f"{provider} does not support parent extraction"
            return result

        self._flag_linked_mismatches(result, references)
        self._match(result, pending, references, provider)
        for reference in references:
            if not any(parent.role is reference.role for parent in local_parents):
                result.skipped.append(
                    SkippedParent(
                        role=reference.role,
                        parent_person_id=None,
                        reason=SkipReason.NO_LOCAL_PARENT,
                        detail=reference.display_name or reference.external_id,
                    )
                )

        log.info(
            "Parent discovery for %s on %s: %d discovered, %d skipped",
            person_id,
            provider,
            len(result.discovered),
            len(result.skipped),
        )
        return result

    async def _references(
        self,
        provider: Provider,
        external_id: str,
        *,
        refresh: bool,
    ) -> tuple[ParentReference, ...] | None:
        extracted = await self._cache.parent_references(provider, external_id, refresh=refresh)
        if extracted is None:
            return None
        _, references = extracted
        if not references:
            raise NoExtractableDataError
        return references

    def _match(
        self,
        result: DiscoverParentsResult,
        pending: list[_LocalParent],
        references: tuple[ParentReference, ...],
        provider: Provider,
    ) -> None:
        claimed: set[str] = set()
        for parent in pending:
            candidates = [ref for ref in references if ref.role is parent.role]
            if not candidates:
                result.skipped.append(
                    SkippedParent(
                        role=parent.role,
                        parent_person_id=parent.person_id,
                        reason=SkipReason.NOT_FOUND_ON_PROVIDER,
                    )
                )
                continue

            scored = sorted(
                ((name_similarity(parent.name, ref.display_name), ref) for ref in candidates),
                key=lambda pair: pair[0],
                reverse=True,
            )
            best_score, best = scored[0]
            tied = len(scored) > 1 and scored[1][0] == best_score
            if best_score < self._threshold:
                result.skipped.append(
                    SkippedParent(
                        role=parent.role,
                        parent_person_id=parent.person_id,
                        reason=SkipReason.NAME_MISMATCH,
                        detail=f"{best.display_name!r} scored {best_score:.2f}",
                    )
                )
                continue
            if tied or best.external_id in claimed:
                result.skipped.append(
                    SkippedParent(
                        role=parent.role,
                        parent_person_id=parent.person_id,
                        reason=SkipReason.AMBIGUOUS_MATCH,
                        detail=best.external_id,
                    )
                )
                continue

            try:
                self._register(parent, best, provider, best_score)
            except IdentityConflictError as exc:
                log.warning("Not linking %s: %s", parent.person_id, exc)
                result.skipped.append(
                    SkippedParent(
                        role=parent.role,
                        parent_person_id=parent.person_id,
                        reason=SkipReason.IDENTITY_CONFLICT,
                        detail=str(exc),
                    )
                )
                continue

            claimed.add(best.external_id)
            result.discovered.append(
                DiscoveredParent(
                    role=parent.role,
                    parent_person_id=parent.person_id,
                    parent_name=parent.name,
                    external_id=best.external_id,
                    url=best.url,
                    confidence=best_score,
                )
            )

    def _register(
        self,
        parent: _LocalParent,
        reference: ParentReference,
        provider: Provider,
        confidence: float,
    ) -> None:
        with self._uow_factory() as uow:
            IdentityResolver(uow.repositories.identities).register(
                parent.person_id,
                provider,
                reference.external_id,
                url=reference.url,
                confidence=confidence,
            )
            uow.commit()

    @staticmethod
    def _flag_linked_mismatches(
        result: DiscoverParentsResult,
        references: tuple[ParentReference, ...],
    ) -> None:
        by_role = {ref.role: ref for ref in references}
        for index, skip in enumerate(result.skipped):
            reference = by_role.get(skip.role)
            if reference is None or reference.external_id == skip.detail:
                continue
            result.skipped[index] = SkippedParent(
                role=skip.role,
                parent_person_id=skip.parent_person_id,
                reason=skip.reason,
                detail=f"linked to {skip.detail}; provider reports {reference.external_id}",
            )


def _local_parents(
    repositories: ReconciliationRepositories,
    person_id: UUID,
    provider: Provider,
) -> list[_LocalParent]:
    parents: list[_LocalParent] = []
    for edge in repositories.relationships.parents_of(person_id):
        parent = repositories.persons.get(edge.object_id)
        if parent is None or edge.role is None:
            continue
        name_override = repositories.overrides.get(parent.id, EntityType.PERSON, "name")
        name = (
            name_override.override_value
            if name_override is not None and name_override.override_value
            else parent.name
        )
        identity = repositories.identities.active_for(parent.id, provider)
        parents.append(
            _LocalParent(
                role=edge.role,
                person_id=parent.id,
                name=name,
                linked_external_id=identity.external_id if identity is not None else None,
            )
        )
    return parents
