"""User overrides, claims and the "use this provider value" actions.

Overrides sit above the canonical record; applying a provider value writes an
override (or, for multi-valued fields, user claims) and never mutates the
canonical record itself. Applying a provider parent is the one action that does
change canonical data: it creates or replaces a parent edge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from kinsync.domain.comparison import (
    DEFAULT_SCHEMA,
    FieldKind,
    as_text,
    canonical_value,
    is_empty,
    load_person_view,
    local_value,
    provider_value,
)
from kinsync.domain.errors import (
    NotFoundError,
    NotLinkedError,
    ProviderValueUnavailableError,
    ValidationError,
)
from kinsync.domain.identity import IdentityResolver
from kinsync.domain.locks import person_locks
from kinsync.domain.model import (
    Claim,
    ClaimSource,
    Override,
    Person,
    RelationshipEdge,
    parse_genealogical_date,
    utcnow,
)
from kinsync.domain.normalize import normalize_text, normalize_values

if TYPE_CHECKING:
    from uuid import UUID

    from kinsync.domain.comparison import ComparableField, ComparisonSchema, PersonView
    from kinsync.domain.model import FieldValue, ParentRole, Provider
    from kinsync.domain.ports import ReconciliationRepositories, UnitOfWorkFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppliedValue:
    field_name: str
    provider: Provider
    value: FieldValue
    override: Override | None = None
    added_claims: tuple[Claim, ...] = field(default_factory=tuple)


class OverrideService:
    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        schema: ComparisonSchema = DEFAULT_SCHEMA,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._schema = schema

    # Overrides ---------------------------------------------------------------

    def set_override(
        self,
        person_id: UUID,
        field_name: str,
        value: str | None,
        *,
        reason: str | None = None,
    ) -> Override:
        comparable = self._overridable(field_name)
        cleaned = _clean_value(comparable, value)
        with person_locks.hold(person_id), self._uow_factory() as uow:
            view = load_person_view(uow.repositories, person_id, providers=())
            override = _upsert_override(uow.repositories, view, comparable, cleaned, reason=reason)
            uow.commit()
        return override

    def remove_override(self, person_id: UUID, field_name: str) -> bool:
        comparable = self._schema.field(field_name)
        with person_locks.hold(person_id), self._uow_factory() as uow:
            override = uow.repositories.overrides.get(
                person_id, comparable.entity_type, comparable.name
            )
            if override is None:
                return False
            uow.repositories.overrides.remove(override)
            uow.commit()
        log.info("Removed override %s for person %s", field_name, person_id)
        return True

    def list_overrides(self, person_id: UUID) -> list[Override]:
        with self._uow_factory() as uow:
            return uow.repositories.overrides.for_person(person_id)

    # Claims ------------------------------------------------------------------

    def add_claim(self, person_id: UUID, predicate: str, value: str) -> Claim:
        predicate = predicate.strip()
        value = value.strip()
        if not predicate or not value:
            raise ValidationError("claims need a predicate and a value")
        with person_locks.hold(person_id), self._uow_factory() as uow:
            if uow.repositories.persons.get(person_id) is None:
                raise NotFoundError(f"person {person_id} not found")
            for claim in uow.repositories.claims.for_person(person_id, predicate):
                if claim.source is ClaimSource.USER and normalize_text(
                    claim.value
                ) == normalize_text(value):
                    return claim
            claim = Claim(person_id=person_id, predicate=predicate, value=value)
            uow.repositories.claims.add(claim)
            uow.commit()
        return claim

    def delete_claim(self, claim_id: UUID) -> None:
        with self._uow_factory() as uow:
            claim = uow.repositories.claims.get(claim_id)
            if claim is None:
                raise NotFoundError(f"claim {claim_id} not found")
            if claim.source is not ClaimSource.USER:
                raise ValidationError("provider claims are replaced by syncing, not deleted")
            uow.repositories.claims.remove(claim)
            uow.commit()

    def list_claims(self, person_id: UUID, predicate: str | None = None) -> list[Claim]:
        with self._uow_factory() as uow:
            return uow.repositories.claims.for_person(person_id, predicate)

    def sync_provider_claims(self, person_id: UUID, provider: Provider) -> list[Claim]:
        """Replace the provider's claims with the values in its latest snapshot."""

        with person_locks.hold(person_id), self._uow_factory() as uow:
            repositories = uow.repositories
            view = load_person_view(repositories, person_id, providers=(provider,))
            if provider not in view.linked:
                raise NotLinkedError(person_id, provider)
            record = view.records.get(provider)
            if record is None:
                raise ProviderValueUnavailableError(f"no cached {provider} record to sync")

            for claim in view.claims:
                if claim.source is ClaimSource.PROVIDER and claim.provider is provider:
                    repositories.claims.remove(claim)

            created: list[Claim] = []
            for comparable in self._schema.fields:
                if comparable.kind is not FieldKind.MULTI or comparable.predicate is None:
                    continue
                values = provider_value(record, comparable) or ()
                for value in sorted(set(values) if isinstance(values, tuple) else {values}):
                    claim = Claim(
                        person_id=person_id,
                        predicate=comparable.predicate,
                        value=value,
                        source=ClaimSource.PROVIDER,
                        provider=provider,
                    )
                    repositories.claims.add(claim)
                    created.append(claim)
            uow.commit()
        log.info("Synced %d %s claims for person %s", len(created), provider, person_id)
        return created

    # Apply actions -----------------------------------------------------------

    def apply_provider_value(
        self,
        person_id: UUID,
        field_name: str,
        provider: Provider,
    ) -> AppliedValue:
        """Adopt the provider's cached value for a field.

        Scalar and date fields become an override; multi-valued fields gain user
        claims for the values not already present. Repeating the call changes
        nothing.
        """

        comparable = self._schema.field(field_name)
        if comparable.kind is FieldKind.PARENT:
            raise ValidationError(f"{field_name} is a parent field; apply the parent instead")
        if comparable.kind is FieldKind.DERIVED:
            raise ValidationError(f"{field_name} is derived and cannot be applied")

        with person_locks.hold(person_id), self._uow_factory() as uow:
            repositories = uow.repositories
            view = load_person_view(repositories, person_id, providers=(provider,))
            if provider not in view.linked:
                raise NotLinkedError(person_id, provider)
            value = provider_value(view.records.get(provider), comparable)
            if is_empty(value):
                raise ProviderValueUnavailableError(
                    f"{provider} has no cached value for {field_name}"
                )

            if comparable.kind is FieldKind.MULTI:
                added = _add_missing_claims(repositories, view, comparable, value)
                uow.commit()
                return AppliedValue(
                    field_name=field_name, provider=provider, value=value, added_claims=added
                )

            text = as_text(value)
            override = _upsert_override(
                repositories,
                view,
                comparable,
                _clean_value(comparable, text, validate=False),
                reason=f"from {provider}",
            )
            uow.commit()
        log.info("Applied %s value for %s to person %s", provider, field_name, person_id)
        return AppliedValue(
            field_name=field_name, provider=provider, value=value, override=override
        )

    def apply_provider_parent(
        self,
        person_id: UUID,
        role: ParentRole,
        provider: Provider,
    ) -> RelationshipEdge:
        """Make the provider's cached parent for ``role`` the canonical parent.

        A parent the provider knows but kinsync does not is created as a new
        person and linked to the provider id.
        """

        with person_locks.hold(person_id), self._uow_factory() as uow:
            repositories = uow.repositories
            resolver = IdentityResolver(repositories.identities)
            external_id = resolver.resolve(person_id, provider)
            if external_id is None:
                raise NotLinkedError(person_id, provider)
            record = repositories.provider_records.latest(provider, external_id)
            reference = record.parent(role) if record is not None else None
            if reference is None:
                raise ProviderValueUnavailableError(f"no cached {role} from {provider}")

            parent_id = resolver.person_for(provider, reference.external_id)
            if parent_id is None:
                parent = Person(name=reference.display_name or reference.external_id)
                repositories.persons.add(parent)
                resolver.register(parent.id, provider, reference.external_id, url=reference.url)
                parent_id = parent.id
                log.info("Created %s parent %s from %s", role, parent_id, provider)
            if parent_id == person_id:
                raise ValidationError("a person cannot be their own parent")

            edge = repositories.relationships.parent_edge(person_id, role)
            if edge is not None and edge.object_id == parent_id:
                return edge
            if edge is not None:
                repositories.relationships.remove(edge)
            edge = RelationshipEdge.parent(child_id=person_id, parent_id=parent_id, role=role)
            repositories.relationships.add(edge)
            uow.commit()
        return edge

    def _overridable(self, field_name: str) -> ComparableField:
        comparable = self._schema.field(field_name)
        if not comparable.overridable:
            raise ValidationError(f"{field_name} cannot be overridden")
        return comparable


def _clean_value(
    comparable: ComparableField, value: str | None, *, validate: bool = True
) -> str | None:
    cleaned = value.strip() if value is not None else None
    if not cleaned:
        return None
    if validate and comparable.kind is FieldKind.DATE and parse_genealogical_date(cleaned) is None:
        raise ValidationError(f"{cleaned!r} is not a recognisable date for {comparable.name}")
    return cleaned


def _upsert_override(
    repositories: ReconciliationRepositories,
    view: PersonView,
    comparable: ComparableField,
    value: str | None,
    *,
    reason: str | None,
) -> Override:
    existing = view.overrides.get((comparable.entity_type, comparable.name))
    if existing is not None:
        if existing.override_value != value:
            existing.override_value = value
            existing.updated_at = utcnow()
            if reason is not None:
                existing.reason = reason
        return existing

    override = Override(
        person_id=view.person.id,
        entity_type=comparable.entity_type,
        field_name=comparable.name,
        override_value=value,
        original_value=as_text(canonical_value(view, comparable)),
        reason=reason,
    )
    repositories.overrides.add(override)
    view.overrides[(comparable.entity_type, comparable.name)] = override
    return override


def _add_missing_claims(
    repositories: ReconciliationRepositories,
    view: PersonView,
    comparable: ComparableField,
    value: FieldValue,
) -> tuple[Claim, ...]:
    predicate = comparable.claim_predicate
    current, _ = local_value(view, comparable)
    present = set(normalize_values(current or ()))
    added: list[Claim] = []
    for item in value or ():
        key = normalize_text(item)
        if not key or key in present:
            continue
        claim = Claim(person_id=view.person.id, predicate=predicate, value=item.strip())
        repositories.claims.add(claim)
        present.add(key)
        added.append(claim)
    return tuple(added)
