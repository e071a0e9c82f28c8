"""Field-level comparison between a person's local record and provider snapshots.

The local value of a field is its active override when one exists, otherwise the
canonical value. Provider values come from the latest cached snapshot of every
provider the person is linked to; nothing here fetches or writes.

Status is decided in order: ``missing_provider`` (not linked, never fetched or
empty on the provider), ``missing_local``, then ``match`` or ``different`` under
``normalize_text``. Multi-valued fields compare as sets. Date fields compare as
parsed calendar values when both sides parse, including their precision, so
``"12 Mar 1847"`` and ``"1847"`` are ``different``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from kinsync.domain.errors import NotFoundError, ValidationError
from kinsync.domain.model import (
    ClaimSource,
    ComparisonStatus,
    EntityType,
    ParentRole,
    Provider,
    ValueSource,
    VitalEventType,
    parse_genealogical_date,
)
from kinsync.domain.normalize import normalize_text, normalize_values

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime
    from uuid import UUID

    from kinsync.domain.model import (
        Claim,
        FieldValue,
        Override,
        Person,
        ProviderRecord,
        VitalEvent,
    )
    from kinsync.domain.ports import ReconciliationRepositories


class FieldKind(StrEnum):
    SCALAR = "scalar"
    DATE = "date"
    PARENT = "parent"
    DERIVED = "derived"
    MULTI = "multi"


@dataclass(frozen=True, slots=True)
class ComparableField:
    name: str
    label: str
    kind: FieldKind
    entity_type: EntityType = EntityType.PERSON
    event_type: VitalEventType | None = None
    role: ParentRole | None = None
    predicate: str | None = None

    def __post_init__(self) -> None:
        if self.kind is FieldKind.PARENT and self.role is None:
            raise ValidationError(f"parent field {self.name!r} needs a role")
        if self.kind is FieldKind.MULTI and self.predicate is None:
            raise ValidationError(f"multi-valued field {self.name!r} needs a claim predicate")

    @property
    def parent_role(self) -> ParentRole:
        if self.role is None:
            raise ValidationError(f"field {self.name!r} is not a parent field")
        return self.role

    @property
    def claim_predicate(self) -> str:
        if self.predicate is None:
            raise ValidationError(f"field {self.name!r} is not multi-valued")
        return self.predicate

    @property
    def overridable(self) -> bool:
        return self.kind in {FieldKind.SCALAR, FieldKind.DATE}


@dataclass(frozen=True, slots=True)
class ComparisonSchema:
    version: int
    fields: tuple[ComparableField, ...]

    def field(self, name: str) -> ComparableField:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        raise ValidationError(f"unknown field {name!r} (schema v{self.version})")

    def names(self) -> tuple[str, ...]:
        return tuple(candidate.name for candidate in self.fields)


def _vital(event_type: VitalEventType, part: str, kind: FieldKind) -> ComparableField:
    return ComparableField(
        name=f"{event_type}_{part}",
        label=f"{event_type.capitalize()} {part.capitalize()}",
        kind=kind,
        entity_type=EntityType.VITAL_EVENT,
        event_type=event_type,
    )


DEFAULT_SCHEMA: Final[ComparisonSchema] = ComparisonSchema(
    version=1,
    fields=(
        ComparableField(name="name", label="Name", kind=FieldKind.SCALAR),
        ComparableField(name="gender", label="Gender", kind=FieldKind.SCALAR),
        _vital(VitalEventType.BIRTH, "date", FieldKind.DATE),
        _vital(VitalEventType.BIRTH, "place", FieldKind.SCALAR),
        _vital(VitalEventType.DEATH, "date", FieldKind.DATE),
        _vital(VitalEventType.DEATH, "place", FieldKind.SCALAR),
        _vital(VitalEventType.BURIAL, "date", FieldKind.DATE),
        _vital(VitalEventType.BURIAL, "place", FieldKind.SCALAR),
        ComparableField(
            name="father_name", label="Father", kind=FieldKind.PARENT, role=ParentRole.FATHER
        ),
        ComparableField(
            name="mother_name", label="Mother", kind=FieldKind.PARENT, role=ParentRole.MOTHER
        ),
        ComparableField(name="children_count", label="Children", kind=FieldKind.DERIVED),
        ComparableField(
            name="alternate_names",
            label="Alternate Names",
            kind=FieldKind.MULTI,
            predicate="alias",
        ),
        ComparableField(
            name="occupations",
            label="Occupations",
            kind=FieldKind.MULTI,
            predicate="occupation",
        ),
    ),
)


@dataclass(slots=True)
class PersonView:
    """Everything comparison needs about one person, loaded up front."""

    person: Person
    vital_events: dict[VitalEventType, VitalEvent] = field(default_factory=dict)
    parent_names: dict[ParentRole, str] = field(default_factory=dict)
    children_count: int = 0
    overrides: dict[tuple[EntityType, str], Override] = field(default_factory=dict)
    claims: list[Claim] = field(default_factory=list)
    linked: dict[Provider, str] = field(default_factory=dict)
    records: dict[Provider, ProviderRecord] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderFieldValue:
    value: FieldValue
    status: ComparisonStatus
    fetched_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ComparisonResult:
    field_name: str
    label: str
    local_value: FieldValue
    local_source: ValueSource | None
    providers: Mapping[Provider, ProviderFieldValue]

    @property
    def has_differences(self) -> bool:
        return any(cell.status is ComparisonStatus.DIFFERENT for cell in self.providers.values())


def load_person_view(
    repositories: ReconciliationRepositories,
    person_id: UUID,
    *,
    providers: Iterable[Provider] = tuple(Provider),
) -> PersonView:
    person = repositories.persons.get(person_id)
    if person is None:
        raise NotFoundError(f"person {person_id} not found")

    view = PersonView(person=person)
    for event in repositories.vital_events.for_person(person_id):
        view.vital_events[event.event_type] = event
    for edge in repositories.relationships.parents_of(person_id):
        parent = repositories.persons.get(edge.object_id)
        if parent is None or edge.role is None:
            continue
        name_override = repositories.overrides.get(parent.id, EntityType.PERSON, "name")
        view.parent_names[edge.role] = (
            name_override.override_value
            if name_override is not None and name_override.override_value
            else parent.name
        )
    view.children_count = len(repositories.relationships.children_of(person_id))
    for override in repositories.overrides.for_person(person_id):
        view.overrides[(override.entity_type, override.field_name)] = override
    view.claims = repositories.claims.for_person(person_id)

    for provider in providers:
        identity = repositories.identities.active_for(person_id, provider)
        if identity is None:
            continue
        view.linked[provider] = identity.external_id
        record = repositories.provider_records.latest(provider, identity.external_id)
        if record is not None:
            view.records[provider] = record
    return view


def canonical_value(view: PersonView, comparable: ComparableField) -> FieldValue:
    """Value of the field in the canonical layer, ignoring overrides."""

    match comparable.kind:
        case FieldKind.SCALAR | FieldKind.DATE if comparable.event_type is not None:
            event = view.vital_events.get(comparable.event_type)
            if event is None:
                return None
            return event.date if comparable.kind is FieldKind.DATE else event.place
        case FieldKind.SCALAR | FieldKind.DATE:
            return getattr(view.person, comparable.name, None)
        case FieldKind.PARENT:
            return view.parent_names.get(comparable.parent_role)
        case FieldKind.DERIVED:
            return str(view.children_count)
        case FieldKind.MULTI:
            values = [
                claim.value
                for claim in view.claims
                if claim.predicate == comparable.predicate and claim.source is ClaimSource.PROVIDER
            ]
            return tuple(sorted(values)) or None


def local_value(
    view: PersonView, comparable: ComparableField
) -> tuple[FieldValue, ValueSource | None]:
    """Override if present, else canonical; ``(None, None)`` when both are empty."""

    if comparable.kind is FieldKind.MULTI:
        user_values = [
            claim.value
            for claim in view.claims
            if claim.predicate == comparable.predicate and claim.source is ClaimSource.USER
        ]
        canonical = canonical_value(view, comparable)
        merged = sorted({*user_values, *(canonical or ())})
        if not merged:
            return None, None
        source = ValueSource.OVERRIDE if user_values else ValueSource.CANONICAL
        return tuple(merged), source

    override = view.overrides.get((comparable.entity_type, comparable.name))
    if override is not None:
        return override.override_value, ValueSource.OVERRIDE
    value = canonical_value(view, comparable)
    if is_empty(value):
        return None, None
    return value, ValueSource.CANONICAL


def provider_value(record: ProviderRecord | None, comparable: ComparableField) -> FieldValue:
    if record is None:
        return None
    if comparable.kind is FieldKind.PARENT:
        reference = record.parent(comparable.parent_role)
        if reference is not None and reference.display_name:
            return reference.display_name
    value = record.value(comparable.name)
    if comparable.kind is FieldKind.MULTI and isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip()) or None
    return value


def is_empty(value: FieldValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return not any(item.strip() for item in value)


def values_equal(comparable: ComparableField, left: FieldValue, right: FieldValue) -> bool:
    if comparable.kind is FieldKind.MULTI:
        return normalize_values(_as_tuple(left)) == normalize_values(_as_tuple(right))
    left_text = as_text(left)
    right_text = as_text(right)
    if comparable.kind is FieldKind.DATE:
        left_date = parse_genealogical_date(left_text)
        right_date = parse_genealogical_date(right_text)
        if left_date is not None and right_date is not None:
            return left_date.comparison_key() == right_date.comparison_key()
    return normalize_text(left_text) == normalize_text(right_text)


def field_status(
    comparable: ComparableField,
    local: FieldValue,
    remote: FieldValue,
    *,
    linked: bool,
) -> ComparisonStatus:
    if not linked or is_empty(remote):
        return ComparisonStatus.MISSING_PROVIDER
    if is_empty(local):
        return ComparisonStatus.MISSING_LOCAL
    if values_equal(comparable, local, remote):
        return ComparisonStatus.MATCH
    return ComparisonStatus.DIFFERENT


def compare_person(
    view: PersonView,
    *,
    schema: ComparisonSchema = DEFAULT_SCHEMA,
    providers: Iterable[Provider] = tuple(Provider),
) -> list[ComparisonResult]:
    """Compare every schema field against every provider. Pure."""

    provider_list = tuple(providers)
    results: list[ComparisonResult] = []
    for comparable in schema.fields:
        local, source = local_value(view, comparable)
        cells: dict[Provider, ProviderFieldValue] = {}
        for provider in provider_list:
            record = view.records.get(provider)
            remote = provider_value(record, comparable)
            cells[provider] = ProviderFieldValue(
                value=remote,
                status=field_status(comparable, local, remote, linked=provider in view.linked),
                fetched_at=record.fetched_at if record is not None else None,
            )
        results.append(
            ComparisonResult(
                field_name=comparable.name,
                label=comparable.label,
                local_value=local,
                local_source=source,
                providers=cells,
            )
        )
    return results


def summarize(results: Iterable[ComparisonResult]) -> dict[Provider, Counter[ComparisonStatus]]:
    """Status counts per provider."""

    summary: dict[Provider, Counter[ComparisonStatus]] = {}
    for result in results:
        for provider, cell in result.providers.items():
            summary.setdefault(provider, Counter())[cell.status] += 1
    return summary


def as_text(value: FieldValue) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return ", ".join(value)


def _as_tuple(value: FieldValue) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(","))
    return value
