"""Translate WikiTree profiles into provider snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kinsync.config.wikitree import WIKITREE_PROFILE_URL
from kinsync.domain.model import ParentReference, ParentRole, Provider, ProviderRecord, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from kinsync.domain.model import FieldValue

    from .schema import WikiTreeDate, WikiTreeProfile

_GENDERS: dict[str, str] = {"male": "male", "female": "female"}


def profile_url(key: str) -> str:
    return WIKITREE_PROFILE_URL.format(key=key)


def parse_date(value: WikiTreeDate | None) -> str | None:
    """Drop WikiTree's all-zero placeholder; keep partial dates as ``YYYY[-MM[-DD]]``."""

    if not value:
        return None
    parts = value.split("-")
    if len(parts) != 3 or not parts[0].strip("0"):
        return None
    year, month, day = parts
    if month.strip("0") and day.strip("0"):
        return f"{year}-{month}-{day}"
    if month.strip("0"):
        return f"{year}-{month}"
    return year


def _split_names(*values: str | None) -> tuple[str, ...]:
    names: list[str] = []
    for value in values:
        for part in (value or "").split(","):
            cleaned = part.strip()
            if cleaned and cleaned not in names:
                names.append(cleaned)
    return tuple(names)


def parent_references(profile: WikiTreeProfile) -> tuple[ParentReference, ...]:
    references: list[ParentReference] = []
    parents = ((ParentRole.FATHER, profile.father), (ParentRole.MOTHER, profile.mother))
    for role, parent_id in parents:
        parent = profile.parent(parent_id)
        if parent is None:
            continue
        references.append(
            ParentReference(
                role=role,
                external_id=parent.name,
                display_name=parent.display_name,
                url=profile_url(parent.name),
            )
        )
    return tuple(references)


def translate_profile(
    profile: WikiTreeProfile,
    *,
    fetched_at: datetime | None = None,
) -> ProviderRecord:
    references = parent_references(profile)
    by_role = {reference.role: reference for reference in references}
    father = by_role.get(ParentRole.FATHER)
    mother = by_role.get(ParentRole.MOTHER)
    fields: dict[str, FieldValue] = {
        "name": profile.display_name,
        "gender": _GENDERS.get((profile.gender or "").lower()),
        "birth_date": parse_date(profile.birth_date),
        "birth_place": profile.birth_location or None,
        "death_date": parse_date(profile.death_date),
        "death_place": profile.death_location or None,
        "father_name": father.display_name if father is not None else None,
        "mother_name": mother.display_name if mother is not None else None,
        "alternate_names": _split_names(profile.nicknames, profile.last_name_other) or None,
    }
    return ProviderRecord(
        provider=Provider.WIKITREE,
        external_id=profile.name,
        fields={name: value for name, value in fields.items() if value is not None},
        parent_references=references,
        source_url=profile_url(profile.name),
        fetched_at=fetched_at or utcnow(),
    )
