from __future__ import annotations

import pytest

from kinsync.domain.model import (
    ExternalIdentity,
    ParentRole,
    Person,
    Provider,
    RelationshipEdge,
    RelationshipKind,
)
from tests.helpers.genealogy import make_record, parent_ref


def test_deactivate_keeps_identity_as_history() -> None:
    person = Person(name="Ada Smith")
    identity = ExternalIdentity(
        person_id=person.id, provider=Provider.WIKITREE, external_id="Smith-1"
    )

    identity.deactivate()

    assert identity.active is False
    assert identity.deactivated_at is not None
    assert "historical" in repr(identity)


def test_parent_edge_points_child_to_parent() -> None:
    child = Person(name="Child")
    father = Person(name="Father")

    edge = RelationshipEdge.parent(child_id=child.id, parent_id=father.id, role=ParentRole.FATHER)

    assert edge.subject_id == child.id
    assert edge.object_id == father.id
    assert edge.kind is RelationshipKind.PARENT


def test_parent_edge_requires_role() -> None:
    child = Person(name="Child")
    parent = Person(name="Parent")

    with pytest.raises(ValueError, match="role"):
        RelationshipEdge(subject_id=child.id, object_id=parent.id, kind=RelationshipKind.PARENT)


def test_edges_cannot_loop() -> None:
    person = Person(name="Loop")

    with pytest.raises(ValueError, match="own subject"):
        RelationshipEdge.parent(child_id=person.id, parent_id=person.id, role=ParentRole.MOTHER)


def test_provider_record_distinguishes_unknown_and_empty_parents() -> None:
    unknown = make_record("Smith-1")
    none_reported = make_record("Smith-1", parents=[])
    with_mother = make_record(
        "Smith-1", parents=[parent_ref(ParentRole.MOTHER, "Jones-2", "Mary Jones")]
    )

    assert unknown.parent_references is None
    assert none_reported.parent_references == ()
    assert with_mother.parent(ParentRole.FATHER) is None
    mother = with_mother.parent(ParentRole.MOTHER)
    assert mother is not None
    assert mother.external_id == "Jones-2"
