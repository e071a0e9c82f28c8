"""Initial schema.

Revision ID: 0001
Revises:
Create Date: 2026-09-28 10:12:44.118204
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "person",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_person")),
    )
    op.create_table(
        "vital_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("person_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("date", sa.String(), nullable=True),
        sa.Column("place", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["person_id"], ["person.id"], name=op.f("fk_vital_event_person_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_vital_event")),
        sa.UniqueConstraint("person_id", "event_type", name="uq_vital_event_person_type"),
    )
    op.create_table(
        "relationship_edge",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subject_id", sa.Uuid(), nullable=False),
        sa.Column("object_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(
            ["subject_id"], ["person.id"], name=op.f("fk_relationship_edge_subject_id_person")
        ),
        sa.ForeignKeyConstraint(
            ["object_id"], ["person.id"], name=op.f("fk_relationship_edge_object_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_relationship_edge")),
        sa.UniqueConstraint("subject_id", "object_id", "kind", name="uq_relationship_edge_pair"),
    )
    op.create_index(
        "ix_relationship_edge_subject_kind", "relationship_edge", ["subject_id", "kind"]
    )
    op.create_index("ix_relationship_edge_object_kind", "relationship_edge", ["object_id", "kind"])

    op.create_table(
        "external_identity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("person_id", sa.Uuid(), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["person_id"], ["person.id"], name=op.f("fk_external_identity_person_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_external_identity")),
    )
    op.create_index(
        "ix_external_identity_lookup", "external_identity", ["provider", "external_id"]
    )
    op.create_index(
        "uq_external_identity_active_person",
        "external_identity",
        ["person_id", "provider"],
        unique=True,
        sqlite_where=sa.text("active = 1"),
        postgresql_where=sa.text("active"),
    )
    op.create_index(
        "uq_external_identity_active_external",
        "external_identity",
        ["provider", "external_id"],
        unique=True,
        sqlite_where=sa.text("active = 1"),
        postgresql_where=sa.text("active"),
    )

    op.create_table(
        "provider_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False),
        sa.Column("parent_references", sa.JSON(), nullable=True),
        sa.Column("source_url", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_provider_record")),
    )
    op.create_index(
        "ix_provider_record_lookup",
        "provider_record",
        ["provider", "external_id", "fetched_at"],
    )

    op.create_table(
        "override",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("person_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("field_name", sa.String(), nullable=False),
        sa.Column("override_value", sa.String(), nullable=True),
        sa.Column("original_value", sa.String(), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["person_id"], ["person.id"], name=op.f("fk_override_person_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_override")),
        sa.UniqueConstraint("person_id", "entity_type", "field_name", name="uq_override_field"),
    )

    op.create_table(
        "claim",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("person_id", sa.Uuid(), nullable=False),
        sa.Column("predicate", sa.String(), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("provider", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["person_id"], ["person.id"], name=op.f("fk_claim_person_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_claim")),
    )
    op.create_index("ix_claim_person_predicate", "claim", ["person_id", "predicate"])


def downgrade() -> None:
    op.drop_index("ix_claim_person_predicate", table_name="claim")
    op.drop_table("claim")
    op.drop_table("override")
    op.drop_index("ix_provider_record_lookup", table_name="provider_record")
    op.drop_table("provider_record")
    op.drop_index("uq_external_identity_active_external", table_name="external_identity")
    op.drop_index("uq_external_identity_active_person", table_name="external_identity")
    op.drop_index("ix_external_identity_lookup", table_name="external_identity")
    op.drop_table("external_identity")
    op.drop_index("ix_relationship_edge_object_kind", table_name="relationship_edge")
    op.drop_index("ix_relationship_edge_subject_kind", table_name="relationship_edge")
    op.drop_table("relationship_edge")
    op.drop_table("vital_event")
    op.drop_table("person")
