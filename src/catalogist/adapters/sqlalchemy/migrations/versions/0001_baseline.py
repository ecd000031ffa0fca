"""Fixed bookkeeping tables: registry, learned state, brand directory, run log and locks.

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column[object]]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "family_registry",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(63), nullable=False),
        sa.Column("table_name", sa.String(63), nullable=False),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("allowed_keys", sa.JSON(), nullable=False),
        sa.Column("variant_keys", sa.JSON(), nullable=False),
        sa.Column("identifier_template", sa.Text(), nullable=True),
        sa.Column("keywords", sa.JSON(), nullable=False),
        sa.Column("brands", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_family_registry"),
        sa.UniqueConstraint("slug", name="uq_family_registry_slug"),
        sa.UniqueConstraint("table_name", name="uq_family_registry_table_name"),
    )
    op.create_table(
        "attribute_alias",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("family", sa.String(63), nullable=False),
        sa.Column("brand_scope", sa.String(255), nullable=False),
        sa.Column("series_scope", sa.String(255), nullable=False),
        sa.Column("alias", sa.String(63), nullable=False),
        sa.Column("canonical", sa.String(63), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_attribute_alias"),
        sa.UniqueConstraint(
            "family", "brand_scope", "series_scope", "alias", name="uq_attribute_alias_family"
        ),
    )
    op.create_table(
        "identifier_template",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("family", sa.String(63), nullable=False),
        sa.Column("brand_scope", sa.String(255), nullable=False),
        sa.Column("series_scope", sa.String(255), nullable=False),
        sa.Column("template", sa.Text(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_identifier_template"),
        sa.UniqueConstraint(
            "family", "brand_scope", "series_scope", name="uq_identifier_template_family"
        ),
    )
    op.create_table(
        "brand_alias",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("brand", sa.String(255), nullable=False),
        sa.Column("alias", sa.String(255), nullable=False),
        sa.Column("alias_norm", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_brand_alias"),
        sa.UniqueConstraint("alias_norm", name="uq_brand_alias_alias_norm"),
    )
    op.create_table(
        "ingest_run_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.String(255), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_ingest_run_log"),
    )
    op.create_index("ix_ingest_run_log_run_id", "ingest_run_log", ["run_id"])
    op.create_table(
        "ingest_run_lock",
        sa.Column("run_id", sa.String(255), nullable=False),
        sa.Column("owner", sa.String(255), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("run_id", name="pk_ingest_run_lock"),
    )


def downgrade() -> None:
    op.drop_table("ingest_run_lock")
    op.drop_index("ix_ingest_run_log_run_id", table_name="ingest_run_log")
    op.drop_table("ingest_run_log")
    op.drop_table("brand_alias")
    op.drop_table("identifier_template")
    op.drop_table("attribute_alias")
    op.drop_table("family_registry")
