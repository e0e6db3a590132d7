"""initial_schema

Creates the five TRAINREG tables: groups, participants, sequence_counters,
yearly_archives, audit_log. The partial unique index keeps at most one
active group.

Revision ID: t0001_initial
Revises:
Create Date: 2026-10-01
"""
from __future__ import annotations
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "t0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("group_number", sa.Integer(), nullable=True, unique=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_groups_period_start", "groups", ["period_start"], unique=True)
    op.create_index(
        "uq_groups_single_active", "groups", ["status"], unique=True,
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "participants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("person_name", sa.String(200), nullable=False),
        sa.Column("company_name", sa.String(200), nullable=True),
        sa.Column("national_id", sa.String(32), nullable=True),
        sa.Column("birth_place", sa.String(120), nullable=True),
        sa.Column("citizenship", sa.String(80), nullable=True),
        sa.Column("medical_exam_date", sa.Date(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("unique_number", sa.String(20), nullable=False, server_default=""),
        sa.Column("submitted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("documents", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("handed_over", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_override", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_participants_period_start", "participants", ["period_start"])
    op.create_index("ix_participants_unique_number", "participants", ["unique_number"])
    op.create_index("ix_participants_period_created", "participants", ["period_start", "created_at"])

    op.create_table(
        "sequence_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("last_prefix", sa.Integer(), nullable=False),
        sa.Column("last_seq", sa.Integer(), nullable=False),
        sa.Column("last_reset_year", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "yearly_archives",
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("groups", sa.JSON(), nullable=False),
        sa.Column("participants", sa.JSON(), nullable=False),
        sa.Column("archived_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("table_name", sa.String(50), nullable=False),
        sa.Column("record_id", sa.String(64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("yearly_archives")
    op.drop_table("sequence_counters")
    op.drop_index("ix_participants_period_created", table_name="participants")
    op.drop_index("ix_participants_unique_number", table_name="participants")
    op.drop_index("ix_participants_period_start", table_name="participants")
    op.drop_table("participants")
    op.drop_index("uq_groups_single_active", table_name="groups")
    op.drop_index("ix_groups_period_start", table_name="groups")
    op.drop_table("groups")
