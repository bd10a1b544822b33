"""baseline: create all tables

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ─── Event log & scenes ─────────────────────────────────────────

    op.create_table(
        "events",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column("game_id", sa.String(64), nullable=False),
        sa.Column("turn", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("action", sa.String(32), nullable=True),
        sa.Column("actor_type", sa.String(16), nullable=True),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("target_type", sa.String(16), nullable=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("location_id", sa.String(64), nullable=True),
        sa.Column("speaker", sa.String(128), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("witnesses", sa.JSON(), nullable=True),
    )
    op.create_index("ix_events_game_id", "events", ["game_id"])
    op.create_index("ix_events_action", "events", ["action"])
    op.create_index("ix_events_game_turn", "events", ["game_id", "turn", "seq"])
    op.create_index("ix_events_actor", "events", ["game_id", "actor_type", "actor_id"])
    op.create_index("ix_events_target", "events", ["game_id", "target_type", "target_id"])

    op.create_table(
        "scenes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("game_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("scene_type", sa.String(50), nullable=True),
        sa.Column("location_id", sa.String(64), nullable=True),
        sa.Column("started_turn", sa.Integer(), nullable=False),
        sa.Column("completed_turn", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("mood", sa.String(50), nullable=True),
        sa.Column("stakes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scenes_game_id", "scenes", ["game_id"])
    op.create_index(
        "uq_scenes_one_active",
        "scenes",
        ["game_id"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    # ─── Ledgers ────────────────────────────────────────────────────

    op.create_table(
        "relationships",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("game_id", sa.String(64), nullable=False),
        sa.Column("from_type", sa.String(16), nullable=False),
        sa.Column("from_id", sa.String(64), nullable=False),
        sa.Column("to_type", sa.String(16), nullable=False),
        sa.Column("to_id", sa.String(64), nullable=False),
        sa.Column("trust", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("respect", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("affection", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("fear", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("resentment", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("debt", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("updated_turn", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("game_id", "from_type", "from_id", "to_type", "to_id", name="uq_relationships_pair"),
    )
    op.create_index("ix_relationships_game_id", "relationships", ["game_id"])

    op.create_table(
        "entity_traits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("game_id", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(16), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("trait", sa.String(64), nullable=False),
        sa.Column("acquired_turn", sa.Integer(), nullable=False),
        sa.Column("source_event_id", sa.String(36), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_entity_traits_game_id", "entity_traits", ["game_id"])
    op.create_index("ix_entity_traits_entity", "entity_traits", ["game_id", "entity_type", "entity_id"])
    op.create_index(
        "uq_entity_traits_active",
        "entity_traits",
        ["game_id", "entity_type", "entity_id", "trait"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    # ─── Review queues ──────────────────────────────────────────────

    op.create_table(
        "pending_evolutions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("game_id", sa.String(64), nullable=False),
        sa.Column("turn", sa.Integer(), nullable=False),
        sa.Column("evolution_type", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(16), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("trait", sa.String(64), nullable=True),
        sa.Column("target_type", sa.String(16), nullable=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("dimension", sa.String(16), nullable=True),
        sa.Column("old_value", sa.Float(), nullable=True),
        sa.Column("new_value", sa.Float(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("source_event_id", sa.String(36), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("dm_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_pending_evolutions_game_id", "pending_evolutions", ["game_id"])
    op.create_index("ix_pending_evolutions_status", "pending_evolutions", ["status"])

    op.create_table(
        "emergence_notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("game_id", sa.String(64), nullable=False),
        sa.Column("emergence_type", sa.String(16), nullable=False),
        sa.Column("entity_type", sa.String(16), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("triggering_event_id", sa.String(36), nullable=False),
        sa.Column("contributing_factors", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("dm_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_emergence_notifications_game_id", "emergence_notifications", ["game_id"])
    op.create_index(
        "uq_emergence_pending",
        "emergence_notifications",
        ["game_id", "entity_id", "emergence_type"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_table("emergence_notifications")
    op.drop_table("pending_evolutions")
    op.drop_table("entity_traits")
    op.drop_table("relationships")
    op.drop_table("scenes")
    op.drop_table("events")
