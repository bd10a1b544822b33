"""SQLAlchemy database models for the Reckoning engine."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CanonicalEventDB(Base):
    """An append-only game event. ``seq`` preserves insertion order within a turn."""

    __tablename__ = "events"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), nullable=False, unique=True, default=_uuid)
    game_id = Column(String(64), nullable=False, index=True)
    turn = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=_now)
    event_type = Column(String(32), nullable=False)
    content = Column(Text, default="")

    action = Column(String(32), nullable=True, index=True)
    actor_type = Column(String(16), nullable=True)
    actor_id = Column(String(64), nullable=True)
    target_type = Column(String(16), nullable=True)
    target_id = Column(String(64), nullable=True)

    location_id = Column(String(64), nullable=True)
    speaker = Column(String(128), nullable=True)
    tags = Column(JSON, default=list)
    witnesses = Column(JSON, default=list)

    __table_args__ = (
        Index("ix_events_game_turn", "game_id", "turn", "seq"),
        Index("ix_events_actor", "game_id", "actor_type", "actor_id"),
        Index("ix_events_target", "game_id", "target_type", "target_id"),
    )


class SceneDB(Base):
    """A stretch of play; at most one active per game."""

    __tablename__ = "scenes"

    id = Column(String(36), primary_key=True, default=_uuid)
    game_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    scene_type = Column(String(50), nullable=True)
    location_id = Column(String(64), nullable=True)
    started_turn = Column(Integer, nullable=False)
    completed_turn = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    mood = Column(String(50), nullable=True)
    stakes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    __table_args__ = (
        Index(
            "uq_scenes_one_active",
            "game_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class RelationshipDB(Base):
    """Directional relationship: how ``from`` feels about ``to``."""

    __tablename__ = "relationships"

    id = Column(String(36), primary_key=True, default=_uuid)
    game_id = Column(String(64), nullable=False, index=True)
    from_type = Column(String(16), nullable=False)
    from_id = Column(String(64), nullable=False)
    to_type = Column(String(16), nullable=False)
    to_id = Column(String(64), nullable=False)

    # Dimensions (0.0 - 1.0)
    trust = Column(Float, nullable=False, default=0.5)
    respect = Column(Float, nullable=False, default=0.5)
    affection = Column(Float, nullable=False, default=0.5)
    fear = Column(Float, nullable=False, default=0.0)
    resentment = Column(Float, nullable=False, default=0.0)
    debt = Column(Float, nullable=False, default=0.0)

    updated_turn = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)

    __table_args__ = (
        UniqueConstraint("game_id", "from_type", "from_id", "to_type", "to_id", name="uq_relationships_pair"),
    )


class EntityTraitDB(Base):
    """A trait row. Removal flips status; rows are never deleted per entity."""

    __tablename__ = "entity_traits"

    id = Column(String(36), primary_key=True, default=_uuid)
    game_id = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(16), nullable=False)
    entity_id = Column(String(64), nullable=False)
    trait = Column(String(64), nullable=False)
    acquired_turn = Column(Integer, nullable=False)
    source_event_id = Column(String(36), nullable=True)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("ix_entity_traits_entity", "game_id", "entity_type", "entity_id"),
        Index(
            "uq_entity_traits_active",
            "game_id",
            "entity_type",
            "entity_id",
            "trait",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class PendingEvolutionDB(Base):
    """A proposed ledger change awaiting DM review."""

    __tablename__ = "pending_evolutions"

    id = Column(String(36), primary_key=True, default=_uuid)
    game_id = Column(String(64), nullable=False, index=True)
    turn = Column(Integer, nullable=False)
    evolution_type = Column(String(32), nullable=False)
    entity_type = Column(String(16), nullable=False)
    entity_id = Column(String(64), nullable=False)

    trait = Column(String(64), nullable=True)

    target_type = Column(String(16), nullable=True)
    target_id = Column(String(64), nullable=True)
    dimension = Column(String(16), nullable=True)
    old_value = Column(Float, nullable=True)
    new_value = Column(Float, nullable=True)

    reason = Column(Text, default="")
    source_event_id = Column(String(36), nullable=True)
    status = Column(String(16), nullable=False, default="pending", index=True)
    dm_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    resolved_at = Column(DateTime(timezone=True), nullable=True)


class EmergenceNotificationDB(Base):
    """An emergence opportunity surfaced to the DM."""

    __tablename__ = "emergence_notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    game_id = Column(String(64), nullable=False, index=True)
    emergence_type = Column(String(16), nullable=False)
    entity_type = Column(String(16), nullable=False)
    entity_id = Column(String(64), nullable=False)
    confidence = Column(Float, nullable=False)
    reason = Column(Text, nullable=False)
    triggering_event_id = Column(String(36), nullable=False)
    contributing_factors = Column(JSON, default=list)
    status = Column(String(16), nullable=False, default="pending")
    dm_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_emergence_pending",
            "game_id",
            "entity_id",
            "emergence_type",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )
