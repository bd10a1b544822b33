"""
Record types shared by the stores and the engine components.

Everything here is a pydantic model so callers can hand results
straight to ``model_dump(mode="json")``.  Analysis-only result types
(patterns, boundary suggestions) live beside the component that
produces them.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from ..enums import (
    ActorType,
    EmergenceType,
    EntityType,
    EventType,
    EvolutionStatus,
    EvolutionType,
    NotificationStatus,
    RelationshipDimension,
    SceneStatus,
    TargetType,
    TraitCategory,
    TraitStatus,
)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityRef(BaseModel):
    """A typed pointer to a player, character, npc, location or item."""
    model_config = ConfigDict(frozen=True)

    type: EntityType
    id: str

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


# ── Event Log ──────────────────────────────────────────────────────────

class CanonicalEvent(BaseModel):
    """One immutable entry in a game's event log."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    game_id: str
    turn: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=utcnow)
    event_type: EventType
    content: str = ""

    # Classified verb; unknown verbs are kept but ignored by analytics
    action: str | None = None

    actor_type: ActorType | None = None
    actor_id: str | None = None
    target_type: TargetType | None = None
    target_id: str | None = None

    location_id: str | None = None
    speaker: str | None = None
    tags: list[str] = Field(default_factory=list)
    witnesses: list[str] = Field(default_factory=list)


class Scene(BaseModel):
    """A contiguous stretch of play; at most one is active per game."""
    id: str = Field(default_factory=new_id)
    game_id: str
    name: str | None = None
    description: str | None = None
    scene_type: str | None = None
    location_id: str | None = None
    started_turn: int = Field(ge=0)
    completed_turn: int | None = None
    status: SceneStatus = SceneStatus.ACTIVE
    mood: str | None = None
    stakes: str | None = None


# ── Relationships ──────────────────────────────────────────────────────

class RelationshipDimensions(BaseModel):
    """The six relationship scalars, each in [0, 1]."""
    trust: float = Field(default=0.5, ge=0.0, le=1.0)
    respect: float = Field(default=0.5, ge=0.0, le=1.0)
    affection: float = Field(default=0.5, ge=0.0, le=1.0)
    fear: float = Field(default=0.0, ge=0.0, le=1.0)
    resentment: float = Field(default=0.0, ge=0.0, le=1.0)
    debt: float = Field(default=0.0, ge=0.0, le=1.0)

    def get(self, dimension: RelationshipDimension | str) -> float:
        return getattr(self, RelationshipDimension(dimension).value)


class RelationshipKey(BaseModel):
    """Directional pair key: how ``source`` feels about ``target``."""
    model_config = ConfigDict(frozen=True)

    game_id: str
    source: EntityRef
    target: EntityRef


class Relationship(BaseModel):
    """Stored relationship row between two entities."""
    id: str = Field(default_factory=new_id)
    game_id: str
    source: EntityRef
    target: EntityRef
    dimensions: RelationshipDimensions = Field(default_factory=RelationshipDimensions)
    updated_turn: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> RelationshipKey:
        return RelationshipKey(game_id=self.game_id, source=self.source, target=self.target)

    def other(self, entity: EntityRef) -> EntityRef:
        """The end of this relationship that isn't ``entity``."""
        return self.target if self.source == entity else self.source


# ── Traits ─────────────────────────────────────────────────────────────

class EntityTrait(BaseModel):
    """A trait held (or formerly held) by an entity."""
    id: str = Field(default_factory=new_id)
    game_id: str
    entity: EntityRef
    trait: str
    acquired_turn: int = Field(ge=0)
    source_event_id: str | None = None
    status: TraitStatus = TraitStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)


class TraitCatalogEntry(BaseModel):
    """Static description of a predefined trait."""
    model_config = ConfigDict(frozen=True)

    trait: str
    category: TraitCategory
    description: str
    opposites: tuple[str, ...] = ()


# ── Evolution Proposals ────────────────────────────────────────────────

class PendingEvolution(BaseModel):
    """A proposed ledger change awaiting (or past) DM review."""
    id: str = Field(default_factory=new_id)
    game_id: str
    turn: int = Field(ge=0)
    evolution_type: EvolutionType
    entity: EntityRef

    # trait_add / trait_remove
    trait: str | None = None

    # relationship_change
    target: EntityRef | None = None
    dimension: RelationshipDimension | None = None
    old_value: float | None = Field(default=None, ge=0.0, le=1.0)
    new_value: float | None = Field(default=None, ge=0.0, le=1.0)

    reason: str = ""
    source_event_id: str | None = None
    status: EvolutionStatus = EvolutionStatus.PENDING
    dm_notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == EvolutionStatus.PENDING


# ── Emergence ──────────────────────────────────────────────────────────

class ContributingFactor(BaseModel):
    """A relationship dimension that crossed its threshold."""
    dimension: RelationshipDimension
    value: float
    threshold: float


class EmergenceOpportunity(BaseModel):
    """An NPC that looks ready to step into a villain or ally role."""
    type: EmergenceType
    entity: EntityRef
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    triggering_event_id: str
    contributing_factors: list[ContributingFactor] = Field(default_factory=list)


class EmergenceNotification(BaseModel):
    """A persisted opportunity surfaced to the DM."""
    id: str = Field(default_factory=new_id)
    game_id: str
    opportunity: EmergenceOpportunity
    status: NotificationStatus = NotificationStatus.PENDING
    dm_notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None
