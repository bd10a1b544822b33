"""
Canonical string enumerations for the Reckoning engine.

StrEnum values serialize as plain strings, so they drop straight into
database columns and JSON payloads without conversion.
"""

from enum import StrEnum


# ── Event Log ──────────────────────────────────────────────────────────

class EventType(StrEnum):
    """What kind of beat a canonical event records."""
    NARRATION = "narration"
    PARTY_ACTION = "party_action"
    PARTY_DIALOGUE = "party_dialogue"
    NPC_ACTION = "npc_action"
    NPC_DIALOGUE = "npc_dialogue"
    ENVIRONMENT = "environment"
    DM_INJECTION = "dm_injection"


class ActorType(StrEnum):
    """Who performed an event."""
    PLAYER = "player"
    CHARACTER = "character"
    NPC = "npc"
    SYSTEM = "system"


class TargetType(StrEnum):
    """What an event was aimed at."""
    PLAYER = "player"
    CHARACTER = "character"
    NPC = "npc"
    AREA = "area"
    OBJECT = "object"


class ActionCategory(StrEnum):
    """Behavioral bucket for a classified action verb."""
    MERCY = "mercy"
    VIOLENCE = "violence"
    HONESTY = "honesty"
    SOCIAL = "social"
    EXPLORATION = "exploration"
    CHARACTER = "character"


# ── Scenes ─────────────────────────────────────────────────────────────

class SceneStatus(StrEnum):
    """Lifecycle of a scene."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SignalType(StrEnum):
    """Evidence kinds that a scene has run its course."""
    LOCATION_CHANGE = "location_change"
    CONFRONTATION_RESOLVED = "confrontation_resolved"
    MOOD_SHIFT = "mood_shift"
    LONG_DURATION = "long_duration"


# ── Player Patterns ────────────────────────────────────────────────────

class SocialApproach(StrEnum):
    """Dominant style of a player's social actions."""
    HELPFUL = "helpful"
    DIPLOMATIC = "diplomatic"
    MANIPULATIVE = "manipulative"
    HOSTILE = "hostile"
    BALANCED = "balanced"
    MINIMAL = "minimal"


# ── Entities & Ledgers ─────────────────────────────────────────────────

class EntityType(StrEnum):
    """Kinds of entity that can hold traits and relationships."""
    PLAYER = "player"
    CHARACTER = "character"
    NPC = "npc"
    LOCATION = "location"
    ITEM = "item"


class RelationshipDimension(StrEnum):
    """The six scalar axes of a directional relationship."""
    TRUST = "trust"
    RESPECT = "respect"
    AFFECTION = "affection"
    FEAR = "fear"
    RESENTMENT = "resentment"
    DEBT = "debt"


class AggregateLabel(StrEnum):
    """Human-readable summary of a relationship's dimensions."""
    DEVOTED = "devoted"
    ALLY = "ally"
    FRIEND = "friend"
    RIVAL = "rival"
    ENEMY = "enemy"
    TERRIFIED = "terrified"
    RESENTFUL = "resentful"
    INDEBTED = "indebted"
    WARY = "wary"
    INDIFFERENT = "indifferent"


class TraitStatus(StrEnum):
    """Lifecycle of an entity trait row."""
    ACTIVE = "active"
    FADED = "faded"
    REMOVED = "removed"


class TraitCategory(StrEnum):
    """Grouping used by the trait catalog."""
    MORAL = "moral"
    EMOTIONAL = "emotional"
    CAPABILITY = "capability"
    REPUTATION = "reputation"


# ── Evolution Workflow ─────────────────────────────────────────────────

class EvolutionType(StrEnum):
    """Kind of ledger change a proposal carries."""
    TRAIT_ADD = "trait_add"
    TRAIT_REMOVE = "trait_remove"
    RELATIONSHIP_CHANGE = "relationship_change"


class EvolutionStatus(StrEnum):
    """Proposal state; approved and refused are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REFUSED = "refused"


# ── Emergence ──────────────────────────────────────────────────────────

class EmergenceType(StrEnum):
    """Narrative role an NPC may be growing into."""
    VILLAIN = "villain"
    ALLY = "ally"


class NotificationStatus(StrEnum):
    """DM-facing emergence notification state."""
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
