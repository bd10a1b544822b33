"""Narrative analytics, ledgers and the evolution workflow."""

from .emergence import EmergenceDetectionResult, EmergenceDetector, EmergenceNotifier, EmergenceThresholds
from .evolution import EntitySummary, EvolutionWorkflow, RelationshipSummary
from .evolution_detector import SystemEvolutionDetector
from .pattern_observer import PatternObserver, PatternObserverConfig, PlayerPatterns, TurnRange
from .relationships import RelationshipLedger, compute_aggregate_label
from .scene_boundary import BoundaryDetectionConfig, BoundarySuggestion, SceneBoundaryDetector
from .schemas import (
    CanonicalEvent,
    EmergenceNotification,
    EmergenceOpportunity,
    EntityRef,
    EntityTrait,
    PendingEvolution,
    Relationship,
    RelationshipDimensions,
    RelationshipKey,
    Scene,
)
from .stores import EventLog, NotificationStore, ProposalStore, RelationshipStore, SceneStore, TraitStore
from .traits import TRAIT_CATALOG, TraitLedger

__all__ = [
    "EmergenceDetectionResult", "EmergenceDetector", "EmergenceNotifier", "EmergenceThresholds",
    "EntitySummary", "EvolutionWorkflow", "RelationshipSummary",
    "SystemEvolutionDetector",
    "PatternObserver", "PatternObserverConfig", "PlayerPatterns", "TurnRange",
    "RelationshipLedger", "compute_aggregate_label",
    "BoundaryDetectionConfig", "BoundarySuggestion", "SceneBoundaryDetector",
    "CanonicalEvent", "EmergenceNotification", "EmergenceOpportunity", "EntityRef", "EntityTrait",
    "PendingEvolution", "Relationship", "RelationshipDimensions", "RelationshipKey", "Scene",
    "EventLog", "NotificationStore", "ProposalStore", "RelationshipStore", "SceneStore", "TraitStore",
    "TRAIT_CATALOG", "TraitLedger",
]
