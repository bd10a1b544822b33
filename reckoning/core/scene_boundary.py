"""
Scene Boundary Detector.

Looks at the active scene and the most recent events of a game and
suggests whether the scene has run its course.  Four independent
heuristics each contribute a signal:

- location_change: the party moved somewhere else
- confrontation_resolved: a fight ended, explicitly or by pattern
- mood_shift: recent events clash with the scene's declared mood
- long_duration: the scene has gone on for many turns or events

Signals are combined with geometric decay (the strongest counts fully,
each next one 30% of the previous weight) and capped at 1.0.  The
detector only suggests; ending the scene is the caller's decision.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..enums import EventType, SignalType
from ..errors import ValidationError
from .actions import MERCY_ACTIONS, VIOLENCE_ACTIONS
from .schemas import CanonicalEvent, Scene
from .stores import EventLog, SceneStore

logger = logging.getLogger(__name__)

CONFRONTATION_END_TAGS = frozenset({
    "confrontation_end",
    "battle_end",
    "combat_end",
    "conflict_resolved",
    "peace_made",
})

CONFRONTATION_TAGS = frozenset({"confrontation", "battle", "combat", "conflict", "fight"})

# Mood inference buckets (a narrower view than the action categories)
MOOD_SOCIAL_ACTIONS = frozenset({"persuade", "befriend", "help", "bribe", "intimidate"})
MOOD_EXPLORATION_ACTIONS = frozenset({"enter_location", "examine", "search", "unlock"})
DIALOGUE_EVENT_TYPES = frozenset({EventType.NPC_DIALOGUE, EventType.PARTY_DIALOGUE})

CONTRASTING_MOODS = (
    ("action", "peaceful"),
    ("tense", "peaceful"),
    ("tense", "comedic"),
    ("action", "emotional"),
    ("ominous", "comedic"),
)

SIGNAL_DECAY = 0.3

_VIOLENCE = frozenset(VIOLENCE_ACTIONS)
_MERCY = frozenset(MERCY_ACTIONS)


class BoundaryDetectionConfig(BaseModel):
    """Weights and thresholds for boundary detection."""
    model_config = ConfigDict(extra="forbid")

    confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    long_duration_turns: int = Field(default=8, ge=1)
    long_duration_events: int = Field(default=15, ge=1)
    location_change_weight: float = Field(default=0.9, ge=0.0, le=1.0)
    confrontation_resolved_weight: float = Field(default=0.8, ge=0.0, le=1.0)
    mood_shift_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    long_duration_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    recent_event_window: int = Field(default=10, ge=1)


class BoundarySignal(BaseModel):
    type: SignalType
    strength: float = Field(ge=0.0, le=1.0)
    reason: str
    trigger_event_id: str | None = None


class SceneContext(BaseModel):
    scene_id: str = ""
    current_turn: int = 0
    started_turn: int = 0
    event_count: int = 0
    current_location_id: str | None = None
    current_mood: str | None = None


class BoundarySuggestion(BaseModel):
    """Whether to end the current scene, and why."""
    should_end_scene: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    signals: list[BoundarySignal] = Field(default_factory=list)
    scene_context: SceneContext = Field(default_factory=SceneContext)


def combine_signal_strengths(strengths: list[float]) -> float:
    """Geometric-decay combination of signal strengths, capped at 1.0."""
    confidence = 0.0
    weight = 1.0
    for strength in sorted(strengths, reverse=True):
        confidence += strength * weight
        weight *= SIGNAL_DECAY
    return min(confidence, 1.0)


def _latest_location(events: list[CanonicalEvent], fallback: str | None) -> str | None:
    for event in reversed(events):
        if event.location_id is not None:
            return event.location_id
    return fallback


def _last_index(events: list[CanonicalEvent], actions: frozenset[str]) -> int:
    for i in range(len(events) - 1, -1, -1):
        if events[i].action in actions:
            return i
    return -1


class SceneBoundaryDetector:
    """Suggests scene transitions from an EventLog and a SceneStore."""

    def __init__(
        self,
        event_log: EventLog,
        scene_store: SceneStore,
        config: BoundaryDetectionConfig | None = None,
    ):
        self.event_log = event_log
        self.scene_store = scene_store
        self._config = config or BoundaryDetectionConfig()

    # ==== Configuration ====

    def get_config(self) -> BoundaryDetectionConfig:
        """A copy of the current configuration."""
        return self._config.model_copy()

    def update_config(self, **changes) -> BoundaryDetectionConfig:
        """Merge changes into the configuration (validated)."""
        merged = self._config.model_dump() | changes
        try:
            self._config = BoundaryDetectionConfig(**merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid boundary config: {e}") from e
        return self.get_config()

    # ==== Analysis ====

    def analyze(self, game_id: str, current_turn: int) -> BoundarySuggestion:
        """Suggest whether the game's active scene should end.

        Returns a zero suggestion when the game has no active scene.
        """
        scene = self.scene_store.find_active(game_id)
        if scene is None:
            return BoundarySuggestion(scene_context=SceneContext(current_turn=current_turn))

        recent = sorted(
            self.event_log.get_recent_context(game_id, self._config.recent_event_window),
            key=lambda e: e.turn,
        )
        event_count = self.scene_store.count_events_in_scene(scene.id)

        candidates = (
            self._detect_location_change(scene, recent),
            self._detect_confrontation_resolved(recent),
            self._detect_mood_shift(scene, recent),
            self._detect_long_duration(scene, current_turn, event_count),
        )
        signals = [s for s in candidates if s is not None]
        confidence = combine_signal_strengths([s.strength for s in signals])

        for signal in signals:
            logger.debug(f"[{scene.id}] {signal.type} {signal.strength:.2f}: {signal.reason}")

        suggestion = BoundarySuggestion(
            should_end_scene=confidence >= self._config.confidence_threshold,
            confidence=confidence,
            signals=signals,
            scene_context=SceneContext(
                scene_id=scene.id,
                current_turn=current_turn,
                started_turn=scene.started_turn,
                event_count=event_count,
                current_location_id=_latest_location(recent, scene.location_id),
                current_mood=scene.mood,
            ),
        )
        if suggestion.should_end_scene:
            logger.info(
                f"Scene {scene.id} looks finished (confidence {confidence:.2f}, "
                f"{len(signals)} signals)"
            )
        return suggestion

    # ==== Signals ====

    def _detect_location_change(
        self, scene: Scene, recent: list[CanonicalEvent]
    ) -> BoundarySignal | None:
        if not recent:
            return None

        entered = next((e for e in recent if e.action == "enter_location"), None)
        if entered is not None:
            return BoundarySignal(
                type=SignalType.LOCATION_CHANGE,
                strength=self._config.location_change_weight,
                reason="Party entered a new location",
                trigger_event_id=entered.id,
            )

        # events without a location say nothing about where the party is
        located = [e for e in recent if e.location_id is not None]
        if not located:
            return None

        last = located[-1]
        if scene.location_id and last.location_id != scene.location_id:
            transition = self._find_location_transition(located, scene.location_id)
            if transition is not None:
                return BoundarySignal(
                    type=SignalType.LOCATION_CHANGE,
                    strength=self._config.location_change_weight * 0.8,
                    reason=(
                        f"Location changed from scene start "
                        f"({scene.location_id} to {last.location_id})"
                    ),
                    trigger_event_id=transition.id,
                )
        return None

    @staticmethod
    def _find_location_transition(
        events: list[CanonicalEvent], scene_location_id: str
    ) -> CanonicalEvent | None:
        previous = scene_location_id
        for event in events:
            if event.location_id is None:
                continue
            if event.location_id != previous:
                return event
            previous = event.location_id
        return None

    def _detect_confrontation_resolved(
        self, recent: list[CanonicalEvent]
    ) -> BoundarySignal | None:
        if not recent:
            return None
        weight = self._config.confrontation_resolved_weight

        ended = next((e for e in recent if CONFRONTATION_END_TAGS.intersection(e.tags)), None)
        if ended is not None:
            return BoundarySignal(
                type=SignalType.CONFRONTATION_RESOLVED,
                strength=weight,
                reason="Confrontation explicitly ended",
                trigger_event_id=ended.id,
            )

        last_violence = _last_index(recent, _VIOLENCE)
        last_mercy = _last_index(recent, _MERCY)
        if last_violence >= 0 and last_mercy > last_violence:
            return BoundarySignal(
                type=SignalType.CONFRONTATION_RESOLVED,
                strength=weight * 0.7,
                reason="Violence followed by mercy action suggests resolution",
                trigger_event_id=recent[last_mercy].id,
            )

        ongoing = any(CONFRONTATION_TAGS.intersection(e.tags) for e in recent)
        if last_violence >= 0 and not ongoing and recent[-1].action not in _VIOLENCE:
            return BoundarySignal(
                type=SignalType.CONFRONTATION_RESOLVED,
                strength=weight * 0.5,
                reason="Violence occurred but no ongoing confrontation markers",
            )
        return None

    def _detect_mood_shift(
        self, scene: Scene, recent: list[CanonicalEvent]
    ) -> BoundarySignal | None:
        if not scene.mood or len(recent) < 3:
            return None

        inferred = infer_mood(recent)
        if inferred is None or not moods_contrast(scene.mood, inferred):
            return None

        return BoundarySignal(
            type=SignalType.MOOD_SHIFT,
            strength=self._config.mood_shift_weight,
            reason=f"Scene mood ({scene.mood}) contrasts with recent events ({inferred})",
        )

    def _detect_long_duration(
        self, scene: Scene, current_turn: int, event_count: int
    ) -> BoundarySignal | None:
        cfg = self._config

        turns = current_turn - scene.started_turn
        if turns >= cfg.long_duration_turns:
            over = turns - cfg.long_duration_turns
            return BoundarySignal(
                type=SignalType.LONG_DURATION,
                strength=min(cfg.long_duration_weight * (1 + over * 0.1), 1.0),
                reason=f"Scene has lasted {turns} turns (threshold: {cfg.long_duration_turns})",
            )

        if event_count >= cfg.long_duration_events:
            over = event_count - cfg.long_duration_events
            return BoundarySignal(
                type=SignalType.LONG_DURATION,
                strength=min(cfg.long_duration_weight * (1 + over * 0.05), 1.0),
                reason=f"Scene has {event_count} events (threshold: {cfg.long_duration_events})",
            )
        return None


def infer_mood(events: list[CanonicalEvent]) -> str | None:
    """Guess the mood of a run of events, or None if nothing stands out."""
    violence = mercy = social = exploration = 0
    for event in events:
        if event.action in _VIOLENCE:
            violence += 1
        elif event.action in _MERCY:
            mercy += 1
        elif event.action in MOOD_SOCIAL_ACTIONS:
            social += 1
        elif event.action in MOOD_EXPLORATION_ACTIONS:
            exploration += 1

        if event.event_type in DIALOGUE_EVENT_TYPES:
            social += 1

    total = violence + mercy + social + exploration
    if total == 0:
        return None
    if violence > total * 0.4:
        return "action"
    if mercy > total * 0.3:
        return "peaceful"
    if social > total * 0.4:
        return "emotional"
    if exploration > total * 0.4:
        return "mysterious"
    return None


def moods_contrast(first: str, second: str) -> bool:
    return any(
        (first == a and second == b) or (first == b and second == a)
        for a, b in CONTRASTING_MOODS
    )
