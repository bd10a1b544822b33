"""
System Evolution Detector.

Rule-based proposer that scans event text for keywords and suggests
trait and relationship evolutions without any model in the loop.  It
never touches the ledgers directly: everything it finds is queued as a
pending proposal for the DM.

Relationship effects describe how the *target* now feels about the
actor.  When an event has no target, every witness (assumed to be an
npc) is affected at half strength.
"""

import logging

from pydantic import BaseModel

from ..enums import ActorType, EntityType, EvolutionType, RelationshipDimension
from .evolution import EvolutionWorkflow
from .schemas import CanonicalEvent, EntityRef, PendingEvolution

logger = logging.getLogger(__name__)

TRAIT_KEYWORDS: dict[str, tuple[str, ...]] = {
    # Moral
    "merciful": ("spare", "mercy", "forgive", "let go", "compassion", "release"),
    "ruthless": ("kill", "execute", "destroy", "crush", "eliminate", "no mercy"),
    "honorable": ("promise", "oath", "honor", "fair fight", "keep word", "honest"),
    "pragmatic": ("practical", "efficient", "expedient", "necessary evil"),
    "idealistic": ("principle", "belief", "ideal", "moral", "righteous"),
    # Emotional
    "haunted": ("nightmare", "trauma", "regret", "guilt", "torment", "haunt"),
    "hopeful": ("hope", "optimistic", "bright side", "believe", "faith"),
    "bitter": ("resent", "bitter", "grudge", "never forget", "vengeance"),
    # Capability
    "battle-hardened": ("combat", "fight", "battle", "victory", "defeat enemy", "slay"),
    "scholarly": ("study", "research", "learn", "knowledge", "tome", "book", "ancient text"),
    "street-wise": ("survive", "street", "hustle", "quick thinking", "resourceful"),
    "cunning": ("clever", "trick", "outsmart", "scheme", "manipulate", "deceive"),
    # Reputation
    "feared": ("terror", "flee", "cower", "intimidate", "fear me"),
    "beloved": ("beloved", "adore", "love", "cherish", "grateful"),
    "notorious": ("infamous", "notorious", "criminal", "villain"),
    "legendary": ("legend", "famous", "renowned", "hero", "great deed"),
}

_T = RelationshipDimension
RELATIONSHIP_KEYWORDS: dict[str, tuple[tuple[RelationshipDimension, float], ...]] = {
    # Trust
    "help": ((_T.TRUST, 0.1),),
    "save": ((_T.TRUST, 0.15), (_T.AFFECTION, 0.1)),
    "protect": ((_T.TRUST, 0.1),),
    "honest": ((_T.TRUST, 0.1),),
    "truth": ((_T.TRUST, 0.05),),
    "betray": ((_T.TRUST, -0.3), (_T.RESENTMENT, 0.2)),
    "lie": ((_T.TRUST, -0.15),),
    "deceive": ((_T.TRUST, -0.2),),
    "abandon": ((_T.TRUST, -0.2), (_T.RESENTMENT, 0.15)),
    # Respect
    "impress": ((_T.RESPECT, 0.1),),
    "skill": ((_T.RESPECT, 0.05),),
    "wise": ((_T.RESPECT, 0.1),),
    "victory": ((_T.RESPECT, 0.1),),
    "honor": ((_T.RESPECT, 0.1),),
    "humiliate": ((_T.RESPECT, -0.2), (_T.RESENTMENT, 0.15)),
    "mock": ((_T.RESPECT, -0.1),),
    "coward": ((_T.RESPECT, -0.15),),
    # Fear
    "threaten": ((_T.FEAR, 0.15),),
    "intimidate": ((_T.FEAR, 0.2),),
    "torture": ((_T.FEAR, 0.3), (_T.RESENTMENT, 0.2)),
    "kill": ((_T.FEAR, 0.25),),
    # Debt
    "owe": ((_T.DEBT, 0.2),),
    "favor": ((_T.DEBT, 0.15),),
    "gift": ((_T.AFFECTION, 0.1), (_T.DEBT, 0.1)),
}

WITNESS_STRENGTH = 0.5
PATTERN_THRESHOLD = 3
SIGNIFICANCE_THRESHOLD = 0.1


class TraitDetection(BaseModel):
    entity: EntityRef
    trait: str
    reason: str


class RelationshipDetection(BaseModel):
    source: EntityRef
    target: EntityRef
    dimension: RelationshipDimension
    change: float
    reason: str


def _first_keyword(content: str, keywords: tuple[str, ...]) -> str | None:
    return next((k for k in keywords if k in content), None)


def detect_traits_from_event(event: CanonicalEvent, actor: EntityRef) -> list[TraitDetection]:
    """Traits suggested by one event's text; each trait at most once."""
    content = event.content.lower()
    detections = []
    for trait, keywords in TRAIT_KEYWORDS.items():
        keyword = _first_keyword(content, keywords)
        if keyword:
            detections.append(
                TraitDetection(
                    entity=actor,
                    trait=trait,
                    reason=f'Event contains "{keyword}" suggesting {trait} behavior',
                )
            )
    return detections


def detect_relationships_from_event(
    event: CanonicalEvent,
    actor: EntityRef,
    target: EntityRef | None = None,
) -> list[RelationshipDetection]:
    """Relationship deltas implied by one event's text.

    Without a target, each witness is affected at half strength.
    """
    content = event.content.lower()
    matched = [(k, impacts) for k, impacts in RELATIONSHIP_KEYWORDS.items() if k in content]

    if target is None:
        return [
            RelationshipDetection(
                source=EntityRef(type=EntityType.NPC, id=witness),
                target=actor,
                dimension=dimension,
                change=change * WITNESS_STRENGTH,
                reason=f'Witnessed event containing "{keyword}"',
            )
            for keyword, impacts in matched
            for witness in event.witnesses
            for dimension, change in impacts
        ]

    return [
        RelationshipDetection(
            source=target,
            target=actor,
            dimension=dimension,
            change=change,
            reason=f'Event contains "{keyword}" affecting {dimension}',
        )
        for keyword, impacts in matched
        for dimension, change in impacts
    ]


def detect_traits_from_patterns(
    events: list[CanonicalEvent],
    actor: EntityRef,
    threshold: int = PATTERN_THRESHOLD,
) -> list[TraitDetection]:
    """Traits whose keywords recur in at least ``threshold`` events."""
    hits: dict[str, list[str]] = {}
    for event in events:
        content = event.content.lower()
        for trait, keywords in TRAIT_KEYWORDS.items():
            keyword = _first_keyword(content, keywords)
            if keyword:
                hits.setdefault(trait, []).append(f'Turn {event.turn}: "{keyword}"')

    detections = []
    for trait, reasons in hits.items():
        if len(reasons) < threshold:
            continue
        more = "..." if len(reasons) > 3 else ""
        detections.append(
            TraitDetection(
                entity=actor,
                trait=trait,
                reason=(
                    f"Repeated {trait} actions ({len(reasons)} occurrences): "
                    f"{', '.join(reasons[:3])}{more}"
                ),
            )
        )
    return detections


def aggregate_relationship_changes(
    events: list[CanonicalEvent],
    actor: EntityRef,
    target: EntityRef,
) -> list[RelationshipDetection]:
    """Sum per-dimension deltas across events, keeping significant totals."""
    totals = {dimension: 0.0 for dimension in RelationshipDimension}
    reasons: dict[RelationshipDimension, list[str]] = {dimension: [] for dimension in RelationshipDimension}

    for event in events:
        for detection in detect_relationships_from_event(event, actor, target):
            totals[detection.dimension] += detection.change
            reasons[detection.dimension].append(detection.reason)

    detections = []
    for dimension, total in totals.items():
        if abs(total) < SIGNIFICANCE_THRESHOLD:
            continue
        more = "..." if len(reasons[dimension]) > 2 else ""
        detections.append(
            RelationshipDetection(
                source=target,
                target=actor,
                dimension=dimension,
                change=total,
                reason=f"Cumulative {dimension} change: {'; '.join(reasons[dimension][:2])}{more}",
            )
        )
    return detections


def merge_relationship_detections(
    detections: list[RelationshipDetection],
) -> list[RelationshipDetection]:
    """Collapse detections for the same pair and dimension into one.

    Approved relationship proposals set absolute values, so two proposals
    on one dimension from the same event would overwrite each other.
    """
    merged: dict[tuple[EntityRef, EntityRef, RelationshipDimension], RelationshipDetection] = {}
    for detection in detections:
        key = (detection.source, detection.target, detection.dimension)
        existing = merged.get(key)
        if existing is None:
            merged[key] = detection.model_copy()
        else:
            existing.change += detection.change
            existing.reason = f"{existing.reason}; {detection.reason}"
    return list(merged.values())


def _event_actor(event: CanonicalEvent) -> EntityRef | None:
    if not event.actor_id or event.actor_type is None or event.actor_type == ActorType.SYSTEM:
        return None
    return EntityRef(type=EntityType(event.actor_type.value), id=event.actor_id)


def _event_target(event: CanonicalEvent) -> EntityRef | None:
    if not event.target_id or event.target_type is None:
        return None
    try:
        return EntityRef(type=EntityType(event.target_type.value), id=event.target_id)
    except ValueError:
        # Areas and objects don't hold relationships
        return None


class SystemEvolutionDetector:
    """Queues keyword-driven proposals through an EvolutionWorkflow."""

    def __init__(self, workflow: EvolutionWorkflow):
        self.workflow = workflow

    def propose_from_event(self, event: CanonicalEvent) -> list[PendingEvolution]:
        """Queue trait and relationship proposals suggested by ``event``."""
        actor = _event_actor(event)
        if actor is None:
            return []

        proposals = []
        for detection in detect_traits_from_event(event, actor):
            proposal = self._propose_trait(event.game_id, event.turn, detection, event.id)
            if proposal is not None:
                proposals.append(proposal)

        detections = detect_relationships_from_event(event, actor, _event_target(event))
        for detection in merge_relationship_detections(detections):
            proposals.append(self._propose_relationship(event, detection))

        if proposals:
            logger.info(f"Event {event.id}: queued {len(proposals)} system proposals")
        return proposals

    def propose_from_history(
        self,
        events: list[CanonicalEvent],
        actor: EntityRef,
        threshold: int = PATTERN_THRESHOLD,
    ) -> list[PendingEvolution]:
        """Queue trait proposals for keyword patterns repeated across events."""
        if not events:
            return []
        latest = max(events, key=lambda e: e.turn)
        proposals = []
        for detection in detect_traits_from_patterns(events, actor, threshold):
            proposal = self._propose_trait(latest.game_id, latest.turn, detection)
            if proposal is not None:
                proposals.append(proposal)
        return proposals

    def _propose_trait(
        self,
        game_id: str,
        turn: int,
        detection: TraitDetection,
        source_event_id: str | None = None,
    ) -> PendingEvolution | None:
        if self.workflow.traits.has_trait(game_id, detection.entity, detection.trait):
            logger.debug(f"Skipping trait proposal: {detection.entity} already '{detection.trait}'")
            return None
        return self.workflow.propose(
            game_id,
            turn,
            EvolutionType.TRAIT_ADD,
            detection.entity,
            trait=detection.trait,
            reason=detection.reason,
            source_event_id=source_event_id,
        )

    def _propose_relationship(
        self, event: CanonicalEvent, detection: RelationshipDetection
    ) -> PendingEvolution:
        return self.workflow.propose_relationship_delta(
            event.game_id,
            event.turn,
            detection.source,
            detection.target,
            detection.dimension,
            detection.change,
            reason=detection.reason,
            source_event_id=event.id,
        )
