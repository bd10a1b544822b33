"""
Emergence detection and DM notifications.

After an event is committed, the detector looks at the relationships
around the actor (and an npc target) and flags NPCs whose feelings have
drifted far enough to make them a plausible villain or ally.  The
notifier persists those opportunities for the DM, suppressing repeats
while an earlier one for the same NPC and role is still pending.

Villain: the NPC both fears and resents the other party.
Ally: trust with respect, or affection with trust, or debt with
respect; blocked while fear or resentment run high.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from ..enums import (
    ActorType,
    EmergenceType,
    EntityType,
    NotificationStatus,
    RelationshipDimension,
    TargetType,
)
from ..errors import ValidationError
from .schemas import (
    CanonicalEvent,
    ContributingFactor,
    EmergenceNotification,
    EmergenceOpportunity,
    EntityRef,
    Relationship,
    RelationshipDimensions,
    utcnow,
)
from .stores import NotificationStore, RelationshipStore
from .traits import TraitLedger

logger = logging.getLogger(__name__)

MIN_REPORTED_CONFIDENCE = 0.3

# Active traits on the NPC that make each role more believable
VILLAIN_SUPPORTING_TRAITS = ("ruthless", "bitter", "volatile", "notorious", "feared")
ALLY_SUPPORTING_TRAITS = ("honorable", "merciful", "hopeful", "beloved")
TRAIT_SUPPORT_STEP = 0.05
TRAIT_SUPPORT_MAX = 0.1

RESOLVED_NOTIFICATION_STATUSES = frozenset({
    NotificationStatus.ACKNOWLEDGED,
    NotificationStatus.DISMISSED,
})


class EmergenceThresholds(BaseModel):
    villain_fear: float = Field(default=0.6, ge=0.0, le=1.0)
    villain_resentment: float = Field(default=0.5, ge=0.0, le=1.0)
    ally_trust: float = Field(default=0.6, ge=0.0, le=1.0)
    ally_respect: float = Field(default=0.6, ge=0.0, le=1.0)
    ally_affection: float = Field(default=0.5, ge=0.0, le=1.0)
    high: float = Field(default=0.8, ge=0.0, le=1.0)
    medium: float = Field(default=0.6, ge=0.0, le=1.0)


class EmergenceDetectionResult(BaseModel):
    event_id: str
    opportunities: list[EmergenceOpportunity] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)


def normalize_above_threshold(value: float, threshold: float) -> float:
    """0 at or below ``threshold``, rising linearly to 1 at 1.0."""
    if value < threshold:
        return 0.0
    span = 1.0 - threshold
    if span <= 0:
        return 1.0
    return min(1.0, (value - threshold) / span)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class EmergenceDetector:
    """Finds villain/ally opportunities around a committed event."""

    def __init__(
        self,
        relationships: RelationshipStore,
        traits: TraitLedger | None = None,
        thresholds: EmergenceThresholds | None = None,
    ):
        self.relationships = relationships
        self.traits = traits
        self.thresholds = thresholds or EmergenceThresholds()

    # ==== Event hook ====

    def on_event_committed(self, event: CanonicalEvent) -> EmergenceDetectionResult:
        """Scan the relationships touched by ``event``."""
        result = EmergenceDetectionResult(event_id=event.id)
        if not event.actor_id or event.actor_type is None or event.actor_type == ActorType.SYSTEM:
            return result

        actor = EntityRef(type=EntityType(event.actor_type.value), id=event.actor_id)
        found: dict[tuple[str, EmergenceType], EmergenceOpportunity] = {}

        for rel in self.relationships.find_relationships_by_entity(event.game_id, actor):
            npc = rel.other(actor)
            if npc.type != EntityType.NPC:
                continue
            self._collect(found, rel, npc, event)

        if event.target_type == TargetType.NPC and event.target_id:
            target = EntityRef(type=EntityType.NPC, id=event.target_id)
            for rel in self.relationships.find_relationships_by_entity(event.game_id, target):
                # Only the NPC's own feelings, and not toward the actor (seen above)
                if rel.source != target or rel.target == actor:
                    continue
                self._collect(found, rel, target, event)

        result.opportunities = list(found.values())
        if result.opportunities:
            logger.info(
                f"Emergence after event {event.id}: "
                + ", ".join(f"{o.entity.id}={o.type}({o.confidence:.2f})" for o in result.opportunities)
            )
        return result

    def _collect(
        self,
        found: dict[tuple[str, EmergenceType], EmergenceOpportunity],
        relationship: Relationship,
        npc: EntityRef,
        event: CanonicalEvent,
    ) -> None:
        for check in (self.check_villain, self.check_ally):
            opportunity = check(relationship.game_id, relationship.dimensions, npc, event.id)
            if opportunity is None:
                continue
            found.setdefault((npc.id, opportunity.type), opportunity)

    # ==== Role checks ====

    def check_villain(
        self,
        game_id: str,
        dims: RelationshipDimensions,
        npc: EntityRef,
        triggering_event_id: str,
    ) -> EmergenceOpportunity | None:
        t = self.thresholds
        if dims.fear < t.villain_fear or dims.resentment < t.villain_resentment:
            return None

        low_trust = dims.trust < 0.3
        low_respect = dims.respect < 0.4
        factors = [
            ContributingFactor(dimension=RelationshipDimension.FEAR, value=dims.fear, threshold=t.villain_fear),
            ContributingFactor(
                dimension=RelationshipDimension.RESENTMENT, value=dims.resentment, threshold=t.villain_resentment
            ),
        ]
        if low_trust:
            factors.append(ContributingFactor(dimension=RelationshipDimension.TRUST, value=dims.trust, threshold=0.3))
        if low_respect:
            factors.append(
                ContributingFactor(dimension=RelationshipDimension.RESPECT, value=dims.respect, threshold=0.4)
            )

        supporting = self._supporting_traits(game_id, npc, VILLAIN_SUPPORTING_TRAITS)
        confidence = _clamp(self.villain_confidence(dims) + self._trait_bonus(supporting))
        if confidence < MIN_REPORTED_CONFIDENCE:
            logger.debug(f"Villain check for {npc.id}: confidence {confidence:.2f} too low")
            return None

        return EmergenceOpportunity(
            type=EmergenceType.VILLAIN,
            entity=npc,
            confidence=confidence,
            reason=self._villain_reason(dims, low_trust, low_respect, supporting),
            triggering_event_id=triggering_event_id,
            contributing_factors=factors,
        )

    def check_ally(
        self,
        game_id: str,
        dims: RelationshipDimensions,
        npc: EntityRef,
        triggering_event_id: str,
    ) -> EmergenceOpportunity | None:
        t = self.thresholds
        trust_respect, friendship, debt = self._ally_paths(dims)
        if not (trust_respect or friendship or debt):
            return None
        if dims.fear >= 0.5 or dims.resentment >= 0.5:
            return None

        factors: list[ContributingFactor] = []
        if trust_respect:
            factors.append(ContributingFactor(dimension=RelationshipDimension.TRUST, value=dims.trust, threshold=t.ally_trust))
            factors.append(
                ContributingFactor(dimension=RelationshipDimension.RESPECT, value=dims.respect, threshold=t.ally_respect)
            )
        if friendship:
            factors.append(
                ContributingFactor(dimension=RelationshipDimension.AFFECTION, value=dims.affection, threshold=t.ally_affection)
            )
        if debt:
            factors.append(ContributingFactor(dimension=RelationshipDimension.DEBT, value=dims.debt, threshold=0.6))

        supporting = self._supporting_traits(game_id, npc, ALLY_SUPPORTING_TRAITS)
        confidence = _clamp(self.ally_confidence(dims) + self._trait_bonus(supporting))
        if confidence < MIN_REPORTED_CONFIDENCE:
            logger.debug(f"Ally check for {npc.id}: confidence {confidence:.2f} too low")
            return None

        return EmergenceOpportunity(
            type=EmergenceType.ALLY,
            entity=npc,
            confidence=confidence,
            reason=self._ally_reason(dims, trust_respect, friendship, debt, supporting),
            triggering_event_id=triggering_event_id,
            contributing_factors=factors,
        )

    # ==== Confidence ====

    def villain_confidence(self, dims: RelationshipDimensions) -> float:
        t = self.thresholds
        confidence = (
            normalize_above_threshold(dims.fear, t.villain_fear)
            + normalize_above_threshold(dims.resentment, t.villain_resentment)
        ) / 2

        if dims.fear >= t.high:
            confidence += 0.1
        if dims.resentment >= t.high:
            confidence += 0.1
        if dims.trust < 0.3:
            confidence += 0.1
        if dims.respect >= 0.5:
            confidence -= 0.15
        if dims.affection >= 0.4:
            confidence -= 0.1
        return _clamp(confidence)

    def ally_confidence(self, dims: RelationshipDimensions) -> float:
        t = self.thresholds
        trust_respect, friendship, debt = self._ally_paths(dims)

        scores = []
        if trust_respect:
            scores.append(
                (
                    normalize_above_threshold(dims.trust, t.ally_trust)
                    + normalize_above_threshold(dims.respect, t.ally_respect)
                ) / 2
            )
        if friendship:
            scores.append(normalize_above_threshold(dims.affection, t.ally_affection))
        if debt:
            # Obligation is a weaker bond than trust or affection
            scores.append(normalize_above_threshold(dims.debt, 0.6) * 0.8)

        confidence = sum(scores) / len(scores) if scores else 0.0
        if len(scores) >= 2:
            confidence += 0.1
        if len(scores) >= 3:
            confidence += 0.1
        if dims.fear >= 0.3:
            confidence -= 0.15
        if dims.resentment >= 0.3:
            confidence -= 0.15
        return _clamp(confidence)

    def _ally_paths(self, dims: RelationshipDimensions) -> tuple[bool, bool, bool]:
        t = self.thresholds
        return (
            dims.trust >= t.ally_trust and dims.respect >= t.ally_respect,
            dims.affection >= t.ally_affection and dims.trust >= 0.5,
            dims.debt >= 0.6 and dims.respect >= 0.5,
        )

    # ==== Traits ====

    def _supporting_traits(self, game_id: str, npc: EntityRef, candidates: tuple[str, ...]) -> list[str]:
        if self.traits is None:
            return []
        held = set(self.traits.get_trait_names(game_id, npc))
        return [trait for trait in candidates if trait in held]

    @staticmethod
    def _trait_bonus(supporting: list[str]) -> float:
        return min(TRAIT_SUPPORT_MAX, TRAIT_SUPPORT_STEP * len(supporting))

    # ==== Reasons ====

    def _villain_reason(
        self,
        dims: RelationshipDimensions,
        low_trust: bool,
        low_respect: bool,
        supporting: list[str],
    ) -> str:
        high = self.thresholds.high
        parts = [
            "deeply fears the party" if dims.fear >= high else "fears the party",
            "harbors deep resentment" if dims.resentment >= high else "harbors resentment",
        ]
        if low_trust and low_respect:
            parts.append("with no trust or respect remaining")
        elif low_trust:
            parts.append("with broken trust")
        elif low_respect:
            parts.append("with no respect")

        reason = f"NPC {', '.join(parts)}. May seek revenge or opposition."
        if supporting:
            reason += f" Traits: {', '.join(supporting)}."
        return reason

    def _ally_reason(
        self,
        dims: RelationshipDimensions,
        trust_respect: bool,
        friendship: bool,
        debt: bool,
        supporting: list[str],
    ) -> str:
        high = self.thresholds.high
        paths = []
        if trust_respect:
            if dims.trust >= high and dims.respect >= high:
                paths.append("has earned deep trust and respect")
            else:
                paths.append("has earned trust and respect")
        if friendship:
            paths.append("has formed a strong bond" if dims.affection >= high else "has befriended them")
        if debt:
            paths.append("feels indebted to the party")

        reason = f"NPC {' and '.join(paths)}. May offer aid or join the party."
        if supporting:
            reason += f" Traits: {', '.join(supporting)}."
        return reason


class EmergenceNotifier:
    """Persists emergence opportunities for the DM and tracks their review."""

    def __init__(self, detector: EmergenceDetector, store: NotificationStore):
        self.detector = detector
        self.store = store

    def process_event(self, event: CanonicalEvent) -> list[EmergenceNotification]:
        """Detect opportunities for ``event`` and queue the new ones.

        Opportunities matching a still-pending notification for the same
        NPC and role are suppressed.
        """
        result = self.detector.on_event_committed(event)
        created: list[EmergenceNotification] = []

        for opportunity in result.opportunities:
            if self.store.exists_similar(event.game_id, opportunity.entity.id, opportunity.type):
                logger.debug(
                    f"Suppressed duplicate {opportunity.type} notification for {opportunity.entity.id}"
                )
                continue
            notification = self.store.create_notification(event.game_id, opportunity)
            if notification is None:
                # Lost a race to a concurrent writer; theirs stands
                logger.debug(
                    f"Suppressed concurrent {opportunity.type} notification for {opportunity.entity.id}"
                )
                continue
            logger.info(
                f"Emergence notification {notification.id}: {opportunity.entity.id} "
                f"may become {opportunity.type} ({opportunity.confidence:.2f})"
            )
            created.append(notification)

        return created

    # ==== DM review ====

    def resolve(
        self,
        notification_id: str,
        status: NotificationStatus | str,
        dm_notes: str | None = None,
    ) -> EmergenceNotification | None:
        """Acknowledge or dismiss a pending notification exactly once.

        Returns the updated notification; the stored record unchanged if it
        was already resolved; None for unknown ids.

        Raises:
            ValidationError: ``status`` is not acknowledged or dismissed.
        """
        try:
            status = NotificationStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown notification status: {status!r}") from e
        if status not in RESOLVED_NOTIFICATION_STATUSES:
            raise ValidationError(f"Notifications resolve to acknowledged or dismissed, not {status}")

        updated = self.store.transition_notification(notification_id, status, dm_notes)
        if updated is not None:
            logger.info(f"Emergence notification {notification_id} {status}")
            return updated

        current = self.store.get_notification(notification_id)
        if current is None:
            logger.warning(f"Notification {notification_id} not found")
        else:
            logger.warning(f"Notification {notification_id} already {current.status}")
        return current

    def acknowledge(self, notification_id: str, dm_notes: str | None = None) -> EmergenceNotification | None:
        return self.resolve(notification_id, NotificationStatus.ACKNOWLEDGED, dm_notes)

    def dismiss(self, notification_id: str, dm_notes: str | None = None) -> EmergenceNotification | None:
        return self.resolve(notification_id, NotificationStatus.DISMISSED, dm_notes)

    # ==== Queries ====

    def get_pending(self, game_id: str) -> list[EmergenceNotification]:
        return self.store.find_notifications(game_id, NotificationStatus.PENDING)

    def get_notifications(self, game_id: str, limit: int | None = None) -> list[EmergenceNotification]:
        return self.store.find_notifications(game_id, limit=limit)

    def get_notification(self, notification_id: str) -> EmergenceNotification | None:
        return self.store.get_notification(notification_id)

    def clear(self, game_id: str) -> int:
        return self.store.delete_notifications_by_game(game_id)
