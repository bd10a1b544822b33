"""Tests for villain/ally emergence detection and DM notifications."""

import pytest

from reckoning.core.emergence import EmergenceDetector, EmergenceThresholds, normalize_above_threshold
from reckoning.core.schemas import EmergenceOpportunity, EntityRef, RelationshipDimensions
from reckoning.enums import EmergenceType, EntityType, NotificationStatus, RelationshipDimension
from reckoning.errors import ValidationError

GAME_ID = "game-1"
HERO = EntityRef(type=EntityType.PLAYER, id="hero")
GRETA = EntityRef(type=EntityType.NPC, id="greta")
MARCUS = EntityRef(type=EntityType.NPC, id="marcus")

VILLAIN_DIMS = RelationshipDimensions(trust=0.2, respect=0.3, affection=0.2, fear=0.8, resentment=0.8)
ALLY_DIMS = RelationshipDimensions(trust=0.8, respect=0.8)


@pytest.fixture
def feel(state):
    """Store how ``source`` feels about ``target``."""

    def _feel(source, target, dims, turn=1):
        return state.upsert_relationship(GAME_ID, source, target, dims, turn)

    return _feel


@pytest.fixture
def detector(state, traits):
    return EmergenceDetector(state, traits)


class TestNormalize:
    def test_below_threshold_is_zero(self):
        assert normalize_above_threshold(0.4, 0.5) == 0.0

    def test_linear_to_one(self):
        assert normalize_above_threshold(0.75, 0.5) == pytest.approx(0.5)
        assert normalize_above_threshold(1.0, 0.5) == 1.0

    def test_threshold_of_one(self):
        assert normalize_above_threshold(1.0, 1.0) == 1.0


class TestDetector:
    def test_villain(self, detector, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)
        event = make_event(turn=2)

        result = detector.on_event_committed(event)

        assert result.event_id == event.id
        assert len(result.opportunities) == 1
        opp = result.opportunities[0]
        assert opp.type == EmergenceType.VILLAIN
        assert opp.entity == GRETA
        assert opp.confidence == pytest.approx(0.85)
        assert opp.triggering_event_id == event.id
        assert opp.reason == (
            "NPC deeply fears the party, harbors deep resentment, with no trust or "
            "respect remaining. May seek revenge or opposition."
        )
        assert [f.dimension for f in opp.contributing_factors] == [
            RelationshipDimension.FEAR,
            RelationshipDimension.RESENTMENT,
            RelationshipDimension.TRUST,
            RelationshipDimension.RESPECT,
        ]

    def test_ally(self, detector, feel, make_event):
        feel(GRETA, HERO, ALLY_DIMS)

        opp = detector.on_event_committed(make_event()).opportunities[0]

        assert opp.type == EmergenceType.ALLY
        assert opp.confidence == pytest.approx(0.35)
        assert opp.reason == (
            "NPC has earned deep trust and respect and has befriended them. "
            "May offer aid or join the party."
        )

    def test_ally_blocked_by_fear(self, detector):
        dims = RelationshipDimensions(trust=0.9, respect=0.9, fear=0.5)

        assert detector.check_ally(GAME_ID, dims, GRETA, "evt") is None

    def test_low_confidence_not_reported(self, detector):
        dims = RelationshipDimensions(fear=0.6, resentment=0.5)

        assert detector.villain_confidence(dims) == 0.0
        assert detector.check_villain(GAME_ID, dims, GRETA, "evt") is None

    def test_supporting_traits_raise_confidence(self, detector, traits):
        dims = RelationshipDimensions(trust=0.5, respect=0.3, affection=0.2, fear=0.7, resentment=0.7)
        base = detector.check_villain(GAME_ID, dims, GRETA, "evt")
        for trait in ("ruthless", "bitter", "feared"):
            traits.add_trait(GAME_ID, GRETA, trait, 1)

        boosted = detector.check_villain(GAME_ID, dims, GRETA, "evt")

        assert base.confidence == pytest.approx(0.325)
        assert boosted.confidence == pytest.approx(0.425)
        assert boosted.reason.endswith(" Traits: ruthless, bitter, feared.")

    def test_custom_thresholds(self, state):
        strict = EmergenceDetector(state, thresholds=EmergenceThresholds(villain_fear=0.9))

        assert strict.check_villain(GAME_ID, VILLAIN_DIMS, GRETA, "evt") is None

    def test_non_npc_counterparts_are_skipped(self, detector, feel, make_event):
        feel(EntityRef(type=EntityType.CHARACTER, id="sidekick"), HERO, VILLAIN_DIMS)

        assert detector.on_event_committed(make_event()).opportunities == []

    def test_npc_target_own_feelings(self, detector, feel, make_event):
        feel(MARCUS, GRETA, VILLAIN_DIMS)
        event = make_event(target_type="npc", target_id="marcus")

        opps = detector.on_event_committed(event).opportunities

        assert [(o.entity, o.type) for o in opps] == [(MARCUS, EmergenceType.VILLAIN)]

    def test_system_events_are_skipped(self, detector, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)
        event = make_event(actor_type="system", actor_id="engine")

        assert detector.on_event_committed(event).opportunities == []


class TestNotifier:
    def test_creates_pending_notification(self, notifier, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)

        created = notifier.process_event(make_event())

        assert len(created) == 1
        assert created[0].status == NotificationStatus.PENDING
        stored = notifier.get_notification(created[0].id)
        assert stored.opportunity.entity == GRETA
        assert len(stored.opportunity.contributing_factors) == 4

    def test_duplicate_pending_is_suppressed(self, notifier, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)
        notifier.process_event(make_event(turn=1))

        assert notifier.process_event(make_event(turn=2)) == []
        assert len(notifier.get_pending(GAME_ID)) == 1

    def test_new_notification_after_dismissal(self, notifier, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)
        first = notifier.process_event(make_event(turn=1))[0]
        notifier.dismiss(first.id)

        again = notifier.process_event(make_event(turn=2))

        assert len(again) == 1
        assert len(notifier.get_notifications(GAME_ID)) == 2

    def test_store_rejects_concurrent_duplicate(self, state):
        opportunity = EmergenceOpportunity(
            type=EmergenceType.ALLY, entity=GRETA, confidence=0.5, reason="r", triggering_event_id="evt"
        )

        assert state.create_notification(GAME_ID, opportunity) is not None
        assert state.create_notification(GAME_ID, opportunity) is None
        assert len(state.find_notifications(GAME_ID)) == 1

    def test_acknowledge_once(self, notifier, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)
        note = notifier.process_event(make_event())[0]

        acked = notifier.acknowledge(note.id, dm_notes="Set up the ambush")
        dismissed = notifier.dismiss(note.id)

        assert acked.status == NotificationStatus.ACKNOWLEDGED
        assert acked.dm_notes == "Set up the ambush"
        assert acked.resolved_at is not None
        assert dismissed.status == NotificationStatus.ACKNOWLEDGED
        assert notifier.get_pending(GAME_ID) == []

    def test_resolve_unknown_and_invalid(self, notifier):
        assert notifier.acknowledge("missing") is None
        with pytest.raises(ValidationError):
            notifier.resolve("missing", "pending")

    def test_limit_and_clear(self, notifier, feel, make_event):
        feel(GRETA, HERO, VILLAIN_DIMS)
        feel(MARCUS, HERO, ALLY_DIMS)
        notifier.process_event(make_event())

        assert len(notifier.get_notifications(GAME_ID, limit=1)) == 1
        assert notifier.clear(GAME_ID) == 2
        assert notifier.get_notifications(GAME_ID) == []
