"""Tests for keyword-driven evolution detection."""

import pytest

from reckoning.core.evolution_detector import (
    SystemEvolutionDetector,
    aggregate_relationship_changes,
    detect_relationships_from_event,
    detect_traits_from_event,
    detect_traits_from_patterns,
    merge_relationship_detections,
)
from reckoning.core.schemas import EntityRef
from reckoning.enums import EntityType, EvolutionStatus, EvolutionType, RelationshipDimension

GAME_ID = "game-1"
HERO = EntityRef(type=EntityType.PLAYER, id="hero")
CHILD = EntityRef(type=EntityType.NPC, id="child")


@pytest.fixture
def detector(workflow):
    return SystemEvolutionDetector(workflow)


class TestDetection:
    def test_trait_keyword(self, make_event):
        detections = detect_traits_from_event(make_event(content="You spare the bandit."), HERO)

        assert [d.trait for d in detections] == ["merciful"]
        assert '"spare"' in detections[0].reason

    def test_matching_is_case_insensitive(self, make_event):
        detections = detect_traits_from_event(make_event(content="NO MERCY for them"), HERO)

        assert "ruthless" in [d.trait for d in detections]

    def test_relationship_effects_point_at_actor(self, make_event):
        event = make_event(content="You save the child.")

        detections = detect_relationships_from_event(event, HERO, CHILD)

        assert {(d.source, d.target) for d in detections} == {(CHILD, HERO)}
        assert {d.dimension: d.change for d in detections} == {
            RelationshipDimension.TRUST: 0.15,
            RelationshipDimension.AFFECTION: 0.1,
        }

    def test_witnesses_at_half_strength(self, make_event):
        event = make_event(content="You threaten the guard.", witnesses=["greta", "marcus"])

        detections = detect_relationships_from_event(event, HERO)

        assert sorted(d.source.id for d in detections) == ["greta", "marcus"]
        assert all(d.change == pytest.approx(0.075) for d in detections)
        assert all(d.source.type == EntityType.NPC for d in detections)

    def test_merge_sums_same_dimension(self, make_event):
        event = make_event(content="You save the child and protect her.")

        merged = merge_relationship_detections(detect_relationships_from_event(event, HERO, CHILD))

        by_dim = {d.dimension: d.change for d in merged}
        assert by_dim[RelationshipDimension.TRUST] == pytest.approx(0.25)
        assert by_dim[RelationshipDimension.AFFECTION] == pytest.approx(0.1)

    def test_patterns_need_repetition(self, make_event):
        events = [make_event(turn=t, content="You spare him.") for t in (1, 2)]
        assert detect_traits_from_patterns(events, HERO) == []

        events.append(make_event(turn=3, content="Mercy again."))
        detections = detect_traits_from_patterns(events, HERO)

        assert [d.trait for d in detections] == ["merciful"]
        assert "3 occurrences" in detections[0].reason

    def test_aggregate_drops_insignificant_totals(self, make_event):
        events = [
            make_event(turn=1, content="You betray her."),
            make_event(turn=2, content="You help her."),
            make_event(turn=3, content="You lie."),
        ]

        detections = aggregate_relationship_changes(events, HERO, CHILD)

        by_dim = {d.dimension: d.change for d in detections}
        assert by_dim[RelationshipDimension.TRUST] == pytest.approx(-0.35)
        assert by_dim[RelationshipDimension.RESENTMENT] == pytest.approx(0.2)
        assert RelationshipDimension.FEAR not in by_dim


class TestSystemEvolutionDetector:
    def test_queues_trait_proposal(self, detector, workflow, make_event):
        event = make_event(turn=3, content="You spare the bandit.")

        proposals = detector.propose_from_event(event)

        assert len(proposals) == 1
        assert proposals[0].evolution_type == EvolutionType.TRAIT_ADD
        assert proposals[0].trait == "merciful"
        assert proposals[0].source_event_id == event.id
        assert workflow.get(proposals[0].id).status == EvolutionStatus.PENDING

    def test_queues_merged_relationship_proposals(self, detector, make_event):
        event = make_event(
            turn=2, content="You save the child and protect her.", target_type="npc", target_id="child"
        )

        proposals = detector.propose_from_event(event)

        by_dim = {p.dimension: p for p in proposals}
        assert set(by_dim) == {RelationshipDimension.TRUST, RelationshipDimension.AFFECTION}
        assert by_dim[RelationshipDimension.TRUST].entity == CHILD
        assert by_dim[RelationshipDimension.TRUST].target == HERO
        assert by_dim[RelationshipDimension.TRUST].old_value == 0.5
        assert by_dim[RelationshipDimension.TRUST].new_value == pytest.approx(0.75)

    def test_area_target_falls_back_to_witnesses(self, detector, make_event):
        event = make_event(
            content="You threaten everyone.", target_type="area", target_id="market", witnesses=["greta"]
        )

        proposals = detector.propose_from_event(event)

        assert [p.entity.id for p in proposals] == ["greta"]

    def test_skips_system_events(self, detector, make_event):
        event = make_event(content="You spare the bandit.", actor_type="system", actor_id="engine")

        assert detector.propose_from_event(event) == []

    def test_skips_traits_already_held(self, detector, traits, make_event):
        traits.add_trait(GAME_ID, HERO, "merciful", 1)

        assert detector.propose_from_event(make_event(content="You spare the bandit.")) == []

    def test_propose_from_history(self, detector, make_event):
        events = [make_event(turn=t, content="You spare him.") for t in (2, 5, 4)]

        proposals = detector.propose_from_history(events, HERO)

        assert len(proposals) == 1
        assert proposals[0].turn == 5
        assert proposals[0].source_event_id is None

    def test_propose_from_history_empty(self, detector):
        assert detector.propose_from_history([], HERO) == []
