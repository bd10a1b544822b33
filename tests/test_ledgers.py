"""Tests for RelationshipLedger, TraitLedger and the trait catalog."""

import pytest

from reckoning.core.relationships import clamp_unit, compute_aggregate_label
from reckoning.core.schemas import EntityRef, RelationshipDimensions, RelationshipKey
from reckoning.core.traits import TRAIT_CATALOG, TraitLedger
from reckoning.enums import AggregateLabel, EntityType, TraitCategory, TraitStatus
from reckoning.errors import ConflictError, ValidationError

GAME_ID = "game-1"
HERO = EntityRef(type=EntityType.PLAYER, id="hero")
GRETA = EntityRef(type=EntityType.NPC, id="greta")
MARCUS = EntityRef(type=EntityType.NPC, id="marcus")


@pytest.fixture
def greta_to_hero():
    return RelationshipKey(game_id=GAME_ID, source=GRETA, target=HERO)


class TestAggregateLabel:
    @pytest.mark.parametrize("dims,label", [
        ({}, AggregateLabel.INDIFFERENT),
        ({"trust": 0.8, "affection": 0.8, "respect": 0.7}, AggregateLabel.DEVOTED),
        ({"trust": 0.7, "respect": 0.7}, AggregateLabel.ALLY),
        ({"affection": 0.7, "trust": 0.55}, AggregateLabel.FRIEND),
        ({"respect": 0.6, "resentment": 0.6}, AggregateLabel.RIVAL),
        ({"respect": 0.3, "fear": 0.6, "resentment": 0.7}, AggregateLabel.ENEMY),
        ({"fear": 0.8}, AggregateLabel.TERRIFIED),
        ({"resentment": 0.7, "respect": 0.4}, AggregateLabel.RESENTFUL),
        ({"debt": 0.7}, AggregateLabel.INDEBTED),
        ({"trust": 0.2}, AggregateLabel.WARY),
        ({"fear": 0.45}, AggregateLabel.WARY),
    ])
    def test_rules(self, dims, label):
        assert compute_aggregate_label(RelationshipDimensions(**dims)) == label

    def test_first_matching_rule_wins(self):
        # Satisfies both devoted and ally
        dims = RelationshipDimensions(trust=0.9, respect=0.9, affection=0.9)
        assert compute_aggregate_label(dims) == AggregateLabel.DEVOTED


class TestClamp:
    def test_clamps_into_unit_interval(self):
        assert clamp_unit(1.4) == 1.0
        assert clamp_unit(-0.2) == 0.0
        assert clamp_unit(0.25) == 0.25

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), None])
    def test_rejects_non_finite(self, bad):
        with pytest.raises(ValidationError):
            clamp_unit(bad)


class TestRelationshipLedger:
    def test_unseen_pair_reads_defaults(self, relationships, greta_to_hero):
        assert relationships.get(greta_to_hero) is None
        assert relationships.get_dimensions(greta_to_hero) == RelationshipDimensions()
        assert relationships.label(greta_to_hero) == AggregateLabel.INDIFFERENT

    def test_apply_creates_then_updates(self, relationships, greta_to_hero):
        relationships.apply(greta_to_hero, "trust", 0.8, turn=3)
        updated = relationships.apply(greta_to_hero, "respect", 0.9, turn=4)

        assert updated.dimensions.trust == 0.8
        assert updated.dimensions.respect == 0.9
        assert updated.updated_turn == 4
        assert len(relationships.find_by_game(GAME_ID)) == 1
        assert relationships.label(greta_to_hero) == AggregateLabel.ALLY

    def test_apply_clamps(self, relationships, greta_to_hero):
        assert relationships.apply(greta_to_hero, "fear", 3.0).dimensions.fear == 1.0

    def test_apply_rejects_unknown_dimension(self, relationships, greta_to_hero):
        with pytest.raises(ValidationError):
            relationships.apply(greta_to_hero, "loyalty", 0.5)

    def test_relationships_are_directional(self, relationships, greta_to_hero):
        relationships.apply(greta_to_hero, "fear", 0.9)
        reverse = RelationshipKey(game_id=GAME_ID, source=HERO, target=GRETA)

        assert relationships.get_value(reverse, "fear") == 0.0

    def test_find_by_entity_sees_both_ends(self, relationships, greta_to_hero):
        relationships.apply(greta_to_hero, "trust", 0.7)
        relationships.apply(RelationshipKey(game_id=GAME_ID, source=HERO, target=MARCUS), "trust", 0.2)
        relationships.apply(RelationshipKey(game_id=GAME_ID, source=GRETA, target=MARCUS), "trust", 0.2)

        assert len(relationships.find_by_entity(GAME_ID, HERO)) == 2

    def test_find_by_threshold(self, relationships, greta_to_hero):
        relationships.apply(greta_to_hero, "fear", 0.8)
        relationships.apply(RelationshipKey(game_id=GAME_ID, source=MARCUS, target=HERO), "fear", 0.3)

        above = relationships.find_by_threshold(GAME_ID, "fear", 0.5)
        below = relationships.find_by_threshold(GAME_ID, "fear", 0.5, "<")

        assert [r.source for r in above] == [GRETA]
        assert [r.source for r in below] == [MARCUS]

    def test_find_by_threshold_rejects_operator(self, relationships):
        with pytest.raises(ValidationError):
            relationships.find_by_threshold(GAME_ID, "fear", 0.5, "==")

    def test_games_are_isolated(self, relationships, greta_to_hero):
        relationships.apply(greta_to_hero, "trust", 0.9)
        other = RelationshipKey(game_id="game-2", source=GRETA, target=HERO)

        assert relationships.get(other) is None
        assert relationships.delete_by_game(GAME_ID) == 1
        assert relationships.get(greta_to_hero) is None


class TestTraitLedger:
    def test_add_and_query(self, traits):
        row = traits.add_trait(GAME_ID, GRETA, "bitter", 2, source_event_id="evt-1")

        assert row.status == TraitStatus.ACTIVE
        assert row.source_event_id == "evt-1"
        assert traits.has_trait(GAME_ID, GRETA, "bitter")
        assert traits.get_trait_names(GAME_ID, GRETA) == ["bitter"]
        assert [t.entity for t in traits.find_by_trait(GAME_ID, "bitter")] == [GRETA]

    def test_duplicate_active_trait_conflicts(self, traits):
        traits.add_trait(GAME_ID, GRETA, "bitter", 2)

        with pytest.raises(ConflictError):
            traits.add_trait(GAME_ID, GRETA, "bitter", 3)
        assert len(traits.get_history(GAME_ID, GRETA)) == 1

    def test_empty_trait_rejected(self, traits):
        with pytest.raises(ValidationError):
            traits.add_trait(GAME_ID, GRETA, "  ", 1)

    def test_remove_keeps_history(self, traits):
        traits.add_trait(GAME_ID, GRETA, "bitter", 2)

        removed = traits.remove_trait(GAME_ID, GRETA, "bitter")

        assert removed.status == TraitStatus.REMOVED
        assert not traits.has_trait(GAME_ID, GRETA, "bitter")
        assert traits.find_by_entity(GAME_ID, GRETA) == []
        assert [t.status for t in traits.get_history(GAME_ID, GRETA)] == [TraitStatus.REMOVED]

    def test_remove_missing_trait_is_noop(self, traits):
        assert traits.remove_trait(GAME_ID, GRETA, "bitter") is None

    def test_re_add_after_remove(self, traits):
        traits.add_trait(GAME_ID, GRETA, "bitter", 2)
        traits.remove_trait(GAME_ID, GRETA, "bitter")
        traits.add_trait(GAME_ID, GRETA, "bitter", 9)

        history = traits.get_history(GAME_ID, GRETA)

        assert [(t.acquired_turn, t.status) for t in history] == [
            (2, TraitStatus.REMOVED),
            (9, TraitStatus.ACTIVE),
        ]

    def test_fade(self, traits):
        traits.add_trait(GAME_ID, GRETA, "hopeful", 1)

        assert traits.fade_trait(GAME_ID, GRETA, "hopeful").status == TraitStatus.FADED
        assert not traits.has_trait(GAME_ID, GRETA, "hopeful")


class TestCatalog:
    def test_catalog_size_and_categories(self):
        assert len(TRAIT_CATALOG) == 24
        for category in TraitCategory:
            assert len(TraitLedger.get_catalog_by_category(category)) == 6

    def test_opposites_name_catalog_traits(self):
        names = {entry.trait for entry in TRAIT_CATALOG}
        for entry in TRAIT_CATALOG:
            assert set(entry.opposites) <= names | {"deceitful", "cruel", "cynical"}

    def test_get_opposites(self):
        assert "hopeful" in TraitLedger.get_opposites("bitter")
        assert TraitLedger.get_opposites("nonexistent") == ()
