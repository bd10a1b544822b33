"""Tests for Reckoning canonical StrEnum types.

Validates that enums serialize as plain strings and carry the expected
members.
"""

import json

import pytest

from reckoning.enums import (
    ActionCategory,
    AggregateLabel,
    EntityType,
    EvolutionStatus,
    EvolutionType,
    NotificationStatus,
    RelationshipDimension,
    SignalType,
    SocialApproach,
    TraitStatus,
)


class TestActionCategory:
    EXPECTED = {"mercy", "violence", "honesty", "social", "exploration", "character"}

    def test_has_all_members(self):
        assert {e.value for e in ActionCategory} == self.EXPECTED

    def test_equality_with_raw_string(self):
        assert ActionCategory.MERCY == "mercy"
        assert "violence" == ActionCategory.VIOLENCE


class TestRelationshipDimension:
    def test_six_dimensions(self):
        assert [d.value for d in RelationshipDimension] == [
            "trust", "respect", "affection", "fear", "resentment", "debt",
        ]


class TestAggregateLabel:
    def test_indifferent_is_last(self):
        assert list(AggregateLabel)[-1] == AggregateLabel.INDIFFERENT

    def test_member_count(self):
        assert len(AggregateLabel) == 10


class TestStatuses:
    def test_evolution_status_terminal_values(self):
        assert {e.value for e in EvolutionStatus} == {"pending", "approved", "refused"}

    def test_notification_status_values(self):
        assert {e.value for e in NotificationStatus} == {"pending", "acknowledged", "dismissed"}

    def test_trait_status_values(self):
        assert {e.value for e in TraitStatus} == {"active", "faded", "removed"}


class TestSerialization:
    @pytest.mark.parametrize("member", [
        EntityType.NPC,
        EvolutionType.RELATIONSHIP_CHANGE,
        SignalType.LONG_DURATION,
        SocialApproach.MINIMAL,
    ])
    def test_json_dumps_as_plain_string(self, member):
        assert json.loads(json.dumps({"v": member})) == {"v": member.value}

    def test_str_and_format(self):
        assert str(EvolutionType.TRAIT_ADD) == "trait_add"
        assert f"{SignalType.MOOD_SHIFT}" == "mood_shift"
