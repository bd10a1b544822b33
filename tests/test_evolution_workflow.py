"""Tests for the evolution proposal workflow.

Validates:
1. Proposals are validated before anything is written
2. Approval applies the change exactly once
3. Refusal applies nothing and is terminal
4. Edits only land on pending proposals
5. A failed apply rolls back and leaves the proposal pending
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from reckoning.core.evolution import EvolutionWorkflow
from reckoning.core.relationships import RelationshipLedger
from reckoning.core.schemas import EntityRef, RelationshipKey
from reckoning.core.traits import TraitLedger
from reckoning.db.models import Base
from reckoning.db.session import enable_sqlite_savepoints
from reckoning.db.state_manager import StateManager
from reckoning.enums import AggregateLabel, EntityType, EvolutionStatus, EvolutionType, TraitStatus
from reckoning.errors import ConflictError, ValidationError

GAME_ID = "game-1"
HERO = EntityRef(type=EntityType.PLAYER, id="hero")
GRETA = EntityRef(type=EntityType.NPC, id="greta")
GRETA_TO_HERO = RelationshipKey(game_id=GAME_ID, source=GRETA, target=HERO)


def _propose_bitter(workflow, turn=4):
    return workflow.propose(
        GAME_ID, turn, EvolutionType.TRAIT_ADD, GRETA, trait="bitter", reason="Lost her farm"
    )


class TestPropose:
    def test_trait_proposal_is_pending(self, workflow):
        evo = _propose_bitter(workflow)

        stored = workflow.get(evo.id)
        assert stored.status == EvolutionStatus.PENDING
        assert stored.trait == "bitter"
        assert stored.resolved_at is None
        assert [e.id for e in workflow.get_pending(GAME_ID)] == [evo.id]

    def test_trait_proposal_requires_trait(self, workflow):
        with pytest.raises(ValidationError):
            workflow.propose(GAME_ID, 1, EvolutionType.TRAIT_ADD, GRETA)

        assert workflow.get_all(GAME_ID) == []

    def test_relationship_proposal_requires_target(self, workflow):
        with pytest.raises(ValidationError):
            workflow.propose(
                GAME_ID, 1, EvolutionType.RELATIONSHIP_CHANGE, GRETA, dimension="trust", new_value=0.4
            )

    def test_out_of_range_value_rejected(self, workflow):
        with pytest.raises(ValidationError):
            workflow.propose(
                GAME_ID, 1, EvolutionType.RELATIONSHIP_CHANGE, GRETA,
                target=HERO, dimension="trust", new_value=1.5,
            )

    def test_unknown_type_rejected(self, workflow):
        with pytest.raises(ValidationError):
            workflow.propose(GAME_ID, 1, "trait_swap", GRETA, trait="bitter")

    def test_old_value_filled_from_ledger(self, workflow, relationships):
        relationships.apply(GRETA_TO_HERO, "trust", 0.7)

        evo = workflow.propose(
            GAME_ID, 2, EvolutionType.RELATIONSHIP_CHANGE, GRETA,
            target=HERO, dimension="trust", new_value=0.2,
        )

        assert evo.old_value == 0.7
        assert workflow.get(evo.id).old_value == 0.7

    def test_delta_resolved_at_proposal_time(self, workflow):
        evo = workflow.propose_relationship_delta(GAME_ID, 2, GRETA, HERO, "trust", 0.2)
        clamped = workflow.propose_relationship_delta(GAME_ID, 2, GRETA, HERO, "fear", -0.4)

        assert evo.old_value == 0.5
        assert evo.new_value == pytest.approx(0.7)
        assert clamped.new_value == 0.0


class TestResolve:
    def test_approve_trait_add(self, workflow, traits):
        evo = _propose_bitter(workflow)

        resolved = workflow.approve(evo.id, dm_notes="Fits her arc")

        assert resolved.status == EvolutionStatus.APPROVED
        assert resolved.dm_notes == "Fits her arc"
        assert resolved.resolved_at is not None
        assert traits.has_trait(GAME_ID, GRETA, "bitter")
        assert traits.get_history(GAME_ID, GRETA)[0].acquired_turn == 4

    def test_approve_twice_applies_once(self, workflow, traits):
        evo = _propose_bitter(workflow)
        first = workflow.approve(evo.id)

        second = workflow.approve(evo.id, dm_notes="again")

        assert second.status == EvolutionStatus.APPROVED
        assert second.dm_notes == first.dm_notes
        assert len(traits.get_history(GAME_ID, GRETA)) == 1

    def test_approve_relationship_twice_applies_once(self, workflow, relationships):
        first = workflow.propose(
            GAME_ID, 2, EvolutionType.RELATIONSHIP_CHANGE, GRETA,
            target=HERO, dimension="trust", new_value=0.9,
        )
        workflow.approve(first.id)
        later = workflow.propose(
            GAME_ID, 3, EvolutionType.RELATIONSHIP_CHANGE, GRETA,
            target=HERO, dimension="trust", new_value=0.2,
        )
        workflow.approve(later.id)

        again = workflow.approve(first.id, dm_notes="again")

        assert again.status == EvolutionStatus.APPROVED
        assert again.dm_notes is None
        assert relationships.get_value(GRETA_TO_HERO, "trust") == 0.2
        assert relationships.get(GRETA_TO_HERO).updated_turn == 3

    def test_other_game_id_is_not_found(self, workflow, traits):
        evo = _propose_bitter(workflow)

        assert workflow.approve(evo.id, game_id="game-2") is None
        assert workflow.edit(evo.id, game_id="game-2", reason="late") is None
        assert workflow.get(evo.id).status == EvolutionStatus.PENDING
        assert not traits.has_trait(GAME_ID, GRETA, "bitter")

        assert workflow.approve(evo.id, game_id=GAME_ID).status == EvolutionStatus.APPROVED

    def test_refuse_applies_nothing(self, workflow, traits):
        evo = _propose_bitter(workflow)

        refused = workflow.refuse(evo.id, dm_notes="Too early")
        after = workflow.approve(evo.id)

        assert refused.status == EvolutionStatus.REFUSED
        assert after.status == EvolutionStatus.REFUSED
        assert not traits.has_trait(GAME_ID, GRETA, "bitter")
        assert workflow.get_pending(GAME_ID) == []

    def test_approve_relationship_change(self, workflow, relationships):
        evo = workflow.propose(
            GAME_ID, 6, EvolutionType.RELATIONSHIP_CHANGE, GRETA,
            target=HERO, dimension="fear", new_value=0.9,
        )

        workflow.approve(evo.id)

        assert relationships.get_value(GRETA_TO_HERO, "fear") == 0.9
        assert relationships.get(GRETA_TO_HERO).updated_turn == 6
        assert relationships.label(GRETA_TO_HERO) == AggregateLabel.TERRIFIED

    def test_approve_trait_remove(self, workflow, traits):
        traits.add_trait(GAME_ID, GRETA, "hopeful", 1)
        evo = workflow.propose(GAME_ID, 3, EvolutionType.TRAIT_REMOVE, GRETA, trait="hopeful")

        workflow.approve(evo.id)

        assert traits.get_history(GAME_ID, GRETA)[0].status == TraitStatus.REMOVED

    def test_unknown_id_returns_none(self, workflow):
        assert workflow.approve("missing") is None

    def test_pending_is_not_a_resolution(self, workflow):
        evo = _propose_bitter(workflow)

        with pytest.raises(ValidationError):
            workflow.resolve(evo.id, "pending")

    def test_failed_apply_stays_pending(self, workflow, traits):
        traits.add_trait(GAME_ID, GRETA, "bitter", 1)
        evo = _propose_bitter(workflow)

        with pytest.raises(ConflictError):
            workflow.approve(evo.id)

        assert workflow.get(evo.id).status == EvolutionStatus.PENDING
        assert len(traits.get_history(GAME_ID, GRETA)) == 1

        traits.remove_trait(GAME_ID, GRETA, "bitter")
        assert workflow.approve(evo.id).status == EvolutionStatus.APPROVED


class TestEdit:
    def test_edit_pending(self, workflow):
        evo = _propose_bitter(workflow)

        edited = workflow.edit(evo.id, trait="haunted", reason="Nightmares")

        assert edited.trait == "haunted"
        assert edited.reason == "Nightmares"
        assert edited.status == EvolutionStatus.PENDING

    def test_edit_relationship_target(self, workflow):
        marcus = EntityRef(type=EntityType.NPC, id="marcus")
        evo = workflow.propose(
            GAME_ID, 1, EvolutionType.RELATIONSHIP_CHANGE, GRETA,
            target=HERO, dimension="trust", new_value=0.3,
        )

        edited = workflow.edit(evo.id, target=marcus, dimension="respect", new_value=0.8)

        assert edited.target == marcus
        assert edited.dimension == "respect"
        assert edited.new_value == 0.8

    def test_edit_rejects_invalid_content(self, workflow):
        evo = _propose_bitter(workflow)

        with pytest.raises(ValidationError):
            workflow.edit(evo.id, trait="")
        with pytest.raises(ValidationError):
            workflow.edit(evo.id, status="approved")

        assert workflow.get(evo.id).trait == "bitter"

    def test_edit_resolved_conflicts(self, workflow):
        evo = _propose_bitter(workflow)
        workflow.refuse(evo.id)

        with pytest.raises(ConflictError):
            workflow.edit(evo.id, reason="late")

    def test_edit_unknown_id(self, workflow):
        assert workflow.edit("missing", reason="x") is None


class TestQueries:
    def test_get_for_entity_and_delete(self, workflow):
        _propose_bitter(workflow)
        workflow.propose(GAME_ID, 5, EvolutionType.TRAIT_ADD, HERO, trait="legendary")

        assert len(workflow.get_for_entity(GAME_ID, GRETA)) == 1
        assert workflow.delete_by_game(GAME_ID) == 2
        assert workflow.get_all(GAME_ID) == []

    def test_entity_summary(self, workflow, relationships, traits):
        traits.add_trait(GAME_ID, GRETA, "bitter", 1)
        relationships.apply(GRETA_TO_HERO, "fear", 0.8)

        summary = workflow.get_entity_summary(GAME_ID, GRETA)

        assert summary.traits == ["bitter"]
        assert len(summary.relationships) == 1
        assert summary.relationships[0].target == HERO
        assert summary.relationships[0].label == AggregateLabel.TERRIFIED


class TestConcurrentResolution:
    """Two sessions resolving the same proposal against one database file."""

    @pytest.fixture
    def file_engine(self, tmp_path):
        eng = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_savepoints(eng)
        Base.metadata.create_all(bind=eng)
        yield eng
        eng.dispose()

    @staticmethod
    def _workflow(state):
        return EvolutionWorkflow(state, RelationshipLedger(state), TraitLedger(state))

    def test_second_resolver_loses(self, file_engine):
        Session = sessionmaker(bind=file_engine, autoflush=False)
        session_a, session_b = Session(), Session()
        a, b = StateManager(session=session_a), StateManager(session=session_b)
        try:
            evo = _propose_bitter(self._workflow(a))

            won = self._workflow(a).approve(evo.id)
            lost = self._workflow(b).refuse(evo.id)

            assert won.status == EvolutionStatus.APPROVED
            assert lost.status == EvolutionStatus.APPROVED
            assert len(TraitLedger(b).get_history(GAME_ID, GRETA)) == 1
        finally:
            session_a.close()
            session_b.close()
