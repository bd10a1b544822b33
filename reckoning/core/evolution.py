"""
Evolution Workflow.

Every change to traits or relationships goes through a pending proposal
that the DM approves, edits, or refuses.  The life cycle is

    pending ──approve──▶ approved   (ledger mutated exactly once)
            └─refuse───▶ refused    (nothing applied)

Resolution is a conditional write on the proposal store, so when two
callers race on the same id only one wins; the loser gets the stored
record back and nothing is applied twice.  The transition and the
ledger mutation share one ``deferred_commit()`` block, so a failure
while applying leaves the proposal pending.
"""

import logging
import math
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..enums import AggregateLabel, EvolutionStatus, EvolutionType, RelationshipDimension
from ..errors import ConflictError, ValidationError
from .relationships import RelationshipLedger, compute_aggregate_label
from .schemas import (
    EntityRef,
    PendingEvolution,
    RelationshipDimensions,
    RelationshipKey,
)
from .stores import ProposalStore
from .traits import TraitLedger

logger = logging.getLogger(__name__)

# Content a DM may change while a proposal is pending
EDITABLE_FIELDS = frozenset({
    "trait",
    "target",
    "dimension",
    "old_value",
    "new_value",
    "reason",
    "dm_notes",
})

TERMINAL_STATUSES = frozenset({EvolutionStatus.APPROVED, EvolutionStatus.REFUSED})


class RelationshipSummary(BaseModel):
    target: EntityRef
    label: AggregateLabel
    dimensions: RelationshipDimensions


class EntitySummary(BaseModel):
    """Active traits and labeled relationships for one entity."""
    entity: EntityRef
    traits: list[str] = Field(default_factory=list)
    relationships: list[RelationshipSummary] = Field(default_factory=list)


def _validate_content(evolution: PendingEvolution) -> None:
    """Check the per-type required fields of a proposal."""
    if evolution.evolution_type in (EvolutionType.TRAIT_ADD, EvolutionType.TRAIT_REMOVE):
        if not (evolution.trait or "").strip():
            raise ValidationError(f"{evolution.evolution_type} proposals require a trait")
        return

    missing = [
        name
        for name in ("target", "dimension", "new_value")
        if getattr(evolution, name) is None
    ]
    if missing:
        raise ValidationError(f"relationship_change proposals require {', '.join(missing)}")
    if not math.isfinite(evolution.new_value):
        raise ValidationError("new_value must be a finite number")


def _build(data: dict[str, Any]) -> PendingEvolution:
    try:
        evolution = PendingEvolution(**data)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e
    _validate_content(evolution)
    return evolution


class EvolutionWorkflow:
    """Creates, edits and resolves evolution proposals."""

    def __init__(
        self,
        proposals: ProposalStore,
        relationships: RelationshipLedger,
        traits: TraitLedger,
    ):
        self.proposals = proposals
        self.relationships = relationships
        self.traits = traits

    # ==== Proposals ====

    def propose(
        self,
        game_id: str,
        turn: int,
        evolution_type: EvolutionType | str,
        entity: EntityRef,
        *,
        trait: str | None = None,
        target: EntityRef | None = None,
        dimension: RelationshipDimension | str | None = None,
        old_value: float | None = None,
        new_value: float | None = None,
        reason: str = "",
        source_event_id: str | None = None,
    ) -> PendingEvolution:
        """Queue a new pending proposal.

        For relationship changes without ``old_value`` the current ledger
        value is recorded so the DM sees the before/after.

        Raises:
            ValidationError: Missing or malformed fields. Nothing is written.
        """
        evolution = _build({
            "game_id": game_id,
            "turn": turn,
            "evolution_type": evolution_type,
            "entity": entity,
            "trait": trait.strip() if trait else trait,
            "target": target,
            "dimension": dimension,
            "old_value": old_value,
            "new_value": new_value,
            "reason": reason,
            "source_event_id": source_event_id,
        })

        if evolution.evolution_type == EvolutionType.RELATIONSHIP_CHANGE and evolution.old_value is None:
            key = RelationshipKey(game_id=game_id, source=entity, target=evolution.target)
            evolution.old_value = self.relationships.get_value(key, evolution.dimension)

        created = self.proposals.create_evolution(evolution)
        logger.info(f"Evolution proposed: {created.evolution_type} for {entity} ({created.id})")
        return created

    def propose_relationship_delta(
        self,
        game_id: str,
        turn: int,
        source: EntityRef,
        target: EntityRef,
        dimension: RelationshipDimension | str,
        delta: float,
        reason: str = "",
        source_event_id: str | None = None,
    ) -> PendingEvolution:
        """Queue a relationship change expressed as a delta.

        The delta is resolved against the current ledger value now, so the
        stored proposal carries an absolute (clamped) ``new_value``.
        """
        key = RelationshipKey(game_id=game_id, source=source, target=target)
        current = self.relationships.get_value(key, dimension)
        return self.propose(
            game_id,
            turn,
            EvolutionType.RELATIONSHIP_CHANGE,
            source,
            target=target,
            dimension=dimension,
            old_value=current,
            new_value=max(0.0, min(1.0, current + delta)),
            reason=reason,
            source_event_id=source_event_id,
        )

    def edit(
        self, evolution_id: str, *, game_id: str | None = None, **changes: Any
    ) -> PendingEvolution | None:
        """Change the content of a still-pending proposal.

        Returns None for unknown ids, and for proposals of another game when
        ``game_id`` is given.

        Raises:
            ValidationError: Unknown field, or the merged content is invalid.
            ConflictError: The proposal has already been resolved.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

        existing = self._lookup(evolution_id, game_id)
        if existing is None:
            return None
        if not existing.is_pending:
            raise ConflictError(f"Evolution {evolution_id} is already {existing.status}")

        merged = _build(existing.model_dump() | changes)
        fields = {name: getattr(merged, name) for name in changes}

        updated = self.proposals.update_pending_evolution(evolution_id, fields)
        if updated is None:
            # Resolved between our read and the write
            raise ConflictError(f"Evolution {evolution_id} was resolved before the edit landed")
        logger.info(f"Evolution edited: {evolution_id} ({', '.join(sorted(changes))})")
        return updated

    # ==== Resolution ====

    def resolve(
        self,
        evolution_id: str,
        status: EvolutionStatus | str,
        dm_notes: str | None = None,
        game_id: str | None = None,
    ) -> PendingEvolution | None:
        """Approve or refuse a proposal, applying it on approval.

        Returns:
            The resolved proposal; the stored record unchanged if it was
            already resolved; None if the id does not exist (or, with
            ``game_id``, belongs to another game).

        Raises:
            ValidationError: ``status`` is not approved or refused.
            ConflictError: Applying the change collided with ledger state
                (the proposal stays pending).
        """
        try:
            status = EvolutionStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown evolution status: {status!r}") from e
        if status not in TERMINAL_STATUSES:
            raise ValidationError(f"Evolutions resolve to approved or refused, not {status}")
        if game_id is not None and self._lookup(evolution_id, game_id) is None:
            return None

        with self.proposals.deferred_commit():
            resolved = self.proposals.transition_evolution(evolution_id, status, dm_notes)
            if resolved is None:
                current = self.proposals.get_evolution(evolution_id)
                if current is None:
                    logger.warning(f"Resolve skipped: evolution {evolution_id} not found")
                else:
                    logger.warning(
                        f"Resolve skipped: evolution {evolution_id} already {current.status}"
                    )
                return current

            if status == EvolutionStatus.APPROVED:
                self._apply(resolved)

        logger.info(f"Evolution {status}: {resolved.evolution_type} for {resolved.entity}")
        return resolved

    def approve(
        self, evolution_id: str, dm_notes: str | None = None, game_id: str | None = None
    ) -> PendingEvolution | None:
        return self.resolve(evolution_id, EvolutionStatus.APPROVED, dm_notes, game_id=game_id)

    def refuse(
        self, evolution_id: str, dm_notes: str | None = None, game_id: str | None = None
    ) -> PendingEvolution | None:
        return self.resolve(evolution_id, EvolutionStatus.REFUSED, dm_notes, game_id=game_id)

    def _lookup(self, evolution_id: str, game_id: str | None) -> PendingEvolution | None:
        evolution = self.proposals.get_evolution(evolution_id)
        if evolution is None or (game_id is not None and evolution.game_id != game_id):
            return None
        return evolution

    def _apply(self, evolution: PendingEvolution) -> None:
        """Mutate the ledgers for an approved proposal."""
        if evolution.evolution_type == EvolutionType.TRAIT_ADD:
            self.traits.add_trait(
                evolution.game_id,
                evolution.entity,
                evolution.trait,
                evolution.turn,
                source_event_id=evolution.source_event_id,
            )
        elif evolution.evolution_type == EvolutionType.TRAIT_REMOVE:
            self.traits.remove_trait(evolution.game_id, evolution.entity, evolution.trait)
        elif evolution.evolution_type == EvolutionType.RELATIONSHIP_CHANGE:
            key = RelationshipKey(
                game_id=evolution.game_id,
                source=evolution.entity,
                target=evolution.target,
            )
            self.relationships.apply(
                key, evolution.dimension, evolution.new_value, turn=evolution.turn
            )

    # ==== Queries ====

    def get(self, evolution_id: str) -> PendingEvolution | None:
        return self.proposals.get_evolution(evolution_id)

    def get_pending(self, game_id: str) -> list[PendingEvolution]:
        return self.proposals.find_evolutions(game_id, EvolutionStatus.PENDING)

    def get_all(self, game_id: str) -> list[PendingEvolution]:
        return self.proposals.find_evolutions(game_id)

    def get_for_entity(self, game_id: str, entity: EntityRef) -> list[PendingEvolution]:
        return self.proposals.find_evolutions_by_entity(game_id, entity)

    def delete_by_game(self, game_id: str) -> int:
        return self.proposals.delete_evolutions_by_game(game_id)

    def get_entity_summary(self, game_id: str, entity: EntityRef) -> EntitySummary:
        """Active traits and labeled relationships for an entity."""
        summaries = [
            RelationshipSummary(
                target=rel.other(entity),
                label=compute_aggregate_label(rel.dimensions),
                dimensions=rel.dimensions,
            )
            for rel in self.relationships.find_by_entity(game_id, entity)
        ]
        return EntitySummary(
            entity=entity,
            traits=self.traits.get_trait_names(game_id, entity),
            relationships=summaries,
        )
