"""
Relationship Ledger.

Directional, six-dimension relationships between entities.  Mutations
are *sets*: callers (normally the evolution workflow) pass the new
value of one dimension and the ledger clamps it to [0, 1].  Pairs that
were never written read as the defaults below.

Labels are derived on read by ordered rule evaluation; the first rule
that matches wins.
"""

import logging
import math

from ..enums import AggregateLabel, RelationshipDimension
from ..errors import ValidationError
from .schemas import EntityRef, Relationship, RelationshipDimensions, RelationshipKey
from .stores import RelationshipStore

logger = logging.getLogger(__name__)

DIMENSION_DEFAULTS: dict[RelationshipDimension, float] = {
    RelationshipDimension.TRUST: 0.5,
    RelationshipDimension.RESPECT: 0.5,
    RelationshipDimension.AFFECTION: 0.5,
    RelationshipDimension.FEAR: 0.0,
    RelationshipDimension.RESENTMENT: 0.0,
    RelationshipDimension.DEBT: 0.0,
}

THRESHOLD_OPERATORS = (">=", "<=", ">", "<")


def _devoted(d: RelationshipDimensions) -> bool:
    return d.trust > 0.7 and d.affection > 0.7 and d.respect > 0.6


def _ally(d: RelationshipDimensions) -> bool:
    return d.trust > 0.6 and d.respect > 0.6


def _friend(d: RelationshipDimensions) -> bool:
    return d.affection > 0.6 and d.trust > 0.5


def _rival(d: RelationshipDimensions) -> bool:
    return d.respect > 0.5 and d.resentment > 0.5


def _enemy(d: RelationshipDimensions) -> bool:
    return d.fear > 0.5 and d.resentment > 0.6


def _terrified(d: RelationshipDimensions) -> bool:
    return d.fear > 0.7


def _resentful(d: RelationshipDimensions) -> bool:
    return d.resentment > 0.6


def _indebted(d: RelationshipDimensions) -> bool:
    return d.debt > 0.6


def _wary(d: RelationshipDimensions) -> bool:
    return d.trust < 0.3 or d.fear > 0.4


# Evaluated top to bottom; indifferent is the fallthrough
LABEL_RULES = (
    (AggregateLabel.DEVOTED, _devoted),
    (AggregateLabel.ALLY, _ally),
    (AggregateLabel.FRIEND, _friend),
    (AggregateLabel.RIVAL, _rival),
    (AggregateLabel.ENEMY, _enemy),
    (AggregateLabel.TERRIFIED, _terrified),
    (AggregateLabel.RESENTFUL, _resentful),
    (AggregateLabel.INDEBTED, _indebted),
    (AggregateLabel.WARY, _wary),
)


def compute_aggregate_label(dimensions: RelationshipDimensions) -> AggregateLabel:
    """Summarize a relationship's dimensions as a single label."""
    for label, rule in LABEL_RULES:
        if rule(dimensions):
            return label
    return AggregateLabel.INDIFFERENT


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN and infinities are rejected."""
    if value is None or not math.isfinite(value):
        raise ValidationError(f"Relationship value must be a finite number, got {value!r}")
    return max(0.0, min(1.0, float(value)))


class RelationshipLedger:
    """Reads and writes relationships through a RelationshipStore."""

    def __init__(self, store: RelationshipStore):
        self._store = store

    def get(self, key: RelationshipKey) -> Relationship | None:
        """The stored relationship, or None if the pair was never written."""
        return self._store.get_relationship(key.game_id, key.source, key.target)

    def get_dimensions(self, key: RelationshipKey) -> RelationshipDimensions:
        """Current dimensions, falling back to defaults for unseen pairs."""
        existing = self.get(key)
        return existing.dimensions if existing else RelationshipDimensions()

    def get_value(self, key: RelationshipKey, dimension: RelationshipDimension | str) -> float:
        return self.get_dimensions(key).get(dimension)

    def label(self, key: RelationshipKey) -> AggregateLabel:
        return compute_aggregate_label(self.get_dimensions(key))

    def apply(
        self,
        key: RelationshipKey,
        dimension: RelationshipDimension | str,
        new_value: float,
        turn: int | None = None,
    ) -> Relationship:
        """Set one dimension of a relationship, creating the pair if needed.

        Args:
            key: Directional pair (source's feelings toward target).
            dimension: Which of the six dimensions to set.
            new_value: The new absolute value; clamped to [0, 1].
            turn: Turn of the change, recorded as ``updated_turn``.

        Raises:
            ValidationError: Unknown dimension or non-finite value.
        """
        try:
            dim = RelationshipDimension(dimension)
        except ValueError as e:
            raise ValidationError(f"Unknown relationship dimension: {dimension!r}") from e
        value = clamp_unit(new_value)

        existing = self.get(key)
        current = existing.dimensions if existing else RelationshipDimensions()
        updated = current.model_copy(update={dim.value: value})
        if turn is None:
            turn = existing.updated_turn if existing else 0

        logger.debug(
            f"{key.source} -> {key.target} {dim}: {current.get(dim):.2f} -> {value:.2f}"
        )
        return self._store.upsert_relationship(key.game_id, key.source, key.target, updated, turn)

    def find_by_entity(self, game_id: str, entity: EntityRef) -> list[Relationship]:
        """Every relationship where ``entity`` is on either end."""
        return self._store.find_relationships_by_entity(game_id, entity)

    def find_by_threshold(
        self,
        game_id: str,
        dimension: RelationshipDimension | str,
        threshold: float,
        operator: str = ">=",
    ) -> list[Relationship]:
        """Relationships whose dimension compares to ``threshold``.

        Raises:
            ValidationError: Unknown dimension or operator.
        """
        if operator not in THRESHOLD_OPERATORS:
            raise ValidationError(f"Unsupported comparison operator: {operator!r}")
        try:
            dim = RelationshipDimension(dimension)
        except ValueError as e:
            raise ValidationError(f"Unknown relationship dimension: {dimension!r}") from e
        return self._store.find_relationships_by_threshold(game_id, dim, threshold, operator)

    def find_by_game(self, game_id: str) -> list[Relationship]:
        return self._store.find_relationships_by_game(game_id)

    def delete_by_game(self, game_id: str) -> int:
        return self._store.delete_relationships_by_game(game_id)
