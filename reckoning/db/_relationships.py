"""Relationship and trait mixin: the ledger tables."""

import logging
import operator

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError

from ..core.schemas import EntityRef, EntityTrait, Relationship, RelationshipDimensions
from ..enums import RelationshipDimension, TraitStatus
from ..errors import ConflictError, ValidationError
from .models import EntityTraitDB, RelationshipDB

logger = logging.getLogger(__name__)

COMPARATORS = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}


def relationship_from_row(row: RelationshipDB) -> Relationship:
    return Relationship(
        id=row.id,
        game_id=row.game_id,
        source=EntityRef(type=row.from_type, id=row.from_id),
        target=EntityRef(type=row.to_type, id=row.to_id),
        dimensions=RelationshipDimensions(
            trust=row.trust,
            respect=row.respect,
            affection=row.affection,
            fear=row.fear,
            resentment=row.resentment,
            debt=row.debt,
        ),
        updated_turn=row.updated_turn,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def trait_from_row(row: EntityTraitDB) -> EntityTrait:
    return EntityTrait(
        id=row.id,
        game_id=row.game_id,
        entity=EntityRef(type=row.entity_type, id=row.entity_id),
        trait=row.trait,
        acquired_turn=row.acquired_turn,
        source_event_id=row.source_event_id,
        status=row.status,
        created_at=row.created_at,
    )


def _pair_filter(game_id: str, source: EntityRef, target: EntityRef):
    return and_(
        RelationshipDB.game_id == game_id,
        RelationshipDB.from_type == str(source.type),
        RelationshipDB.from_id == source.id,
        RelationshipDB.to_type == str(target.type),
        RelationshipDB.to_id == target.id,
    )


def _entity_filter(game_id: str, entity: EntityRef):
    return and_(
        EntityTraitDB.game_id == game_id,
        EntityTraitDB.entity_type == str(entity.type),
        EntityTraitDB.entity_id == entity.id,
    )


class RelationshipMixin:
    """RelationshipStore and TraitStore on SQLAlchemy."""

    # ==== Relationships ====

    def _relationship_row(self, game_id, source, target) -> RelationshipDB | None:
        return (
            self._get_db()
            .query(RelationshipDB)
            .filter(_pair_filter(game_id, source, target))
            .populate_existing()
            .first()
        )

    def get_relationship(self, game_id: str, source: EntityRef, target: EntityRef) -> Relationship | None:
        row = self._relationship_row(game_id, source, target)
        return relationship_from_row(row) if row else None

    def upsert_relationship(
        self,
        game_id: str,
        source: EntityRef,
        target: EntityRef,
        dimensions: RelationshipDimensions,
        turn: int,
    ) -> Relationship:
        db = self._get_db()
        row = self._relationship_row(game_id, source, target)
        if row is None:
            row = RelationshipDB(
                game_id=game_id,
                from_type=str(source.type),
                from_id=source.id,
                to_type=str(target.type),
                to_id=target.id,
            )
            try:
                with db.begin_nested():
                    db.add(row)
                    self._set_dimensions(row, dimensions, turn)
            except IntegrityError:
                # Another writer created the pair first; update theirs
                row = self._relationship_row(game_id, source, target)
                self._set_dimensions(row, dimensions, turn)
        else:
            self._set_dimensions(row, dimensions, turn)

        self._maybe_commit()
        return relationship_from_row(row)

    @staticmethod
    def _set_dimensions(row: RelationshipDB, dimensions: RelationshipDimensions, turn: int):
        for dimension in RelationshipDimension:
            setattr(row, dimension.value, dimensions.get(dimension))
        row.updated_turn = turn

    def find_relationships_by_entity(self, game_id: str, entity: EntityRef) -> list[Relationship]:
        rows = (
            self._get_db()
            .query(RelationshipDB)
            .filter(
                RelationshipDB.game_id == game_id,
                or_(
                    and_(RelationshipDB.from_type == str(entity.type), RelationshipDB.from_id == entity.id),
                    and_(RelationshipDB.to_type == str(entity.type), RelationshipDB.to_id == entity.id),
                ),
            )
            .order_by(RelationshipDB.created_at)
            .all()
        )
        return [relationship_from_row(r) for r in rows]

    def find_relationships_by_threshold(
        self,
        game_id: str,
        dimension: RelationshipDimension | str,
        threshold: float,
        operator: str = ">=",
    ) -> list[Relationship]:
        compare = COMPARATORS.get(operator)
        if compare is None:
            raise ValidationError(f"Unsupported comparison operator: {operator!r}")
        column = getattr(RelationshipDB, RelationshipDimension(dimension).value)
        rows = (
            self._get_db()
            .query(RelationshipDB)
            .filter(RelationshipDB.game_id == game_id, compare(column, threshold))
            .order_by(column.desc())
            .all()
        )
        return [relationship_from_row(r) for r in rows]

    def find_relationships_by_game(self, game_id: str) -> list[Relationship]:
        rows = (
            self._get_db()
            .query(RelationshipDB)
            .filter(RelationshipDB.game_id == game_id)
            .order_by(RelationshipDB.created_at)
            .all()
        )
        return [relationship_from_row(r) for r in rows]

    def delete_relationships_by_game(self, game_id: str) -> int:
        count = (
            self._get_db()
            .query(RelationshipDB)
            .filter(RelationshipDB.game_id == game_id)
            .delete(synchronize_session=False)
        )
        self._maybe_commit()
        return count

    # ==== Traits ====

    def insert_trait(self, trait: EntityTrait) -> EntityTrait:
        db = self._get_db()
        row = EntityTraitDB(
            id=trait.id,
            game_id=trait.game_id,
            entity_type=str(trait.entity.type),
            entity_id=trait.entity.id,
            trait=trait.trait,
            acquired_turn=trait.acquired_turn,
            source_event_id=trait.source_event_id,
            status=str(trait.status),
            created_at=trait.created_at,
        )
        try:
            with db.begin_nested():
                db.add(row)
        except IntegrityError as e:
            raise ConflictError(f"{trait.entity} already has active trait '{trait.trait}'") from e
        self._maybe_commit()
        return trait_from_row(row)

    def set_active_trait_status(
        self, game_id: str, entity: EntityRef, trait: str, status: TraitStatus
    ) -> EntityTrait | None:
        db = self._get_db()
        row = (
            db.query(EntityTraitDB)
            .filter(
                _entity_filter(game_id, entity),
                EntityTraitDB.trait == trait,
                EntityTraitDB.status == str(TraitStatus.ACTIVE),
            )
            .first()
        )
        if row is None:
            return None

        result = db.execute(
            update(EntityTraitDB)
            .where(EntityTraitDB.id == row.id, EntityTraitDB.status == str(TraitStatus.ACTIVE))
            .values(status=str(status))
            .execution_options(synchronize_session="fetch")
        )
        self._maybe_commit()
        if result.rowcount == 0:
            return None
        db.refresh(row)
        return trait_from_row(row)

    def has_trait(self, game_id: str, entity: EntityRef, trait: str) -> bool:
        return (
            self._get_db()
            .query(EntityTraitDB.id)
            .filter(
                _entity_filter(game_id, entity),
                EntityTraitDB.trait == trait,
                EntityTraitDB.status == str(TraitStatus.ACTIVE),
            )
            .first()
            is not None
        )

    def find_traits_by_entity(self, game_id: str, entity: EntityRef) -> list[EntityTrait]:
        rows = (
            self._get_db()
            .query(EntityTraitDB)
            .filter(_entity_filter(game_id, entity), EntityTraitDB.status == str(TraitStatus.ACTIVE))
            .order_by(EntityTraitDB.acquired_turn, EntityTraitDB.created_at)
            .all()
        )
        return [trait_from_row(r) for r in rows]

    def find_traits_by_name(self, game_id: str, trait: str) -> list[EntityTrait]:
        rows = (
            self._get_db()
            .query(EntityTraitDB)
            .filter(
                EntityTraitDB.game_id == game_id,
                EntityTraitDB.trait == trait,
                EntityTraitDB.status == str(TraitStatus.ACTIVE),
            )
            .order_by(EntityTraitDB.acquired_turn, EntityTraitDB.created_at)
            .all()
        )
        return [trait_from_row(r) for r in rows]

    def get_trait_history(self, game_id: str, entity: EntityRef) -> list[EntityTrait]:
        rows = (
            self._get_db()
            .query(EntityTraitDB)
            .filter(_entity_filter(game_id, entity))
            .order_by(EntityTraitDB.acquired_turn, EntityTraitDB.created_at)
            .all()
        )
        return [trait_from_row(r) for r in rows]

    def delete_traits_by_game(self, game_id: str) -> int:
        count = (
            self._get_db()
            .query(EntityTraitDB)
            .filter(EntityTraitDB.game_id == game_id)
            .delete(synchronize_session=False)
        )
        self._maybe_commit()
        return count
