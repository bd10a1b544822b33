"""Evolution mixin: pending evolutions and emergence notifications.

Both tables move out of ``pending`` through a conditional UPDATE, so the
row count tells a caller whether it won the transition.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..core.schemas import (
    ContributingFactor,
    EmergenceNotification,
    EmergenceOpportunity,
    EntityRef,
    PendingEvolution,
)
from ..enums import EvolutionStatus, NotificationStatus
from .models import EmergenceNotificationDB, PendingEvolutionDB

logger = logging.getLogger(__name__)


def _s(value) -> str | None:
    return str(value) if value is not None else None


def evolution_from_row(row: PendingEvolutionDB) -> PendingEvolution:
    target = None
    if row.target_type and row.target_id:
        target = EntityRef(type=row.target_type, id=row.target_id)
    return PendingEvolution(
        id=row.id,
        game_id=row.game_id,
        turn=row.turn,
        evolution_type=row.evolution_type,
        entity=EntityRef(type=row.entity_type, id=row.entity_id),
        trait=row.trait,
        target=target,
        dimension=row.dimension,
        old_value=row.old_value,
        new_value=row.new_value,
        reason=row.reason or "",
        source_event_id=row.source_event_id,
        status=row.status,
        dm_notes=row.dm_notes,
        created_at=row.created_at,
        resolved_at=row.resolved_at,
    )


def notification_from_row(row: EmergenceNotificationDB) -> EmergenceNotification:
    return EmergenceNotification(
        id=row.id,
        game_id=row.game_id,
        opportunity=EmergenceOpportunity(
            type=row.emergence_type,
            entity=EntityRef(type=row.entity_type, id=row.entity_id),
            confidence=row.confidence,
            reason=row.reason,
            triggering_event_id=row.triggering_event_id,
            contributing_factors=[ContributingFactor(**f) for f in (row.contributing_factors or [])],
        ),
        status=row.status,
        dm_notes=row.dm_notes,
        created_at=row.created_at,
        resolved_at=row.resolved_at,
    )


def _evolution_columns(fields: dict) -> dict:
    """Translate domain field names to column values."""
    columns = {}
    for name, value in fields.items():
        if name == "target":
            columns["target_type"] = _s(value.type) if value else None
            columns["target_id"] = value.id if value else None
        elif name == "dimension":
            columns["dimension"] = _s(value)
        else:
            columns[name] = value
    return columns


class EvolutionMixin:
    """ProposalStore and NotificationStore on SQLAlchemy."""

    # ==== Pending Evolutions ====

    def create_evolution(self, evolution: PendingEvolution) -> PendingEvolution:
        self._get_db().add(PendingEvolutionDB(
            id=evolution.id,
            game_id=evolution.game_id,
            turn=evolution.turn,
            evolution_type=str(evolution.evolution_type),
            entity_type=str(evolution.entity.type),
            entity_id=evolution.entity.id,
            trait=evolution.trait,
            target_type=_s(evolution.target.type) if evolution.target else None,
            target_id=evolution.target.id if evolution.target else None,
            dimension=_s(evolution.dimension),
            old_value=evolution.old_value,
            new_value=evolution.new_value,
            reason=evolution.reason,
            source_event_id=evolution.source_event_id,
            status=str(evolution.status),
            dm_notes=evolution.dm_notes,
            created_at=evolution.created_at,
        ))
        self._maybe_commit()
        return evolution

    def get_evolution(self, evolution_id: str) -> PendingEvolution | None:
        row = (
            self._get_db()
            .query(PendingEvolutionDB)
            .filter(PendingEvolutionDB.id == evolution_id)
            .populate_existing()
            .first()
        )
        return evolution_from_row(row) if row else None

    def find_evolutions(self, game_id: str, status: EvolutionStatus | None = None) -> list[PendingEvolution]:
        query = self._get_db().query(PendingEvolutionDB).filter(PendingEvolutionDB.game_id == game_id)
        if status is not None:
            query = query.filter(PendingEvolutionDB.status == str(status))
        rows = query.order_by(PendingEvolutionDB.created_at, PendingEvolutionDB.turn).all()
        return [evolution_from_row(r) for r in rows]

    def find_evolutions_by_entity(self, game_id: str, entity: EntityRef) -> list[PendingEvolution]:
        rows = (
            self._get_db()
            .query(PendingEvolutionDB)
            .filter(
                PendingEvolutionDB.game_id == game_id,
                PendingEvolutionDB.entity_type == str(entity.type),
                PendingEvolutionDB.entity_id == entity.id,
            )
            .order_by(PendingEvolutionDB.created_at, PendingEvolutionDB.turn)
            .all()
        )
        return [evolution_from_row(r) for r in rows]

    def update_pending_evolution(self, evolution_id: str, fields: dict) -> PendingEvolution | None:
        if not fields:
            return self.get_evolution(evolution_id)
        result = self._get_db().execute(
            update(PendingEvolutionDB)
            .where(
                PendingEvolutionDB.id == evolution_id,
                PendingEvolutionDB.status == str(EvolutionStatus.PENDING),
            )
            .values(**_evolution_columns(fields))
            .execution_options(synchronize_session="fetch")
        )
        self._maybe_commit()
        if result.rowcount == 0:
            return None
        return self.get_evolution(evolution_id)

    def transition_evolution(
        self, evolution_id: str, status: EvolutionStatus, dm_notes: str | None = None
    ) -> PendingEvolution | None:
        result = self._get_db().execute(
            update(PendingEvolutionDB)
            .where(
                PendingEvolutionDB.id == evolution_id,
                PendingEvolutionDB.status == str(EvolutionStatus.PENDING),
            )
            .values(status=str(status), dm_notes=dm_notes, resolved_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        self._maybe_commit()
        if result.rowcount == 0:
            return None
        return self.get_evolution(evolution_id)

    def delete_evolutions_by_game(self, game_id: str) -> int:
        count = (
            self._get_db()
            .query(PendingEvolutionDB)
            .filter(PendingEvolutionDB.game_id == game_id)
            .delete(synchronize_session=False)
        )
        self._maybe_commit()
        return count

    # ==== Emergence Notifications ====

    def create_notification(
        self, game_id: str, opportunity: EmergenceOpportunity
    ) -> EmergenceNotification | None:
        db = self._get_db()
        notification = EmergenceNotification(game_id=game_id, opportunity=opportunity)
        row = EmergenceNotificationDB(
            id=notification.id,
            game_id=game_id,
            emergence_type=str(opportunity.type),
            entity_type=str(opportunity.entity.type),
            entity_id=opportunity.entity.id,
            confidence=opportunity.confidence,
            reason=opportunity.reason,
            triggering_event_id=opportunity.triggering_event_id,
            contributing_factors=[f.model_dump(mode="json") for f in opportunity.contributing_factors],
            status=str(notification.status),
            created_at=notification.created_at,
        )
        try:
            with db.begin_nested():
                db.add(row)
        except IntegrityError:
            # A pending notification for this NPC and role already exists
            return None
        self._maybe_commit()
        return notification_from_row(row)

    def exists_similar(self, game_id: str, entity_id: str, emergence_type: str) -> bool:
        return (
            self._get_db()
            .query(EmergenceNotificationDB.id)
            .filter(
                EmergenceNotificationDB.game_id == game_id,
                EmergenceNotificationDB.entity_id == entity_id,
                EmergenceNotificationDB.emergence_type == str(emergence_type),
                EmergenceNotificationDB.status == str(NotificationStatus.PENDING),
            )
            .first()
            is not None
        )

    def get_notification(self, notification_id: str) -> EmergenceNotification | None:
        row = (
            self._get_db()
            .query(EmergenceNotificationDB)
            .filter(EmergenceNotificationDB.id == notification_id)
            .populate_existing()
            .first()
        )
        return notification_from_row(row) if row else None

    def find_notifications(
        self,
        game_id: str,
        status: NotificationStatus | None = None,
        limit: int | None = None,
    ) -> list[EmergenceNotification]:
        query = self._get_db().query(EmergenceNotificationDB).filter(EmergenceNotificationDB.game_id == game_id)
        if status is not None:
            query = query.filter(EmergenceNotificationDB.status == str(status))
        query = query.order_by(EmergenceNotificationDB.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return [notification_from_row(r) for r in query.all()]

    def transition_notification(
        self,
        notification_id: str,
        status: NotificationStatus,
        dm_notes: str | None = None,
    ) -> EmergenceNotification | None:
        result = self._get_db().execute(
            update(EmergenceNotificationDB)
            .where(
                EmergenceNotificationDB.id == notification_id,
                EmergenceNotificationDB.status == str(NotificationStatus.PENDING),
            )
            .values(status=str(status), dm_notes=dm_notes, resolved_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        self._maybe_commit()
        if result.rowcount == 0:
            return None
        return self.get_notification(notification_id)

    def delete_notifications_by_game(self, game_id: str) -> int:
        count = (
            self._get_db()
            .query(EmergenceNotificationDB)
            .filter(EmergenceNotificationDB.game_id == game_id)
            .delete(synchronize_session=False)
        )
        self._maybe_commit()
        return count
