"""Event mixin: the append-only event log and scenes."""

import logging
from collections.abc import Sequence

from sqlalchemy import func, update

from ..core.actions import ACTIONS_BY_CATEGORY
from ..core.schemas import CanonicalEvent, Scene
from ..enums import ActionCategory, SceneStatus
from ..errors import ConflictError, ValidationError
from .models import CanonicalEventDB, SceneDB

logger = logging.getLogger(__name__)


def _s(value) -> str | None:
    return str(value) if value is not None else None


def event_from_row(row: CanonicalEventDB) -> CanonicalEvent:
    return CanonicalEvent(
        id=row.id,
        game_id=row.game_id,
        turn=row.turn,
        timestamp=row.timestamp,
        event_type=row.event_type,
        content=row.content or "",
        action=row.action,
        actor_type=row.actor_type,
        actor_id=row.actor_id,
        target_type=row.target_type,
        target_id=row.target_id,
        location_id=row.location_id,
        speaker=row.speaker,
        tags=list(row.tags or []),
        witnesses=list(row.witnesses or []),
    )


def scene_from_row(row: SceneDB) -> Scene:
    return Scene(
        id=row.id,
        game_id=row.game_id,
        name=row.name,
        description=row.description,
        scene_type=row.scene_type,
        location_id=row.location_id,
        started_turn=row.started_turn,
        completed_turn=row.completed_turn,
        status=row.status,
        mood=row.mood,
        stakes=row.stakes,
    )


class EventMixin:
    """EventLog and SceneStore on SQLAlchemy."""

    # ==== Event Log ====

    def append_event(self, event: CanonicalEvent) -> CanonicalEvent:
        db = self._get_db()
        latest = (
            db.query(func.max(CanonicalEventDB.turn))
            .filter(CanonicalEventDB.game_id == event.game_id)
            .scalar()
        )
        if latest is not None and event.turn < latest:
            raise ValidationError(
                f"Event turn {event.turn} is behind the log for game {event.game_id} (turn {latest})"
            )

        db.add(CanonicalEventDB(
            id=event.id,
            game_id=event.game_id,
            turn=event.turn,
            timestamp=event.timestamp,
            event_type=_s(event.event_type),
            content=event.content,
            action=event.action,
            actor_type=_s(event.actor_type),
            actor_id=event.actor_id,
            target_type=_s(event.target_type),
            target_id=event.target_id,
            location_id=event.location_id,
            speaker=event.speaker,
            tags=list(event.tags),
            witnesses=list(event.witnesses),
        ))
        self._maybe_commit()
        return event

    def get_event(self, event_id: str) -> CanonicalEvent | None:
        row = self._get_db().query(CanonicalEventDB).filter(CanonicalEventDB.id == event_id).first()
        return event_from_row(row) if row else None

    def _events_query(self, game_id: str):
        return (
            self._get_db()
            .query(CanonicalEventDB)
            .filter(CanonicalEventDB.game_id == game_id)
            .order_by(CanonicalEventDB.turn, CanonicalEventDB.seq)
        )

    def find_by_actor(self, game_id, actor_type, actor_id, limit=1000, offset=0) -> list[CanonicalEvent]:
        rows = (
            self._events_query(game_id)
            .filter(
                CanonicalEventDB.actor_type == str(actor_type),
                CanonicalEventDB.actor_id == actor_id,
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [event_from_row(r) for r in rows]

    def find_by_target(self, game_id, target_type, target_id, limit=1000, offset=0) -> list[CanonicalEvent]:
        rows = (
            self._events_query(game_id)
            .filter(
                CanonicalEventDB.target_type == str(target_type),
                CanonicalEventDB.target_id == target_id,
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [event_from_row(r) for r in rows]

    def find_by_actions(
        self, game_id: str, actions: Sequence[str], limit: int = 1000, offset: int = 0
    ) -> list[CanonicalEvent]:
        if not actions:
            return []
        rows = (
            self._events_query(game_id)
            .filter(CanonicalEventDB.action.in_(list(actions)))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [event_from_row(r) for r in rows]

    def find_by_category(self, game_id, category, limit=1000, offset=0) -> list[CanonicalEvent]:
        actions = ACTIONS_BY_CATEGORY[ActionCategory(category)]
        return self.find_by_actions(game_id, actions, limit=limit, offset=offset)

    def find_by_tag(self, game_id: str, tag: str, limit: int = 1000) -> list[CanonicalEvent]:
        # JSON containment differs per dialect; filter tags in Python
        matched = [r for r in self._events_query(game_id).all() if tag in (r.tags or [])]
        return [event_from_row(r) for r in matched[:limit]]

    def get_recent_context(self, game_id: str, n: int) -> list[CanonicalEvent]:
        rows = (
            self._get_db()
            .query(CanonicalEventDB)
            .filter(CanonicalEventDB.game_id == game_id)
            .order_by(CanonicalEventDB.turn.desc(), CanonicalEventDB.seq.desc())
            .limit(n)
            .all()
        )
        return [event_from_row(r) for r in reversed(rows)]

    def count_events(self, game_id: str) -> int:
        return (
            self._get_db()
            .query(func.count(CanonicalEventDB.seq))
            .filter(CanonicalEventDB.game_id == game_id)
            .scalar()
        )

    def delete_events_by_game(self, game_id: str) -> int:
        count = (
            self._get_db()
            .query(CanonicalEventDB)
            .filter(CanonicalEventDB.game_id == game_id)
            .delete(synchronize_session=False)
        )
        self._maybe_commit()
        return count

    # ==== Scenes ====

    def create_scene(self, scene: Scene) -> Scene:
        if scene.status == SceneStatus.ACTIVE and self.find_active(scene.game_id) is not None:
            raise ConflictError(f"Game {scene.game_id} already has an active scene")

        self._get_db().add(SceneDB(
            id=scene.id,
            game_id=scene.game_id,
            name=scene.name,
            description=scene.description,
            scene_type=scene.scene_type,
            location_id=scene.location_id,
            started_turn=scene.started_turn,
            completed_turn=scene.completed_turn,
            status=str(scene.status),
            mood=scene.mood,
            stakes=scene.stakes,
        ))
        self._maybe_commit()
        logger.info(f"Scene started: {scene.name or scene.id} at turn {scene.started_turn}")
        return scene

    def get_scene(self, scene_id: str) -> Scene | None:
        row = (
            self._get_db()
            .query(SceneDB)
            .filter(SceneDB.id == scene_id)
            .populate_existing()
            .first()
        )
        return scene_from_row(row) if row else None

    def find_active(self, game_id: str) -> Scene | None:
        row = (
            self._get_db()
            .query(SceneDB)
            .filter(SceneDB.game_id == game_id, SceneDB.status == str(SceneStatus.ACTIVE))
            .populate_existing()
            .first()
        )
        return scene_from_row(row) if row else None

    def complete_scene(self, scene_id: str, turn: int) -> Scene | None:
        result = self._get_db().execute(
            update(SceneDB)
            .where(SceneDB.id == scene_id, SceneDB.status == str(SceneStatus.ACTIVE))
            .values(status=str(SceneStatus.COMPLETED), completed_turn=turn)
        )
        self._maybe_commit()
        if result.rowcount == 0:
            return None
        return self.get_scene(scene_id)

    def count_events_in_scene(self, scene_id: str) -> int:
        scene = self.get_scene(scene_id)
        if scene is None:
            return 0
        query = (
            self._get_db()
            .query(func.count(CanonicalEventDB.seq))
            .filter(
                CanonicalEventDB.game_id == scene.game_id,
                CanonicalEventDB.turn >= scene.started_turn,
            )
        )
        if scene.completed_turn is not None:
            query = query.filter(CanonicalEventDB.turn <= scene.completed_turn)
        return query.scalar()

    def delete_scenes_by_game(self, game_id: str) -> int:
        count = (
            self._get_db()
            .query(SceneDB)
            .filter(SceneDB.game_id == game_id)
            .delete(synchronize_session=False)
        )
        self._maybe_commit()
        return count
