"""Core mixin: session lifecycle, deferred commits, whole-game cleanup.

Every table mixin reaches the database through ``self._get_db()`` and
finishes writes with ``self._maybe_commit()`` so that a surrounding
``deferred_commit()`` block can batch them into one transaction.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.orm import Session as SQLAlchemySession

from .session import create_session

logger = logging.getLogger(__name__)


class CoreMixin:
    """Infrastructure shared by every table mixin."""

    def __init__(self, session: SQLAlchemySession | None = None):
        self._db: SQLAlchemySession | None = session
        self._owns_session = session is None
        self._commit_deferred: bool = False

    def _get_db(self) -> SQLAlchemySession:
        if self._db is None:
            self._db = create_session()
            self._owns_session = True
        return self._db

    def close(self):
        """Close the session, unless it was handed in by the caller."""
        if self._db is not None and self._owns_session:
            self._db.close()
        self._db = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _maybe_commit(self):
        """Commit now, or just flush when a deferred_commit() block is open."""
        db = self._get_db()
        if self._commit_deferred:
            db.flush()
        else:
            db.commit()

    @contextmanager
    def deferred_commit(self):
        """Run the block as one unit of work.

        Writes inside the block are flushed, not committed; the block ends
        in a single commit, or a rollback if it raises. Nested blocks join
        the outermost one.

        Usage:
            with state.deferred_commit():
                state.transition_evolution(evolution_id, "approved")
                state.upsert_relationship(...)
            # Single commit here, or full rollback on exception
        """
        if self._commit_deferred:
            yield
            return

        self._commit_deferred = True
        db = self._get_db()
        try:
            yield
            db.commit()
        except Exception:
            db.rollback()
            logger.error("Unit of work rolled back")
            raise
        finally:
            self._commit_deferred = False

    def reset_game(self, game_id: str) -> dict[str, int]:
        """Delete every row belonging to a game, in one transaction."""
        with self.deferred_commit():
            counts = {
                "notifications": self.delete_notifications_by_game(game_id),
                "evolutions": self.delete_evolutions_by_game(game_id),
                "traits": self.delete_traits_by_game(game_id),
                "relationships": self.delete_relationships_by_game(game_id),
                "scenes": self.delete_scenes_by_game(game_id),
                "events": self.delete_events_by_game(game_id),
            }
        logger.info(f"Reset game {game_id}: {counts}")
        return counts
