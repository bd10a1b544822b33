"""
Shared test fixtures for the Reckoning test suite.

Provides:
- InMemoryEventLog / InMemorySceneStore: list-backed store fakes for the
  analytics components (no database needed)
- Database fixtures: in-memory SQLite with every table created
- Component fixtures wired onto a StateManager
- make_event: factory for canonical events with sensible defaults
"""

import os

import pytest

# Set test environment BEFORE any reckoning imports
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reckoning.core.actions import ACTIONS_BY_CATEGORY
from reckoning.core.emergence import EmergenceDetector, EmergenceNotifier
from reckoning.core.evolution import EvolutionWorkflow
from reckoning.core.relationships import RelationshipLedger
from reckoning.core.schemas import CanonicalEvent, EntityRef, Scene
from reckoning.core.stores import EventLog, SceneStore
from reckoning.core.traits import TraitLedger
from reckoning.db.models import Base
from reckoning.db.session import enable_sqlite_savepoints
from reckoning.db.state_manager import StateManager
from reckoning.enums import ActionCategory, EntityType, EventType, SceneStatus
from reckoning.errors import ValidationError

GAME_ID = "game-1"
PLAYER = EntityRef(type=EntityType.PLAYER, id="hero")


# ---------------------------------------------------------------------------
# In-memory store fakes
# ---------------------------------------------------------------------------

class InMemoryEventLog(EventLog):
    """EventLog backed by a list, in append order."""

    def __init__(self):
        self.events: list[CanonicalEvent] = []

    def _game(self, game_id: str) -> list[CanonicalEvent]:
        # sorted() is stable, so same-turn events keep append order
        return sorted((e for e in self.events if e.game_id == game_id), key=lambda e: e.turn)

    def append_event(self, event):
        existing = self._game(event.game_id)
        if existing and event.turn < existing[-1].turn:
            raise ValidationError(f"Event turn {event.turn} is behind the log")
        self.events.append(event)
        return event

    def get_event(self, event_id):
        return next((e for e in self.events if e.id == event_id), None)

    def find_by_actor(self, game_id, actor_type, actor_id, limit=1000, offset=0):
        found = [e for e in self._game(game_id) if e.actor_type == actor_type and e.actor_id == actor_id]
        return found[offset:offset + limit]

    def find_by_target(self, game_id, target_type, target_id, limit=1000, offset=0):
        found = [e for e in self._game(game_id) if e.target_type == target_type and e.target_id == target_id]
        return found[offset:offset + limit]

    def find_by_actions(self, game_id, actions, limit=1000, offset=0):
        found = [e for e in self._game(game_id) if e.action in set(actions)]
        return found[offset:offset + limit]

    def find_by_category(self, game_id, category, limit=1000, offset=0):
        actions = ACTIONS_BY_CATEGORY[ActionCategory(category)]
        return self.find_by_actions(game_id, actions, limit=limit, offset=offset)

    def find_by_tag(self, game_id, tag, limit=1000):
        return [e for e in self._game(game_id) if tag in e.tags][:limit]

    def get_recent_context(self, game_id, n):
        events = self._game(game_id)
        return events[-n:] if n > 0 else []

    def count_events(self, game_id):
        return len(self._game(game_id))


class InMemorySceneStore(SceneStore):
    """SceneStore over a dict, counting events from an InMemoryEventLog."""

    def __init__(self, event_log: InMemoryEventLog):
        self.event_log = event_log
        self.scenes: dict[str, Scene] = {}

    def create_scene(self, scene):
        self.scenes[scene.id] = scene
        return scene

    def get_scene(self, scene_id):
        return self.scenes.get(scene_id)

    def find_active(self, game_id):
        return next(
            (s for s in self.scenes.values() if s.game_id == game_id and s.status == SceneStatus.ACTIVE),
            None,
        )

    def complete_scene(self, scene_id, turn):
        scene = self.scenes.get(scene_id)
        if scene is None or scene.status != SceneStatus.ACTIVE:
            return None
        scene.status = SceneStatus.COMPLETED
        scene.completed_turn = turn
        return scene

    def count_events_in_scene(self, scene_id):
        scene = self.scenes.get(scene_id)
        if scene is None:
            return 0
        return sum(
            1
            for e in self.event_log.events
            if e.game_id == scene.game_id
            and e.turn >= scene.started_turn
            and (scene.completed_turn is None or e.turn <= scene.completed_turn)
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def make_event():
    """Factory for canonical events; defaults to a player action in GAME_ID."""

    def _make(turn: int = 1, action: str | None = None, **fields) -> CanonicalEvent:
        data = {
            "game_id": GAME_ID,
            "turn": turn,
            "event_type": EventType.PARTY_ACTION,
            "action": action,
            "actor_type": "player",
            "actor_id": PLAYER.id,
        }
        data.update(fields)
        return CanonicalEvent(**data)

    return _make


@pytest.fixture
def event_log():
    return InMemoryEventLog()


@pytest.fixture
def scene_store(event_log):
    return InMemorySceneStore(event_log)


@pytest.fixture
def engine():
    """Fresh in-memory SQLite engine with all tables."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng)
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session(engine):
    db = sessionmaker(bind=engine, autoflush=False)()
    yield db
    db.close()


@pytest.fixture
def state(session):
    """StateManager sharing the test session."""
    sm = StateManager(session=session)
    yield sm
    sm.close()


@pytest.fixture
def relationships(state):
    return RelationshipLedger(state)


@pytest.fixture
def traits(state):
    return TraitLedger(state)


@pytest.fixture
def workflow(state, relationships, traits):
    return EvolutionWorkflow(state, relationships, traits)


@pytest.fixture
def notifier(state, traits):
    return EmergenceNotifier(EmergenceDetector(state, traits), state)
