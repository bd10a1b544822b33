"""Database package: SQLAlchemy models, sessions and the StateManager."""

from .models import Base
from .session import create_session, drop_db, get_engine, get_session, init_db, reset_engine
from .state_manager import StateManager

__all__ = [
    "Base",
    "create_session", "drop_db", "get_engine", "get_session", "init_db", "reset_engine",
    "StateManager",
]
