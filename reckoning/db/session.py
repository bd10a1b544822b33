"""Engine, session factory and schema setup for the Reckoning store."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session as SQLAlchemySession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Config
from .models import Base

logger = logging.getLogger(__name__)

_engine = None
_SessionLocal = None

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def get_database_url() -> str:
    return Config.get_database_url()


def _is_memory_url(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")


def enable_sqlite_savepoints(engine):
    """Let pysqlite honour SAVEPOINT by emitting BEGIN ourselves.

    The driver otherwise defers BEGIN until the first DML statement, so a
    savepoint opened first would run outside any transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    if _is_memory_url(url):
        # every checkout must see the same in-memory database
        options["poolclass"] = StaticPool
    return options


def get_engine():
    """Return the process-wide engine, building it on first use."""
    global _engine
    if _engine is not None:
        return _engine

    url = get_database_url()
    _engine = create_engine(url, echo=Config.is_debug(), **_engine_options(url))
    if url.startswith("sqlite"):
        enable_sqlite_savepoints(_engine)
    logger.debug(f"Engine created for {url}")
    return _engine


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False)
    return _SessionLocal


def reset_engine():
    """Forget the cached engine so the next call re-reads DATABASE_URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def _upgrade_to_head(url: str):
    from alembic import command
    from alembic.config import Config as AlembicConfig

    cfg = AlembicConfig(str(_PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    cfg.attributes["logging_configured"] = True
    command.upgrade(cfg, "head")


def init_db():
    """Bring the schema up to date.

    File and server databases are migrated with Alembic. An in-memory
    SQLite database only exists on the engine's own connection, so it is
    built with ``create_all()`` instead.
    """
    url = get_database_url()
    if _is_memory_url(url):
        Base.metadata.create_all(bind=get_engine())
        logger.info("In-memory schema created")
        return

    try:
        _upgrade_to_head(url)
        logger.info(f"Schema migrated to head: {url}")
    except Exception as e:
        # migration scripts missing from the install
        logger.warning(f"Alembic upgrade failed ({e}), creating tables directly")
        Base.metadata.create_all(bind=get_engine())


def drop_db():
    """Drop every Reckoning table."""
    Base.metadata.drop_all(bind=get_engine())
    logger.warning("All tables dropped")


@contextmanager
def get_session() -> Generator[SQLAlchemySession, None, None]:
    """Yield a session that commits on success and rolls back on error."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_session() -> SQLAlchemySession:
    """Open an unmanaged session; the caller closes it."""
    return get_session_factory()()
