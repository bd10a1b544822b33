"""Alembic migration environment for the Reckoning store.

The database URL comes from ``init_db()`` when migrations run in-process,
otherwise from ``DATABASE_URL`` (environment or .env, via reckoning.config).
"""

import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

# alembic CLI runs from the repo root without installing the package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reckoning.config import Config  # noqa: E402
from reckoning.db.models import Base  # noqa: E402

config = context.config

# init_db() has already configured logging for the host process
if config.config_file_name is not None and not config.attributes.get("logging_configured"):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_url() -> str:
    return config.get_main_option("sqlalchemy.url") or Config.get_database_url()


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    options = {"pool_pre_ping": True} if url.startswith("postgresql") else {}
    engine = create_engine(url, **options)

    try:
        with engine.connect() as connection:
            # batch mode lets ALTER TABLE work on SQLite
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
