"""
Logging setup for the Reckoning engine.

Modules never configure handlers themselves; they take a named logger
and leave formatting to setup_logging(), called once by whoever embeds
the engine (or by the CLI):

    import logging
    logger = logging.getLogger(__name__)

What each level carries:
  DEBUG   - individual boundary signals, emergence checks, ratio inputs
  INFO    - proposals created/resolved, notifications raised
  WARNING - suppressed duplicates, no-op resolutions, schema fallbacks
  ERROR   - rolled-back transactions
"""

import logging
import sys

_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic")

# analytics modules whose per-signal detail is worth tracing on its own
_DECISION_LOGGERS = (
    "reckoning.core.pattern_observer",
    "reckoning.core.scene_boundary",
    "reckoning.core.emergence",
    "reckoning.core.evolution_detector",
)


def setup_logging(level: str = "INFO", engine_decisions: bool = False) -> None:
    """Configure the root logger.

    ``engine_decisions`` turns on DEBUG for the analytics modules only,
    leaving everything else at ``level``.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(name)s] %(message)s",
        stream=sys.stdout,
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if engine_decisions:
        for name in _DECISION_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)
