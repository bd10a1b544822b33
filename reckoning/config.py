"""Environment-driven settings for the Reckoning engine."""

import os
from pathlib import Path

from dotenv import load_dotenv


def _find_env_file() -> Path | None:
    """Return the nearest .env above this package, if any."""
    for directory in list(Path(__file__).parents)[:4]:
        candidate = directory / ".env"
        if candidate.exists():
            return candidate
    return None


_env_file = _find_env_file()
if _env_file:
    load_dotenv(_env_file)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Settings read once at import; tests patch the class attributes."""

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./reckoning.db")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # SQL echo
    DEBUG: bool = _env_bool("DEBUG")
    # DEBUG output from the analytics modules only
    LOG_ENGINE_DECISIONS: bool = _env_bool("LOG_ENGINE_DECISIONS")

    @classmethod
    def validate(cls) -> list[str]:
        """Return human-readable problems with the current settings."""
        issues = []

        if not cls.DATABASE_URL:
            issues.append("DATABASE_URL is empty. Set it in .env or the environment.")
        elif "://" not in cls.DATABASE_URL:
            issues.append(f"DATABASE_URL does not look like a SQLAlchemy URL: {cls.DATABASE_URL!r}")

        if cls.LOG_LEVEL.upper() not in _LOG_LEVELS:
            issues.append(f"Unknown LOG_LEVEL {cls.LOG_LEVEL!r}, falling back to INFO")

        return issues

    @classmethod
    def is_debug(cls) -> bool:
        return cls.DEBUG

    @classmethod
    def get_database_url(cls) -> str:
        """Current DATABASE_URL, re-read from the environment on each call."""
        return os.getenv("DATABASE_URL", cls.DATABASE_URL)
