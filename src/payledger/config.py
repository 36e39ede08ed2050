"""Runtime settings loaded from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_CURRENCY = "CNY"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    """payledger settings.

    Attributes:
        database_path: SQLite file used when no explicit path is given
        currency: Currency stamped on new accounts and postings
        log_level: Logging level name for the CLI
    """

    database_path: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    log_level: str = DEFAULT_LOG_LEVEL


def default_database_path() -> str:
    """Return ~/.payledger/payledger.db, creating the directory if needed."""
    db_dir = Path.home() / ".payledger"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "payledger.db")


def load_settings(environ: Optional[dict[str, str]] = None) -> Settings:
    """Build settings from PAYLEDGER_* environment variables."""
    env = os.environ if environ is None else environ
    return Settings(
        database_path=env.get("PAYLEDGER_DB_PATH") or None,
        currency=env.get("PAYLEDGER_CURRENCY") or DEFAULT_CURRENCY,
        log_level=(env.get("PAYLEDGER_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )
