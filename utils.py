"""
Path, database location and clock helpers shared by the budgets modules.

Relative paths from the configuration are anchored at the project root so the
budgets database and log files land in the same place regardless of the
working directory.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.engine import make_url

from exceptions import ConfigError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent
CONNECTION_ENV_VAR = "DB_CONNECTION_STRING"
DEFAULT_TIMEZONE = "UTC"


def _anchor(path_value: str | Path) -> Path:
    """Return ``path_value`` as an absolute path, relative ones under the project root."""
    path = Path(path_value)
    return path if path.is_absolute() else PROJECT_ROOT / path


def _make_parent(path: Path) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Could not create directory '%s': %s", path.parent, exc)
        raise
    return path


def ensure_data_dir(config: Optional[Dict[str, Any]] = None) -> Path:
    """
    Create the configured budgets data directory when missing.

    Args:
        config: Configuration dictionary; ``database.data_dir`` is used.

    Returns:
        Absolute path to the data directory.
    """
    database = (config or {}).get("database", {})
    data_dir = _anchor(database.get("data_dir", "data"))
    _make_parent(data_dir / "budgets.db")
    return data_dir


def _with_sqlite_dir(connection_string: str) -> str:
    url = make_url(connection_string)
    if url.drivername.startswith("sqlite") and url.database not in (None, "", ":memory:"):
        _make_parent(_anchor(url.database))
    return connection_string


def resolve_connection_string(config: Optional[Dict[str, Any]] = None) -> str:
    """
    Pick the SQLAlchemy URL of the local budgets database.

    The ``DB_CONNECTION_STRING`` environment variable wins over
    ``database.connection_string``; without either the database is a SQLite
    file named by ``database.path`` inside the data directory. For SQLite
    URLs the parent directory is created.
    """
    database = (config or {}).get("database", {})
    explicit = os.environ.get(CONNECTION_ENV_VAR) or database.get("connection_string")
    if explicit:
        return _with_sqlite_dir(explicit)

    db_path = Path(database.get("path", "budgets.db"))
    if not db_path.is_absolute():
        db_path = ensure_data_dir(config) / db_path
    _make_parent(db_path)
    logger.debug("Using SQLite budgets database at %s", db_path)
    return f"sqlite:///{db_path.as_posix()}"


def resolve_log_path(log_path: str) -> Path:
    """Anchor a configured log file path and create its directory."""
    return _make_parent(_anchor(log_path))


def make_clock(config: Optional[Dict[str, Any]] = None) -> Callable[[], date]:
    """
    Build a callable returning today's date in the configured budget timezone.

    Raises:
        ConfigError: If the timezone name is unknown
    """
    tz_name = (config or {}).get("budgets", {}).get("timezone", DEFAULT_TIMEZONE)
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError("Unknown budget timezone", details={"timezone": tz_name}, original_error=exc) from exc

    def today() -> date:
        return datetime.now(tz).date()

    return today
