from __future__ import annotations

from pathlib import Path
import datetime

from core.paths import get_user_data_dir

# default database file name inside the user data dir
DEFAULT_DB_NAME = "trainreg.db"


# -----------------------------
# Datetime utilities
# -----------------------------

def utc_now() -> datetime.datetime:
    """
    The only source of "now" in the project.

    - naive datetime (no tzinfo) in UTC
    - SQLite has no timezone-aware datetimes, so nothing aware is stored
    - use this instead of datetime.utcnow() (deprecated) or datetime.now()
    """
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def today() -> datetime.date:
    """Local calendar date; periods are calendar weeks, not UTC instants."""
    return datetime.date.today()


# -----------------------------
# DB Path utilities
# -----------------------------

def get_db_path() -> Path:
    """
    DATABASE_PATH from the configuration when set, otherwise
    <user data dir>/trainreg.db. Single source of truth.
    """
    from core.config import get_database_path

    custom = get_database_path()
    path = custom if custom else get_user_data_dir() / DEFAULT_DB_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    return path

