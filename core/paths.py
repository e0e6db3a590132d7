"""
core/paths.py — TRAINREG
=========================
Single source of truth for every filesystem path the application uses.

Principle:
  - BASE_DIR → files shipped with the application (config)
  - get_user_data_dir() → writable user data (database, logs)
    - Windows: %APPDATA%/TRAINREG/
    - Linux/Mac: ~/.local/share/TRAINREG/
    - TRAINREG_DATA_DIR overrides both (useful for tests and portable installs)

Usage:
    from core.paths import get_user_data_dir, logs_path

    db_path = get_user_data_dir() / "trainreg.db"
"""

import os
import sys
from pathlib import Path


APP_NAME = "TRAINREG"


# ══════════════════════════════════════════════
# Application resources (read-only)
# ══════════════════════════════════════════════

BASE_DIR = Path(__file__).resolve().parent.parent


def config_path(filename: str = "") -> Path:
    """Application config folder or a file inside it."""
    p = BASE_DIR / "config"
    return p / filename if filename else p


# ══════════════════════════════════════════════
# User data (read-write)
# ══════════════════════════════════════════════

def get_user_data_dir() -> Path:
    """
    Writable user data folder, created on first use.

    Windows : %APPDATA%/TRAINREG/
    Linux   : ~/.local/share/TRAINREG/
    """
    override = os.getenv("TRAINREG_DATA_DIR")
    if override:
        user_dir = Path(override)
    else:
        if sys.platform == "win32":
            appdata = os.getenv("APPDATA") or str(Path.home() / "AppData" / "Roaming")
            base = Path(appdata)
        else:
            base = Path.home() / ".local" / "share"
        user_dir = base / APP_NAME

    user_dir.mkdir(parents=True, exist_ok=True)
    return user_dir


def logs_path(filename: str = "") -> Path:
    """Log folder inside the user data dir."""
    p = get_user_data_dir() / "logs"
    p.mkdir(parents=True, exist_ok=True)
    return p / filename if filename else p
