"""
Configuration Manager with Environment Variables Support
=========================================================

Usage:
    from core.config import config

    db_path = config.get_path("DATABASE_PATH")
    prefix = config.get_int("NUMBERING_INITIAL_PREFIX", 3530)

Priority: environment (.env loaded through python-dotenv) → JSON settings file
→ default.
"""
import os
import json
import logging
from core.singleton import SingletonMeta
from typing import Any, Optional, Dict
from pathlib import Path
from dotenv import load_dotenv

from exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Config(metaclass=SingletonMeta):
    """
    Unified configuration manager that supports:
    - Environment variables (.env)
    - JSON configuration file (config/settings.json)
    - Default values and type conversion
    """

    def __init__(self, env_file: Optional[Path] = None, settings_file: Optional[Path] = None):
        from core.paths import config_path

        self._env_loaded = False
        self._config_cache: Dict[str, Any] = {}
        self._env_file = Path(env_file) if env_file else Path(".env")
        self._config_file_path = Path(settings_file) if settings_file else config_path("settings.json")

        self._load_env()
        self._load_json_config()

    def _load_env(self):
        """Load environment variables from the .env file, if any."""
        if self._env_file.exists():
            load_dotenv(self._env_file)
            self._env_loaded = True
            logger.info(f"Environment variables loaded from {self._env_file}")
        else:
            logger.debug(".env file not found, using system environment only")

    def _load_json_config(self):
        """Load configuration from the JSON settings file."""
        if not self._config_file_path.exists():
            logger.debug(f"Config file not found: {self._config_file_path}")
            self._config_cache = {}
            return
        try:
            with open(self._config_file_path, "r", encoding="utf-8") as f:
                self._config_cache = json.load(f)
            logger.info(f"Configuration loaded from {self._config_file_path}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config file: {e}")
            self._config_cache = {}

    def get(
            self,
            key: str,
            default: Any = None,
            required: bool = False,
            from_env: bool = True
    ) -> Any:
        """
        Get configuration value.

        Raises:
            ConfigurationError: If required=True and the key is not found
        """
        if from_env:
            env_value = os.getenv(key)
            if env_value is not None:
                return env_value

        if key in self._config_cache:
            return self._config_cache[key]

        if default is not None:
            return default

        if required:
            raise ConfigurationError(
                f"Required configuration '{key}' not found. "
                f"Set it in .env or {self._config_file_path}"
            )

        return None

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes", "on")
        return bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (ValueError, TypeError):
            logger.warning(f"Invalid int value for '{key}': {value}, using default")
            return default

    def get_path(self, key: str, default: Optional[str] = None) -> Optional[Path]:
        value = self.get(key, default)
        return Path(value) if value else None


# Singleton instance
config = Config.get_instance()


# Convenience functions
def get_log_level() -> str:
    return str(config.get("LOG_LEVEL", default="INFO")).upper()


def get_database_path() -> Optional[Path]:
    """Custom database file from DATABASE_PATH, or None for the default location."""
    return config.get_path("DATABASE_PATH")


def get_initial_counters() -> tuple:
    """(prefix, seq) the counters row is seeded with on a fresh database."""
    from constants import Numbering

    prefix = config.get_int("NUMBERING_INITIAL_PREFIX", Numbering.INITIAL_PREFIX)
    seq = config.get_int("NUMBERING_INITIAL_SEQ", Numbering.INITIAL_SEQ)
    if not 0 <= prefix <= Numbering.MAX_PREFIX or seq < 0:
        raise ConfigurationError(
            f"Invalid initial counters prefix={prefix} seq={seq}",
            code="BAD_COUNTERS",
        )
    return prefix, seq
