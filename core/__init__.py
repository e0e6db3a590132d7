# core/__init__.py
"""
TRAINREG Core Module
====================

Ambient infrastructure shared by every layer.

Public API:
    - Configuration: Config
    - Logging: LoggingConfig
    - Utilities: SingletonMeta
"""

from .config import Config
from .singleton import SingletonMeta
from .logging_config import LoggingConfig

__all__ = [
    "Config",
    "SingletonMeta",
    "LoggingConfig",
]
