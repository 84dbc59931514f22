"""
GardenGuard Discord Bot - Core Package
======================================

Configuration, logging and shared constants.

DESIGN:
    Core modules expose global instances so every service sees the
    same state:
    - get_config() returns the same Config instance
    - logger is a global TreeLogger instance
"""

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    NY_TZ,
    get_config,
    has_protected_role,
)

from .logger import logger, TreeLogger


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "NY_TZ",
    "get_config",
    "has_protected_role",
    "logger",
    "TreeLogger",
]
