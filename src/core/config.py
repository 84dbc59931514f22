"""
GardenGuard Discord Bot - Configuration Module
==============================================

Centralized configuration loaded from environment variables.

DESIGN:
    One dataclass holds every setting, built once at startup by
    load_config() and shared through get_config(). Required variables
    are checked together so a misconfigured deployment reports every
    missing name in one error instead of failing one at a time.

    Key patterns:
    - Singleton via get_config()
    - Validation at load time, not on access
    - Role helpers centralize the protected-role rule
"""

import os
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Set
from zoneinfo import ZoneInfo


# =============================================================================
# Timezone Configuration
# =============================================================================

NY_TZ = ZoneInfo("America/New_York")
"""Eastern timezone used for every timestamp the bot produces."""


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Bot authentication token.
        scam_channel_id: Channel where report threads and summaries are posted.
        base_role_id: Role every new, unverified member receives.
        protected_role_ids: Staff roles exempt from moderation.
        excluded_channel_ids: Channels the scanner ignores.
        excluded_channel_patterns: Channel-name regexes the scanner ignores.
    """

    # -------------------------------------------------------------------------
    # Required
    # -------------------------------------------------------------------------

    discord_token: str
    scam_channel_id: int
    base_role_id: int

    # -------------------------------------------------------------------------
    # Optional: Roles & Channels
    # -------------------------------------------------------------------------

    protected_role_ids: Set[int] = field(default_factory=set)
    excluded_channel_ids: Set[int] = field(default_factory=set)
    excluded_channel_patterns: List[Pattern] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Optional: Reporting
    # -------------------------------------------------------------------------

    report_interval_minutes: int = 0  # 0 disables the periodic summary

    # -------------------------------------------------------------------------
    # Optional: Storage & Retention
    # -------------------------------------------------------------------------

    whitelist_path: str = "data/whitelist.json"
    ledger_retention_days: int = 7

    # -------------------------------------------------------------------------
    # Optional: Impersonation
    # -------------------------------------------------------------------------

    impersonation_threshold: float = 0.95

    # -------------------------------------------------------------------------
    # Optional: Webhooks
    # -------------------------------------------------------------------------

    error_webhook_url: Optional[str] = None


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Color palette for report embeds."""

    GREEN = 0x1F5E2E
    GOLD = 0xE6B84A
    RED = 0xDC3545
    BLUE = 0x3498DB
    ORANGE = 0xFF9800

    SUCCESS = GREEN
    WARNING = GOLD
    INFO = BLUE
    ALERT = RED
    LEADERBOARD = GOLD


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int(value: Optional[str], name: str) -> int:
    """
    Parse string to integer.

    Raises:
        ConfigValidationError: If value is missing or not a valid integer.
    """
    if not value:
        raise ConfigValidationError(f"Missing required: {name}")
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_optional(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_int_set(value: Optional[str]) -> Set[int]:
    """
    Parse comma-separated string to set of integers.

    Args:
        value: e.g. "123,456,789".

    Returns:
        Set of parsed integers; invalid parts are skipped.
    """
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if part:
            try:
                result.add(int(part))
            except ValueError:
                pass  # Skip invalid entries silently
    return result


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: int = None,
    max_val: int = None,
) -> int:
    """
    Parse optional integer with default and range clamping.

    Out-of-range values are clamped and unparsable values fall back to the
    default; both cases log a warning.
    """
    if not value:
        return default
    from src.core.logger import logger
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _parse_pattern_list(value: Optional[str], name: str) -> List[Pattern]:
    """
    Parse comma-separated regular expressions.

    Invalid expressions are dropped with a warning rather than failing startup.
    """
    if not value:
        return []
    patterns = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            patterns.append(re.compile(part))
        except re.error as e:
            from src.core.logger import logger
            logger.warning(f"Config {name} pattern '{part}' invalid ({e}), skipping")
    return patterns


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from src.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated Config object.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    missing = []

    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        missing.append("DISCORD_TOKEN")

    scam_channel_id_str = os.getenv("SCAM_CHANNEL_ID")
    if not scam_channel_id_str:
        missing.append("SCAM_CHANNEL_ID")

    base_role_id_str = os.getenv("BASE_ROLE_ID")
    if not base_role_id_str:
        missing.append("BASE_ROLE_ID")

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    threshold_percent = _parse_int_with_default(
        os.getenv("IMPERSONATION_THRESHOLD"), 95, "IMPERSONATION_THRESHOLD", min_val=50, max_val=100
    )

    return Config(
        discord_token=discord_token,
        scam_channel_id=_parse_int(scam_channel_id_str, "SCAM_CHANNEL_ID"),
        base_role_id=_parse_int(base_role_id_str, "BASE_ROLE_ID"),
        protected_role_ids=_parse_int_set(os.getenv("PROTECTED_ROLE_IDS")),
        excluded_channel_ids=_parse_int_set(os.getenv("EXCLUDED_CHANNEL_IDS")),
        excluded_channel_patterns=_parse_pattern_list(
            os.getenv("EXCLUDED_CHANNEL_PATTERNS"), "EXCLUDED_CHANNEL_PATTERNS"
        ),
        report_interval_minutes=_parse_int_with_default(
            os.getenv("REPORT_INTERVAL_MINUTES"), 0, "REPORT_INTERVAL_MINUTES", min_val=0, max_val=60 * 24 * 30
        ),
        whitelist_path=os.getenv("WHITELIST_PATH", "data/whitelist.json"),
        ledger_retention_days=_parse_int_with_default(
            os.getenv("LEDGER_RETENTION_DAYS"), 7, "LEDGER_RETENTION_DAYS", min_val=1, max_val=365
        ),
        impersonation_threshold=threshold_percent / 100,
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading it on first use.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> Config:
    """Load the config (raising on errors) and log a summary."""
    from src.core.logger import logger

    config = get_config()

    if not config.protected_role_ids:
        logger.warning("PROTECTED_ROLE_IDS not set: every member is treated as protected")

    logger.tree("Configuration Validated", [
        ("Report Channel", str(config.scam_channel_id)),
        ("Base Role", str(config.base_role_id)),
        ("Protected Roles", str(len(config.protected_role_ids))),
        ("Excluded Channels", f"{len(config.excluded_channel_ids)} ids, {len(config.excluded_channel_patterns)} patterns"),
        ("Report Interval", f"{config.report_interval_minutes} min" if config.report_interval_minutes else "Disabled"),
        ("Impersonation Threshold", f"{config.impersonation_threshold:.2f}"),
    ], emoji="⚙️")
    return config


# =============================================================================
# Role Helpers
# =============================================================================

def has_protected_role(role_ids: Iterable[int], protected_role_ids: Set[int]) -> bool:
    """
    Check whether a member holds a protected role.

    With no protected roles configured every member counts as protected,
    so a missing setting never results in staff being moderated.
    """
    if not protected_role_ids:
        return True
    return any(role_id in protected_role_ids for role_id in role_ids)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "NY_TZ",
    "get_config",
    "load_config",
    "validate_and_log_config",
    "has_protected_role",
]
