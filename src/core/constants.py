"""
GardenGuard - Centralized Constants
===================================

Shared time units, intervals and limits used across services.
Detection thresholds live with the detection package.
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800

# =============================================================================
# Interval Constants (in seconds)
# =============================================================================

PROTECTED_CACHE_REFRESH_INTERVAL = 12 * SECONDS_PER_HOUR
IMPERSONATION_SCAN_INTERVAL = 6 * SECONDS_PER_HOUR
IMPERSONATION_SCAN_INITIAL_DELAY = 5
DEDUP_SWEEP_INTERVAL = 5 * SECONDS_PER_MINUTE
LEDGER_PURGE_INTERVAL = SECONDS_PER_HOUR
MAX_REPORT_CHECK_INTERVAL = SECONDS_PER_HOUR

# =============================================================================
# Timeout / Delay Constants (in seconds)
# =============================================================================

SHUTDOWN_TIMEOUT = 10
IMPERSONATION_ALERT_DELAY = 1.0       # Pause between alerts during a sweep
DELETE_AFTER_SHORT = 8                # In-channel notice lifetime

# =============================================================================
# Platform Limits
# =============================================================================

RECENT_MESSAGE_FETCH_LIMIT = 100      # Messages scanned per channel on quarantine
BAN_DELETE_MESSAGE_SECONDS = 7 * SECONDS_PER_DAY
THREAD_AUTO_ARCHIVE_MINUTES = 1440
EMBED_FIELD_LIMIT = 1024
TOP_OFFENDERS_LIMIT = 5


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "SECONDS_PER_MINUTE",
    "SECONDS_PER_HOUR",
    "SECONDS_PER_DAY",
    "SECONDS_PER_WEEK",
    "PROTECTED_CACHE_REFRESH_INTERVAL",
    "IMPERSONATION_SCAN_INTERVAL",
    "IMPERSONATION_SCAN_INITIAL_DELAY",
    "DEDUP_SWEEP_INTERVAL",
    "LEDGER_PURGE_INTERVAL",
    "MAX_REPORT_CHECK_INTERVAL",
    "SHUTDOWN_TIMEOUT",
    "IMPERSONATION_ALERT_DELAY",
    "DELETE_AFTER_SHORT",
    "RECENT_MESSAGE_FETCH_LIMIT",
    "BAN_DELETE_MESSAGE_SECONDS",
    "THREAD_AUTO_ARCHIVE_MINUTES",
    "EMBED_FIELD_LIMIT",
    "TOP_OFFENDERS_LIMIT",
]
