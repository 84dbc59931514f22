"""
Scam Detection Reporting Aggregator
===================================

Counts intercepts per category and per offender, plus moderator bans,
and emits a periodic security summary.

DESIGN:
    Purely observational: nothing here feeds back into decisions. The
    check job runs often (at most hourly) and sends only once the full
    interval has elapsed since the last successful report, so a missed
    tick or a failed send never loses counts.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from src.core.config import NY_TZ
from src.core.constants import MAX_REPORT_CHECK_INTERVAL, TOP_OFFENDERS_LIMIT
from src.core.logger import logger

from .models import ScamType

if TYPE_CHECKING:
    from .platform import PlatformAdapter


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class OffenderStats:
    display_name: str
    username: str
    count: int = 0


@dataclass
class AdminBanStats:
    display_name: str
    avatar_url: Optional[str] = None
    count: int = 0


@dataclass
class ReportSummary:
    """Snapshot of one reporting interval, ready to render."""
    generated_at: datetime
    interval_minutes: int
    intercept_count: int
    category_counts: Dict[ScamType, int]
    manual_reports: int
    top_offenders: List[Tuple[int, OffenderStats]] = field(default_factory=list)
    admin_bans: List[Tuple[int, AdminBanStats]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.intercept_count + self.manual_reports == 0 and not self.admin_bans

    @property
    def interval_description(self) -> str:
        if self.interval_minutes >= 1440:
            return f"{round(self.interval_minutes / 1440)} day(s)"
        return f"{self.interval_minutes} minutes"

    @property
    def leaderboard_period(self) -> str:
        if self.interval_minutes >= 10080:
            return "Weekly"
        if self.interval_minutes >= 1440:
            return "Daily"
        return "Period"


# =============================================================================
# Aggregator
# =============================================================================

class ReportingAggregator:
    """
    Rolling counters for the security report.

    An interval of 0 minutes disables sending; counters still accumulate
    so they can be inspected.
    """

    def __init__(self, interval_minutes: int = 0, now: Optional[datetime] = None) -> None:
        self.interval_minutes = interval_minutes
        self.last_report_at: datetime = now or datetime.now(NY_TZ)
        self.intercept_count = 0
        self.category_counts: Dict[ScamType, int] = {t: 0 for t in ScamType}
        self.manual_reports = 0
        self.offenders: Dict[int, OffenderStats] = {}
        self.admin_bans: Dict[int, AdminBanStats] = {}

    @property
    def enabled(self) -> bool:
        return self.interval_minutes > 0

    @property
    def interval(self) -> timedelta:
        return timedelta(minutes=self.interval_minutes)

    @property
    def check_interval(self) -> float:
        """Seconds between due checks: the interval, capped at one hour."""
        return float(min(self.interval_minutes * 60, MAX_REPORT_CHECK_INTERVAL))

    # =========================================================================
    # Recording
    # =========================================================================

    def record_event(self, category: ScamType, user_id: int, display_name: str, username: str = "") -> None:
        self.intercept_count += 1
        self.category_counts[category] = self.category_counts.get(category, 0) + 1

        stats = self.offenders.get(user_id)
        if stats is None:
            stats = OffenderStats(display_name=display_name, username=username)
            self.offenders[user_id] = stats
        else:
            stats.display_name = display_name or stats.display_name
            stats.username = username or stats.username
        stats.count += 1

    def record_manual_report(self) -> None:
        self.manual_reports += 1

    def record_admin_ban(self, admin_id: int, display_name: str, avatar_url: Optional[str] = None) -> None:
        stats = self.admin_bans.setdefault(admin_id, AdminBanStats(display_name=display_name))
        stats.display_name = display_name
        stats.avatar_url = avatar_url or stats.avatar_url
        stats.count += 1

    # =========================================================================
    # Summary
    # =========================================================================

    def build_summary(self, now: Optional[datetime] = None) -> ReportSummary:
        top = sorted(self.offenders.items(), key=lambda item: item[1].count, reverse=True)
        bans = sorted(self.admin_bans.items(), key=lambda item: item[1].count, reverse=True)
        return ReportSummary(
            generated_at=now or datetime.now(NY_TZ),
            interval_minutes=self.interval_minutes,
            intercept_count=self.intercept_count,
            category_counts=dict(self.category_counts),
            manual_reports=self.manual_reports,
            top_offenders=top[:TOP_OFFENDERS_LIMIT],
            admin_bans=bans[:TOP_OFFENDERS_LIMIT],
        )

    def reset(self) -> None:
        self.intercept_count = 0
        self.category_counts = {t: 0 for t in ScamType}
        self.manual_reports = 0
        self.offenders.clear()
        self.admin_bans.clear()

    def is_due(self, now: Optional[datetime] = None) -> bool:
        if not self.enabled:
            return False
        return (now or datetime.now(NY_TZ)) - self.last_report_at >= self.interval

    async def maybe_send(
        self,
        platform: "PlatformAdapter",
        channel_id: int,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Send the summary if the interval has elapsed.

        Counters reset only after the platform confirms delivery.
        Returns True when a report went out.
        """
        now = now or datetime.now(NY_TZ)
        if not self.is_due(now):
            return False

        summary = self.build_summary(now)
        sent = await platform.send_summary(channel_id, summary)
        if not sent:
            logger.warning("Security Report Not Sent", [
                ("Channel", str(channel_id)),
                ("Intercepts", str(summary.intercept_count)),
            ])
            return False

        logger.tree("Security Report Sent", [
            ("Intercepts", str(summary.intercept_count)),
            ("Manual Reports", str(summary.manual_reports)),
            ("Admins With Bans", str(len(summary.admin_bans))),
        ], emoji="📊")
        self.reset()
        self.last_report_at = now
        return True


__all__ = ["ReportingAggregator", "ReportSummary", "OffenderStats", "AdminBanStats"]
