"""
GardenGuard - Reporting Tests
=============================

Tests for the security report counters and their delivery schedule.
"""

from datetime import timedelta

import pytest

from conftest import NOW, REPORT_CHANNEL_ID
from src.services.scam_detection.models import ScamType
from src.services.scam_detection.reporting import ReportingAggregator


@pytest.fixture
def aggregator():
    """Hourly aggregator with a few events recorded."""
    agg = ReportingAggregator(60, now=NOW)
    agg.record_event(ScamType.URL_SHORTENERS, 1, "Spammer", "spammer")
    agg.record_event(ScamType.URL_SHORTENERS, 1, "Spammer Renamed", "")
    agg.record_event(ScamType.DISCORD_INVITES, 2, "Inviter", "inviter")
    agg.record_manual_report()
    agg.record_admin_ban(900001, "Garden Mod", "https://cdn/avatar.png")
    return agg


class TestRecording:
    """Tests for counter updates."""

    def test_totals(self, aggregator):
        """Events count per category and per offender."""
        assert aggregator.intercept_count == 3
        assert aggregator.category_counts[ScamType.URL_SHORTENERS] == 2
        assert aggregator.category_counts[ScamType.ENCODED_URLS] == 0
        assert aggregator.offenders[1].count == 2

    def test_offender_names_refresh(self, aggregator):
        """The latest display name wins; an empty username keeps the old one."""
        stats = aggregator.offenders[1]
        assert stats.display_name == "Spammer Renamed"
        assert stats.username == "spammer"

    def test_summary_ranks_offenders(self, aggregator):
        """Top offenders are ordered by count."""
        summary = aggregator.build_summary(NOW)

        assert [uid for uid, _ in summary.top_offenders] == [1, 2]
        assert summary.manual_reports == 1
        assert summary.admin_bans[0][1].display_name == "Garden Mod"
        assert not summary.is_empty

    def test_empty_summary(self):
        """A fresh aggregator has nothing to report."""
        assert ReportingAggregator(60, now=NOW).build_summary(NOW).is_empty


class TestSummaryLabels:
    """Tests for the interval wording."""

    @pytest.mark.parametrize("minutes, description, period", [
        (30, "30 minutes", "Period"),
        (1440, "1 day(s)", "Daily"),
        (10080, "7 day(s)", "Weekly"),
    ])
    def test_labels(self, minutes, description, period):
        summary = ReportingAggregator(minutes, now=NOW).build_summary(NOW)
        assert summary.interval_description == description
        assert summary.leaderboard_period == period


class TestSchedule:
    """Tests for is_due and maybe_send."""

    def test_disabled(self):
        """An interval of zero never sends."""
        agg = ReportingAggregator(0, now=NOW)
        assert not agg.enabled
        assert not agg.is_due(NOW + timedelta(days=30))

    def test_check_interval_capped(self):
        """Due checks run at least hourly."""
        assert ReportingAggregator(30).check_interval == 1800.0
        assert ReportingAggregator(1440).check_interval == 3600.0

    @pytest.mark.asyncio
    async def test_not_due(self, aggregator, platform):
        """Nothing is sent before the interval elapses."""
        assert not await aggregator.maybe_send(platform, REPORT_CHANNEL_ID, NOW + timedelta(minutes=59))
        platform.send_summary.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sent_and_reset(self, aggregator, platform):
        """A delivered report resets every counter."""
        later = NOW + timedelta(hours=1)

        assert await aggregator.maybe_send(platform, REPORT_CHANNEL_ID, later)

        channel_id, summary = platform.send_summary.call_args.args
        assert channel_id == REPORT_CHANNEL_ID
        assert summary.intercept_count == 3
        assert aggregator.intercept_count == 0
        assert aggregator.offenders == {} and aggregator.admin_bans == {}
        assert aggregator.last_report_at == later

    @pytest.mark.asyncio
    async def test_failed_send_keeps_counts(self, aggregator, platform):
        """Counters survive a failed delivery for the next attempt."""
        platform.send_summary.return_value = False

        assert not await aggregator.maybe_send(platform, REPORT_CHANNEL_ID, NOW + timedelta(hours=1))
        assert aggregator.intercept_count == 3
        assert aggregator.last_report_at == NOW
