"""
GardenGuard - Suspicion Ledger & Dedup Tests
============================================

Tests for repeat-offender state and cross-channel sighting tracking.
"""

from datetime import timedelta

from conftest import NOW
from src.services.scam_detection.dedup import DedupTracker
from src.services.scam_detection.ledger import SuspicionLedger


# =============================================================================
# Suspicion Ledger
# =============================================================================

class TestRecordQuarantine:
    """Tests for quarantine tracking."""

    def test_first_quarantine(self):
        """A first offense opens a one-hour window with one occurrence."""
        ledger = SuspicionLedger()
        entry = ledger.record_quarantine(42, NOW)

        assert entry.suspicion_expires_at == NOW + timedelta(hours=1)
        assert entry.spam_occurrences == 1
        assert ledger.is_suspected(42, NOW + timedelta(minutes=59))
        assert not ledger.is_suspected(42, NOW + timedelta(hours=1))

    def test_windows_stack(self):
        """A repeat offense extends from the current end of the window."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(42, NOW)
        entry = ledger.record_quarantine(42, NOW + timedelta(minutes=10))

        assert entry.suspicion_expires_at == NOW + timedelta(hours=2)
        assert entry.spam_occurrences == 2
        assert entry.offense_count == 2

    def test_lapsed_window_restarts_from_now(self):
        """An expired window is extended from now, not from the old end."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(42, NOW)
        later = NOW + timedelta(hours=3)
        entry = ledger.record_quarantine(42, later)

        assert entry.suspicion_expires_at == later + timedelta(hours=1)

    def test_unknown_user(self):
        """Users never quarantined are not suspected."""
        ledger = SuspicionLedger()
        assert not ledger.is_suspected(7, NOW)
        assert ledger.get(7) is None
        assert 7 not in ledger


class TestMentionRate:
    """Tests for the mention counter."""

    def test_unknown_user_not_counted(self):
        """Mentions from users without an entry return zero."""
        assert SuspicionLedger().record_mention(42, NOW) == 0

    def test_five_mentions_then_cooldown(self):
        """Five mentions inside the cooldown count to five; one after it restarts at one."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(42, NOW)

        counts = [ledger.record_mention(42, NOW + timedelta(minutes=i)) for i in range(5)]
        assert counts == [1, 2, 3, 4, 5]
        assert ledger.get(42).mention_count == 5
        assert ledger.exceeds_mention_limit(42)

        assert ledger.record_mention(42, NOW + timedelta(minutes=14)) == 1
        assert not ledger.exceeds_mention_limit(42)

    def test_count_resets_at_exact_cooldown(self):
        """A gap of exactly ten minutes restarts the counter."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(42, NOW)
        for _ in range(4):
            ledger.record_mention(42, NOW)

        assert ledger.record_mention(42, NOW + timedelta(minutes=10)) == 1

    def test_limit_is_strictly_greater(self):
        """Exactly four mentions is still within the limit."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(42, NOW)
        for _ in range(4):
            ledger.record_mention(42, NOW)
        assert not ledger.exceeds_mention_limit(42)


class TestSpamLimit:
    """Tests for the spam-occurrence limit."""

    def test_seventh_quarantine_exceeds(self):
        """Seven occurrences reach the limit, six do not."""
        ledger = SuspicionLedger()
        for i in range(6):
            ledger.record_quarantine(42, NOW + timedelta(minutes=i))
        assert not ledger.exceeds_spam_limit(42)

        ledger.record_quarantine(42, NOW + timedelta(minutes=6))
        assert ledger.exceeds_spam_limit(42)


class TestRetention:
    """Tests for listing and purging entries."""

    def test_active_entries_sorted_by_expiry(self):
        """Active suspects come back soonest-expiring first."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(1, NOW)
        ledger.record_quarantine(1, NOW)
        ledger.record_quarantine(2, NOW)

        assert [uid for uid, _ in ledger.active_entries(NOW)] == [2, 1]

    def test_purge_keeps_recent_and_active(self):
        """Only entries expired beyond the retention period are dropped."""
        ledger = SuspicionLedger()
        ledger.record_quarantine(1, NOW - timedelta(days=10))
        ledger.record_quarantine(2, NOW - timedelta(days=1))
        ledger.record_quarantine(3, NOW)

        assert ledger.purge_expired(timedelta(days=7), NOW) == 1
        assert 1 not in ledger
        assert 2 in ledger and 3 in ledger
        assert ledger.get(2).minutes_left(NOW) == 0


# =============================================================================
# Dedup Tracker
# =============================================================================

class TestDedupTracker:
    """Tests for cross-channel sightings."""

    def test_channels_accumulate(self):
        """Identical content in new channels grows the set."""
        dedup = DedupTracker()
        dedup.record_sighting(42, "buy now", 1, NOW)
        dedup.record_sighting(42, "buy now", 2, NOW)
        channels = dedup.record_sighting(42, "buy now", 3, NOW)

        assert channels == {1, 2, 3}

    def test_same_channel_counts_once(self):
        """Reposting in one channel does not inflate the count."""
        dedup = DedupTracker()
        dedup.record_sighting(42, "buy now", 1, NOW)
        assert dedup.record_sighting(42, "buy now", 1, NOW) == {1}

    def test_different_content_or_author(self):
        """Keys are per author and exact content."""
        dedup = DedupTracker()
        dedup.record_sighting(42, "buy now", 1, NOW)
        assert dedup.record_sighting(42, "Buy now", 2, NOW) == {2}
        assert dedup.record_sighting(43, "buy now", 3, NOW) == {3}

    def test_sightings_expire(self):
        """Sightings older than the TTL stop counting."""
        dedup = DedupTracker(ttl=timedelta(minutes=5))
        dedup.record_sighting(42, "buy now", 1, NOW)
        channels = dedup.record_sighting(42, "buy now", 2, NOW + timedelta(minutes=6))

        assert channels == {2}

    def test_schedule_expiry(self):
        """A sighting can be given a shorter life."""
        dedup = DedupTracker()
        dedup.record_sighting(42, "buy now", 1, NOW)
        dedup.schedule_expiry(42, "buy now", 1, after=timedelta(seconds=10), now=NOW)

        assert dedup.channels_for(42, "buy now", NOW + timedelta(seconds=11)) == set()

    def test_sweep(self):
        """The sweep drops keys whose sightings all expired."""
        dedup = DedupTracker(ttl=timedelta(minutes=5))
        dedup.record_sighting(42, "old", 1, NOW)
        dedup.record_sighting(42, "new", 1, NOW + timedelta(minutes=4))

        assert dedup.sweep(NOW + timedelta(minutes=6)) == 1
        assert len(dedup) == 1
