"""
Scam Detection Suspicion Ledger
===============================

Per-user repeat-offender state: suspicion window, mention rate and
spam-occurrence count.

DESIGN:
    Expiry is lazy. An entry stays in the map after its window passes and
    simply stops counting as suspected; the retention job drops entries
    that have been inactive for days. Every read-then-write happens in one
    synchronous call so no await can split it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from src.core.config import NY_TZ

from .constants import MAX_MENTIONS, MAX_SPAM_OCCURRENCES, MENTION_COOLDOWN, SUSPICION_WINDOW


@dataclass
class SuspicionEntry:
    """Repeat-offender record for one user."""
    suspicion_expires_at: datetime
    offense_count: int = 1
    spam_occurrences: int = 1
    mention_count: int = 0
    last_mention_at: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        return self.suspicion_expires_at > now

    def minutes_left(self, now: datetime) -> int:
        remaining = (self.suspicion_expires_at - now).total_seconds()
        return max(0, -(-int(remaining) // 60))


class SuspicionLedger:
    """
    In-memory map of user id to SuspicionEntry.

    Thresholds default to the module constants and can be overridden for
    tests or tuning.
    """

    def __init__(
        self,
        window: timedelta = timedelta(seconds=SUSPICION_WINDOW),
        mention_cooldown: timedelta = timedelta(seconds=MENTION_COOLDOWN),
        max_mentions: int = MAX_MENTIONS,
        max_spam_occurrences: int = MAX_SPAM_OCCURRENCES,
    ) -> None:
        self.window = window
        self.mention_cooldown = mention_cooldown
        self.max_mentions = max_mentions
        self.max_spam_occurrences = max_spam_occurrences
        self._entries: Dict[int, SuspicionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._entries

    # =========================================================================
    # Quarantine Tracking
    # =========================================================================

    def record_quarantine(self, user_id: int, now: Optional[datetime] = None) -> SuspicionEntry:
        """
        Create or extend a user's suspicion window.

        An existing window is extended from its current end (or from now,
        if it already lapsed) so repeated quarantines stack.
        """
        now = now or datetime.now(NY_TZ)
        entry = self._entries.get(user_id)

        if entry is None:
            entry = SuspicionEntry(suspicion_expires_at=now + self.window)
            self._entries[user_id] = entry
            return entry

        entry.suspicion_expires_at = max(entry.suspicion_expires_at, now) + self.window
        entry.spam_occurrences += 1
        entry.offense_count += 1
        return entry

    def is_suspected(self, user_id: int, now: Optional[datetime] = None) -> bool:
        entry = self._entries.get(user_id)
        if entry is None:
            return False
        return entry.is_active(now or datetime.now(NY_TZ))

    def get(self, user_id: int) -> Optional[SuspicionEntry]:
        return self._entries.get(user_id)

    # =========================================================================
    # Mention Rate
    # =========================================================================

    def record_mention(self, user_id: int, now: Optional[datetime] = None) -> int:
        """
        Count one mentioning message from a suspected user.

        The counter restarts when the cooldown has passed since the last
        recorded mention. Returns the new count, or 0 for unknown users.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return 0

        now = now or datetime.now(NY_TZ)

        if (
            entry.mention_count == 0
            or entry.last_mention_at is None
            or now - entry.last_mention_at >= self.mention_cooldown
        ):
            entry.mention_count = 1
        else:
            entry.mention_count += 1

        entry.last_mention_at = now
        return entry.mention_count

    def exceeds_mention_limit(self, user_id: int) -> bool:
        entry = self._entries.get(user_id)
        return entry is not None and entry.mention_count > self.max_mentions

    def exceeds_spam_limit(self, user_id: int) -> bool:
        entry = self._entries.get(user_id)
        return entry is not None and entry.spam_occurrences >= self.max_spam_occurrences

    # =========================================================================
    # Listing & Retention
    # =========================================================================

    def active_entries(self, now: Optional[datetime] = None) -> List[Tuple[int, SuspicionEntry]]:
        """Active suspects, soonest expiry first."""
        now = now or datetime.now(NY_TZ)
        active = [(uid, e) for uid, e in self._entries.items() if e.is_active(now)]
        active.sort(key=lambda item: item[1].suspicion_expires_at)
        return active

    def purge_expired(self, retention: timedelta, now: Optional[datetime] = None) -> int:
        """
        Drop entries whose suspicion ended more than `retention` ago.

        Active entries are never touched. Returns the number removed.
        """
        now = now or datetime.now(NY_TZ)
        cutoff = now - retention
        stale = [uid for uid, e in self._entries.items() if e.suspicion_expires_at < cutoff]
        for uid in stale:
            del self._entries[uid]
        return len(stale)


__all__ = ["SuspicionEntry", "SuspicionLedger"]
