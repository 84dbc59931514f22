"""
Scam Detection Multi-Channel Dedup Tracker
==========================================

Remembers which channels an identical (author, content) pair was posted
in, so cross-channel floods can be caught even when the text itself looks
harmless.

DESIGN:
    Each channel sighting carries its own expiry time. Expired sightings
    are dropped lazily on the next record for that key and by a periodic
    sweep, instead of one timer per message.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional, Set, Tuple

from src.core.config import NY_TZ

from .constants import SIGHTING_TTL


SightingKey = Tuple[int, str]


class DedupTracker:
    """Map of (author_id, content) to {channel_id: expires_at}."""

    def __init__(self, ttl: timedelta = timedelta(seconds=SIGHTING_TTL)) -> None:
        self.ttl = ttl
        self._sightings: Dict[SightingKey, Dict[int, datetime]] = {}

    def __len__(self) -> int:
        return len(self._sightings)

    def _prune(self, key: SightingKey, now: datetime) -> None:
        channels = self._sightings.get(key)
        if channels is None:
            return
        for channel_id in [cid for cid, expires in channels.items() if expires <= now]:
            del channels[channel_id]
        if not channels:
            del self._sightings[key]

    def record_sighting(
        self,
        author_id: int,
        content: str,
        channel_id: int,
        now: Optional[datetime] = None,
    ) -> Set[int]:
        """
        Add a channel to the key's set and return every live channel id.

        The new sighting gets the default expiry; call schedule_expiry to
        change it.
        """
        now = now or datetime.now(NY_TZ)
        key = (author_id, content)
        self._prune(key, now)
        channels = self._sightings.setdefault(key, {})
        channels[channel_id] = now + self.ttl
        return set(channels)

    def schedule_expiry(
        self,
        author_id: int,
        content: str,
        channel_id: int,
        after: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Set when one channel sighting stops counting."""
        channels = self._sightings.get((author_id, content))
        if channels is None or channel_id not in channels:
            return
        now = now or datetime.now(NY_TZ)
        channels[channel_id] = now + (after if after is not None else self.ttl)

    def channels_for(self, author_id: int, content: str, now: Optional[datetime] = None) -> Set[int]:
        key = (author_id, content)
        self._prune(key, now or datetime.now(NY_TZ))
        return set(self._sightings.get(key, {}))

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Remove every expired sighting. Returns how many keys were dropped."""
        now = now or datetime.now(NY_TZ)
        before = len(self._sightings)
        for key in list(self._sightings):
            self._prune(key, now)
        return before - len(self._sightings)


__all__ = ["DedupTracker", "SightingKey"]
