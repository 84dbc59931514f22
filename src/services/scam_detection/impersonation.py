"""
Profile Impersonation Scanner
=============================

Compares member names against a cached set of protected (staff)
identities and raises impersonation verdicts.

DESIGN:
    The protected cache is rebuilt on a fixed interval or on demand.
    Join checks always alert. The periodic sweep remembers who it already
    reported under which name, so an unchanged impersonator is not
    re-announced every six hours.
"""

import asyncio
import re
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from src.core.config import NY_TZ, has_protected_role
from src.core.constants import IMPERSONATION_ALERT_DELAY, PROTECTED_CACHE_REFRESH_INTERVAL
from src.core.logger import logger

from .constants import IMPERSONATION_THRESHOLD
from .models import Impersonation, MemberSnapshot, ProtectedIdentity
from .orchestrator import QuarantineOrchestrator
from .platform import PlatformAdapter


# =============================================================================
# Normalization & Scoring
# =============================================================================

_SEPARATORS = re.compile(r"[\s._-]+")
_LEET = str.maketrans({"0": "o", "1": "i", "3": "e", "4": "a", "5": "s", "8": "b"})


def normalize(name: Optional[str]) -> str:
    """Lowercase, drop whitespace and separators, undo common leet-speak."""
    if not name:
        return ""
    return _SEPARATORS.sub("", name.lower()).translate(_LEET)


def similarity(a: str, b: str) -> float:
    """
    Score two already-normalized names between 0.0 and 1.0.

    Equal names score 1.0, containment scores the length ratio, anything
    else scores the share of positions holding the same character.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return min(len(a), len(b)) / max(len(a), len(b))
    matches = sum(1 for x, y in zip(a, b) if x == y)
    return matches / max(len(a), len(b))


# =============================================================================
# Scanner
# =============================================================================

class ImpersonationScanner:
    """
    Detects members whose display name or username mimics a protected member.

    Args:
        platform: Adapter used to list members.
        orchestrator: Receives impersonation verdicts.
        guild_id: Guild being watched.
        protected_role_ids: Staff roles whose holders are protected.
        threshold: Minimum similarity that counts as impersonation.
    """

    def __init__(
        self,
        platform: PlatformAdapter,
        orchestrator: QuarantineOrchestrator,
        guild_id: int,
        protected_role_ids: Iterable[int],
        threshold: float = IMPERSONATION_THRESHOLD,
        refresh_interval: timedelta = timedelta(seconds=PROTECTED_CACHE_REFRESH_INTERVAL),
    ) -> None:
        self.platform = platform
        self.orchestrator = orchestrator
        self.guild_id = guild_id
        self.protected_role_ids: Set[int] = set(protected_role_ids)
        self.threshold = threshold
        self.refresh_interval = refresh_interval
        self.cache: Dict[int, ProtectedIdentity] = {}
        self.cache_built_at: Optional[datetime] = None
        self._alerted: Dict[int, Tuple[str, int]] = {}

    # =========================================================================
    # Protected Cache
    # =========================================================================

    def cache_age(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        if self.cache_built_at is None:
            return None
        return (now or datetime.now(NY_TZ)) - self.cache_built_at

    def needs_refresh(self, now: Optional[datetime] = None) -> bool:
        age = self.cache_age(now)
        return age is None or age >= self.refresh_interval

    async def refresh_cache(self, now: Optional[datetime] = None) -> int:
        """Rebuild the protected identity cache. Returns its size."""
        members = await self.platform.list_protected_members(self.guild_id, sorted(self.protected_role_ids))

        cache: Dict[int, ProtectedIdentity] = {}
        for member, role_name in members:
            if member.is_bot or member.id in cache:
                continue
            cache[member.id] = ProtectedIdentity(
                user_id=member.id,
                display_name=member.display_name,
                username=member.username,
                display_name_normalized=normalize(member.display_name),
                username_normalized=normalize(member.username),
                role_name=role_name,
            )

        self.cache = cache
        self.cache_built_at = now or datetime.now(NY_TZ)
        logger.tree("Protected Cache Refreshed", [
            ("Members", str(len(cache))),
            ("Roles", str(len(self.protected_role_ids))),
        ], emoji="🛡️")
        return len(cache)

    # =========================================================================
    # Matching
    # =========================================================================

    def find_match(self, member: MemberSnapshot) -> Optional[Impersonation]:
        """Best protected match at or above the threshold, or None."""
        if member.is_bot or has_protected_role(member.role_ids, self.protected_role_ids):
            return None

        display = normalize(member.display_name)
        username = normalize(member.username)

        best: Optional[ProtectedIdentity] = None
        best_score = 0.0
        for identity in self.cache.values():
            if identity.user_id == member.id:
                continue
            score = max(
                similarity(display, identity.display_name_normalized),
                similarity(display, identity.username_normalized),
                similarity(username, identity.display_name_normalized),
                similarity(username, identity.username_normalized),
            )
            if score > best_score:
                best, best_score = identity, score

        if best is None or best_score < self.threshold:
            return None
        return Impersonation(candidate=member, matched=best, similarity=best_score)

    async def check_member(self, member: MemberSnapshot, now: Optional[datetime] = None) -> Optional[Impersonation]:
        """Check one member (typically on join) and alert on a match."""
        if self.needs_refresh(now):
            await self.refresh_cache(now)

        verdict = self.find_match(member)
        if verdict is None:
            return None

        await self.orchestrator.execute(verdict)
        self._remember(verdict)
        return verdict

    def _remember(self, verdict: Impersonation) -> None:
        self._alerted[verdict.candidate.id] = (
            normalize(verdict.candidate.display_name),
            verdict.matched.user_id,
        )

    def _already_alerted(self, verdict: Impersonation) -> bool:
        previous = self._alerted.get(verdict.candidate.id)
        return previous == (normalize(verdict.candidate.display_name), verdict.matched.user_id)

    # =========================================================================
    # Full Sweep
    # =========================================================================

    async def full_scan(self, now: Optional[datetime] = None) -> List[Impersonation]:
        """
        Check every guild member and alert on new impersonators.

        Posts a summary to the report channel first, then one alert per
        impersonator with a short pause between them.
        """
        if self.needs_refresh(now):
            await self.refresh_cache(now)

        members = await self.platform.list_members(self.guild_id)
        found: List[Impersonation] = []
        for member in members:
            verdict = self.find_match(member)
            if verdict is not None and not self._already_alerted(verdict):
                found.append(verdict)

        logger.tree("Impersonation Scan Complete", [
            ("Members Scanned", str(len(members))),
            ("Protected Cached", str(len(self.cache))),
            ("New Impersonators", str(len(found))),
        ], emoji="🔍")

        if not found:
            return found

        await self.orchestrator.post_scan_summary(len(found))
        for index, verdict in enumerate(found):
            if index:
                await asyncio.sleep(IMPERSONATION_ALERT_DELAY)
            await self.orchestrator.execute(verdict)
            self._remember(verdict)
        return found


__all__ = ["ImpersonationScanner", "normalize", "similarity"]
