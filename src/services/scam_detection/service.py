"""
Scam Detection Service
======================

Entry point for the detection engine: screens messages and member joins,
runs the periodic jobs and serves report-button actions.

DESIGN:
    The service owns every stateful component (ledger, dedup tracker,
    aggregator, thread index, protected cache) and injects them into
    the classifier, orchestrator and scanner. Nothing is module-global.

    Message pipeline:
    1. Ignore bots, DMs, system messages and excluded channels
    2. Claim the message id so a redelivered event is not handled twice
    3. Staff mentioning users in the report channel -> manual report
    4. Protected or whitelisted authors -> allow
    5. Unauthorized link -> delete, notify, report
    6. Otherwise classify and execute the verdict
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from src.core.config import Config, NY_TZ, get_config
from src.core.constants import (
    DEDUP_SWEEP_INTERVAL,
    IMPERSONATION_SCAN_INITIAL_DELAY,
    IMPERSONATION_SCAN_INTERVAL,
    LEDGER_PURGE_INTERVAL,
    PROTECTED_CACHE_REFRESH_INTERVAL,
)
from src.core.logger import logger
from src.utils.async_utils import InFlightRegistry, ScheduledJob

from .classifier import ScamClassifier
from .constants import PROCESSING_TIMEOUT
from .dedup import DedupTracker
from .impersonation import ImpersonationScanner
from .ledger import SuspicionLedger
from .models import (
    Allow,
    Impersonation,
    MemberSnapshot,
    MessageSnapshot,
    UnauthorizedUrl,
    Verdict,
)
from .orchestrator import QuarantineOrchestrator
from .patterns import has_discord_invite
from .platform import PlatformAdapter
from .reporting import ReportingAggregator
from .urls import (
    contains_url_shortener,
    detect_url_obfuscation,
    has_unauthorized_url,
    unauthorized_domains,
)


class ScamDetectionService:
    """
    Wires the detection components together for one guild.

    Args:
        platform: Adapter for every platform side effect.
        config: Loaded config (defaults to the global one).
        whitelist: Whitelist store, or None to run without one.
    """

    def __init__(
        self,
        platform: PlatformAdapter,
        config: Optional[Config] = None,
        whitelist=None,
    ) -> None:
        self.config = config or get_config()
        self.platform = platform
        self.whitelist = whitelist

        self.ledger = SuspicionLedger()
        self.dedup = DedupTracker()
        self.aggregator = ReportingAggregator(self.config.report_interval_minutes)
        self.classifier = ScamClassifier(
            self.ledger,
            self.dedup,
            base_role_id=self.config.base_role_id,
            protected_role_ids=self.config.protected_role_ids,
            whitelist=whitelist,
        )
        self.orchestrator = QuarantineOrchestrator(
            platform,
            self.ledger,
            self.aggregator,
            report_channel_id=self.config.scam_channel_id,
            protected_role_ids=self.config.protected_role_ids,
            whitelist=whitelist,
        )
        self.in_flight = InFlightRegistry(PROCESSING_TIMEOUT)
        self.scanner: Optional[ImpersonationScanner] = None
        self.guild_id: Optional[int] = None
        self._jobs: List[ScheduledJob] = []

    # =========================================================================
    # Filters
    # =========================================================================

    def is_channel_excluded(self, message: MessageSnapshot) -> bool:
        """Excluded by id or name pattern. Threads inherit their parent's exclusion."""
        excluded_ids = self.config.excluded_channel_ids
        if message.channel_id in excluded_ids:
            return True
        if message.parent_channel_id is not None and message.parent_channel_id in excluded_ids:
            return True

        names = [message.channel_name, message.parent_channel_name]
        for pattern in self.config.excluded_channel_patterns:
            if any(name and pattern.search(name) for name in names):
                return True
        return False

    def is_staff(self, member: MemberSnapshot) -> bool:
        """Holds a configured protected role. False when none are configured."""
        protected = self.config.protected_role_ids
        return bool(protected) and any(role_id in protected for role_id in member.role_ids)

    # =========================================================================
    # Message Pipeline
    # =========================================================================

    async def handle_message(self, message: MessageSnapshot, now: Optional[datetime] = None) -> Verdict:
        """Screen one message and execute the resulting verdict."""
        if message.author.is_bot or message.is_direct or message.is_system:
            return Allow(note="ignored")
        if self.is_channel_excluded(message):
            return Allow(note="excluded channel")

        async with self.in_flight.claim(message.id) as acquired:
            if not acquired:
                logger.debug("Message Already In Flight", [("Message", str(message.id))])
                return Allow(note="in flight")
            return await self._process(message, now)

    async def _process(self, message: MessageSnapshot, now: Optional[datetime]) -> Verdict:
        author = message.author

        if message.channel_id == self.config.scam_channel_id and self.is_staff(author):
            if message.mentions:
                await self.orchestrator.handle_manual_report(message)
                return Allow(note="manual report")
            return Allow(note="protected")

        if self.classifier.is_protected(author):
            return Allow(note="protected")
        if self.classifier.is_whitelisted(author.id):
            return Allow(note="whitelisted")

        if has_unauthorized_url(message, message.guild_id):
            verdict = self.unauthorized_verdict(message)
            await self.orchestrator.execute(verdict, message)
            return verdict

        guild = await self.platform.get_guild_context(message.guild_id)
        if guild is None:
            logger.warning("Guild Context Unavailable", [("Guild", str(message.guild_id))])
            return Allow(note="no guild context")

        verdict = self.classifier.classify(message, guild, now)
        await self.orchestrator.execute(verdict, message)
        return verdict

    @staticmethod
    def unauthorized_verdict(message: MessageSnapshot) -> UnauthorizedUrl:
        content = message.content or ""
        return UnauthorizedUrl(
            has_shortener=contains_url_shortener(content),
            has_invite=has_discord_invite(content),
            is_obfuscated=detect_url_obfuscation(content).is_obfuscated,
            domains=tuple(dict.fromkeys(unauthorized_domains(content, message.guild_id))),
        )

    # =========================================================================
    # Member Joins
    # =========================================================================

    async def handle_member_join(self, member: MemberSnapshot) -> Optional[Impersonation]:
        if self.scanner is None or member.is_bot:
            return None
        return await self.scanner.check_member(member)

    # =========================================================================
    # Report Actions
    # =========================================================================

    async def ban_user(
        self,
        guild_id: int,
        user_id: int,
        moderator: MemberSnapshot,
        impersonator: bool = False,
        thread_id: Optional[int] = None,
        avatar_url: Optional[str] = None,
    ) -> Tuple[bool, str]:
        guild = await self.platform.get_guild_context(guild_id)
        if guild is None:
            return False, "Server is unavailable."
        return await self.orchestrator.ban_user(
            guild, user_id, moderator, impersonator=impersonator, thread_id=thread_id, avatar_url=avatar_url
        )

    async def whitelist_user(self, guild_id: int, user_id: int, moderator: MemberSnapshot) -> Tuple[bool, str]:
        return await self.orchestrator.whitelist_user(guild_id, user_id, moderator)

    # =========================================================================
    # Periodic Jobs
    # =========================================================================

    async def check_report(self) -> bool:
        return await self.aggregator.maybe_send(self.platform, self.config.scam_channel_id)

    async def sweep_dedup(self) -> int:
        dropped = self.dedup.sweep()
        if dropped:
            logger.debug("Dedup Sweep", [("Dropped", str(dropped)), ("Tracked", str(len(self.dedup)))])
        return dropped

    async def purge_ledger(self, now: Optional[datetime] = None) -> int:
        """Drop long-expired suspects and log who is still under suspicion."""
        now = now or datetime.now(NY_TZ)
        purged = self.ledger.purge_expired(timedelta(days=self.config.ledger_retention_days), now)
        active = self.ledger.active_entries(now)

        items = [("Purged", str(purged)), ("Active Suspects", str(len(active)))]
        for user_id, entry in active[:10]:
            items.append((str(user_id), f"{entry.minutes_left(now)} min left, {entry.spam_occurrences} occurrences"))
        logger.tree("Suspicion Ledger Maintenance", items, emoji="🧹")
        return purged

    def start(self, guild_id: int) -> None:
        """Create the impersonation scanner and start every periodic job."""
        self.guild_id = guild_id
        self.scanner = ImpersonationScanner(
            self.platform,
            self.orchestrator,
            guild_id=guild_id,
            protected_role_ids=self.config.protected_role_ids,
            threshold=self.config.impersonation_threshold,
        )

        self._jobs = [
            ScheduledJob("Protected Cache Refresh", PROTECTED_CACHE_REFRESH_INTERVAL, self.scanner.refresh_cache),
            ScheduledJob(
                "Impersonation Scan",
                IMPERSONATION_SCAN_INTERVAL,
                self.scanner.full_scan,
                initial_delay=IMPERSONATION_SCAN_INITIAL_DELAY,
            ),
            ScheduledJob("Dedup Sweep", DEDUP_SWEEP_INTERVAL, self.sweep_dedup, initial_delay=DEDUP_SWEEP_INTERVAL),
            ScheduledJob("Ledger Purge", LEDGER_PURGE_INTERVAL, self.purge_ledger, initial_delay=LEDGER_PURGE_INTERVAL),
        ]
        if self.aggregator.enabled:
            interval = self.aggregator.check_interval
            self._jobs.append(ScheduledJob("Security Report", interval, self.check_report, initial_delay=interval))

        for job in self._jobs:
            job.start()

        logger.tree("Scam Detection Started", [
            ("Guild", str(guild_id)),
            ("Jobs", ", ".join(job.name for job in self._jobs)),
            ("Whitelisted", str(len(self.whitelist)) if self.whitelist is not None else "Disabled"),
        ], emoji="🛡️")

    async def stop(self) -> None:
        for job in self._jobs:
            await job.stop()
        logger.tree("Scam Detection Stopped", [("Jobs", str(len(self._jobs)))], emoji="🛑")
        self._jobs = []


__all__ = ["ScamDetectionService"]
