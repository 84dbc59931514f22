"""
Scam Detection Orchestrator
===========================

Carries out verdicts: deletes offending messages, opens or reuses the
per-user report thread, kicks repeat offenders and feeds the reporting
counters. Also serves the Ban and Whitelist report buttons.

DESIGN:
    Every platform call is a soft failure. A verdict handler keeps going
    after a failed delete or a missing thread and falls back to the main
    report channel, so moderators always hear about an intercept.
"""

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from src.core.config import has_protected_role
from src.core.constants import (
    BAN_DELETE_MESSAGE_SECONDS,
    DELETE_AFTER_SHORT,
    RECENT_MESSAGE_FETCH_LIMIT,
)
from src.core.logger import logger
from src.utils.async_utils import log_gather_exceptions

from .classifier import describe_reasons
from .ledger import SuspicionLedger
from .models import (
    Allow,
    EscalateKick,
    GuildContext,
    Impersonation,
    MemberSnapshot,
    MessageSnapshot,
    Quarantine,
    ReasonTag,
    ReportCard,
    ScamType,
    UnauthorizedUrl,
    Verdict,
)
from .patterns import strip_mentions
from .platform import PlatformAdapter
from .reporting import ReportingAggregator


REPORT_TITLE = "🚨 Suspicious Activity Detected"
IMPERSONATOR_TITLE = "⚠️ IMPERSONATOR DETECTED ⚠️"

BAN_REASON = "Banned due to suspicious activity"
IMPERSONATOR_BAN_REASON = "Banned for impersonating protected member"

UNAUTHORIZED_URL_DM = (
    "🌱 Hey {username}, your message in #{channel} was removed due to an unauthorized URL.\n\n"
    "Only links from garden.finance, x.com, and internal Discord links are allowed. "
    "If you need to share something else, raise a ticket and our mods will help you 🌸."
)
UNAUTHORIZED_URL_NOTICE = (
    "<@{user_id}> Your message with an unauthorized URL was removed. "
    "Please check server rules about acceptable links."
)


# =============================================================================
# Report Thread Index
# =============================================================================

class ReportThreadIndex:
    """User id to open report thread id. Entries live for the process lifetime."""

    def __init__(self) -> None:
        self._threads: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._threads)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._threads

    def get(self, user_id: int) -> Optional[int]:
        return self._threads.get(user_id)

    def set(self, user_id: int, thread_id: int) -> None:
        self._threads[user_id] = thread_id

    def pop(self, user_id: int) -> Optional[int]:
        return self._threads.pop(user_id, None)


# =============================================================================
# Orchestrator
# =============================================================================

class QuarantineOrchestrator:
    """
    Executes classifier and scanner verdicts against the platform.

    Args:
        platform: Platform adapter for every side effect.
        ledger: Suspicion ledger updated on quarantine.
        aggregator: Reporting counters.
        report_channel_id: Moderator channel that hosts report threads.
        protected_role_ids: Staff roles allowed to use report buttons.
        whitelist: Whitelist store used by the Whitelist button, or None.
    """

    def __init__(
        self,
        platform: PlatformAdapter,
        ledger: SuspicionLedger,
        aggregator: ReportingAggregator,
        report_channel_id: int,
        protected_role_ids: Iterable[int],
        whitelist=None,
    ) -> None:
        self.platform = platform
        self.ledger = ledger
        self.aggregator = aggregator
        self.report_channel_id = report_channel_id
        self.protected_role_ids: Set[int] = set(protected_role_ids)
        self.whitelist = whitelist
        self.threads = ReportThreadIndex()
        self.impersonation_threads = ReportThreadIndex()

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def execute(self, verdict: Verdict, message: Optional[MessageSnapshot] = None) -> None:
        """Run the handler for a verdict. Allow is a no-op."""
        if isinstance(verdict, Allow):
            return
        if isinstance(verdict, Impersonation):
            await self.handle_impersonation(verdict)
            return
        if message is None:
            raise ValueError(f"{type(verdict).__name__} verdict needs the originating message")

        if isinstance(verdict, Quarantine):
            await self.handle_quarantine(verdict, message)
        elif isinstance(verdict, EscalateKick):
            await self.handle_escalate_kick(verdict, message)
        elif isinstance(verdict, UnauthorizedUrl):
            await self.handle_unauthorized_url(verdict, message)
        else:
            raise TypeError(f"Unknown verdict type: {type(verdict).__name__}")

    # =========================================================================
    # Report Threads
    # =========================================================================

    async def _open_thread(self, index: ReportThreadIndex, user_id: int, name: str) -> Optional[int]:
        thread_id = await self.platform.create_or_fetch_thread(
            self.report_channel_id,
            name,
            existing_thread_id=index.get(user_id),
        )
        if thread_id is None:
            index.pop(user_id)
            return None
        index.set(user_id, thread_id)
        return thread_id

    async def send_threaded_report(self, subject: MemberSnapshot, card: ReportCard) -> bool:
        """
        Post a report card into the user's thread, creating it on first use.

        Falls back to the main report channel when the thread is unavailable.
        """
        thread_id = await self._open_thread(
            self.threads, subject.id, f"Suspicious Activity - {subject.tag}"
        )
        if thread_id is not None and await self.platform.send_report(thread_id, card):
            return True

        logger.warning("Report Thread Unavailable", [
            ("User", f"{subject.tag} ({subject.id})"),
            ("Fallback", "Main report channel"),
        ])
        return await self.platform.send_report(self.report_channel_id, card)

    async def _post_notice(self, subject: MemberSnapshot, content: str) -> bool:
        thread_id = await self._open_thread(
            self.threads, subject.id, f"Suspicious Activity - {subject.tag}"
        )
        if thread_id is not None and await self.platform.send_message(thread_id, content):
            return True
        return await self.platform.send_message(self.report_channel_id, content)

    # =========================================================================
    # Quarantine
    # =========================================================================

    async def _delete_matching(self, channel_id: int, author_id: int, content: str, skip_id: int) -> int:
        recent = await self.platform.fetch_recent_messages(channel_id, RECENT_MESSAGE_FETCH_LIMIT)
        deleted = 0
        for candidate in recent:
            if candidate.id == skip_id:
                continue
            if candidate.author.id == author_id and candidate.content == content:
                if await self.platform.delete_message(channel_id, candidate.id):
                    deleted += 1
        return deleted

    async def delete_across_channels(self, message: MessageSnapshot, channel_ids: Iterable[int]) -> int:
        """
        Delete the message and every identical copy from the same author.

        Per-channel failures are logged and never stop the other channels.
        Returns the number of messages deleted.
        """
        deleted = 1 if await self.platform.delete_message(message.channel_id, message.id) else 0

        channels = sorted(set(channel_ids))
        results = await asyncio.gather(
            *(self._delete_matching(cid, message.author.id, message.content, message.id) for cid in channels),
            return_exceptions=True,
        )
        log_gather_exceptions(results, [f"Channel {cid}" for cid in channels], context="Quarantine Cleanup")
        return deleted + sum(r for r in results if isinstance(r, int))

    async def handle_quarantine(
        self,
        verdict: Quarantine,
        message: MessageSnapshot,
        now: Optional[datetime] = None,
    ) -> None:
        author = message.author
        entry = self.ledger.record_quarantine(author.id, now)

        deleted = await self.delete_across_channels(message, verdict.channel_ids)
        self.aggregator.record_event(verdict.scam_type, author.id, author.display_name, author.username)

        card = ReportCard(
            title=REPORT_TITLE,
            subject=author,
            detections=describe_reasons(verdict.reasons),
            offending_text=message.content or None,
            channel_count=len(verdict.channel_ids),
            spam_occurrences=entry.spam_occurrences,
        )
        reported = await self.send_threaded_report(author, card)

        logger.tree("Message Quarantined", [
            ("User", f"{author.tag} ({author.id})"),
            ("Channel", f"#{message.channel_name}" if message.channel_name else str(message.channel_id)),
            ("Reasons", ", ".join(sorted(tag.value for tag in verdict.reasons))),
            ("Category", verdict.scam_type.value),
            ("Deleted", str(deleted)),
            ("Spam Occurrences", str(entry.spam_occurrences)),
            ("Reported", "Yes" if reported else "No"),
        ], emoji="🚨")

    # =========================================================================
    # Escalation
    # =========================================================================

    async def handle_escalate_kick(self, verdict: EscalateKick, message: MessageSnapshot) -> bool:
        """Kick a suspected member. Suspicion state is left untouched."""
        author = message.author
        if verdict.reason == ReasonTag.EXCESSIVE_MENTIONS:
            what = f"excessive mentions ({verdict.count}) while under suspicion"
        else:
            what = f"excessive spam occurrences ({verdict.count})"

        kicked = await self.platform.kick_member(message.guild_id, author.id, f"Kicked for {what}")
        if kicked:
            notice = f"User {author.tag} ({author.id}) has been kicked for {what}."
        else:
            notice = f"Failed to kick user {author.tag} ({author.id}) for {what}."
        await self._post_notice(author, notice)

        logger.tree("Suspect Kicked" if kicked else "Suspect Kick Failed", [
            ("User", f"{author.tag} ({author.id})"),
            ("Reason", verdict.reason.value),
            ("Count", str(verdict.count)),
        ], emoji="👢" if kicked else "⚠️")
        return kicked

    # =========================================================================
    # Unauthorized URLs
    # =========================================================================

    async def handle_unauthorized_url(self, verdict: UnauthorizedUrl, message: MessageSnapshot) -> bool:
        """
        Remove a message with a disallowed link and tell its author.

        Returns False only when the message could not be deleted, in which
        case nothing else is attempted.
        """
        author = message.author
        if not await self.platform.delete_message(message.channel_id, message.id):
            logger.warning("Unauthorized URL Not Removed", [
                ("User", f"{author.tag} ({author.id})"),
                ("Message", str(message.id)),
            ])
            return False

        channel = message.channel_name or "unknown-channel"
        dm_sent = await self.platform.send_direct_message(
            author.id, UNAUTHORIZED_URL_DM.format(username=author.username, channel=channel)
        )
        if not dm_sent:
            await self.platform.send_notice_in_channel(
                message.channel_id,
                UNAUTHORIZED_URL_NOTICE.format(user_id=author.id),
                DELETE_AFTER_SHORT,
            )

        detections = [describe_reasons([ReasonTag.UNAUTHORIZED_URL])[0]]
        if verdict.has_shortener:
            detections.append("📎 Contains URL shortener")
        if verdict.has_invite:
            detections.append("💬 Contains Discord invite")
        if verdict.is_obfuscated:
            detections.append("🔗 Obfuscated link")

        card = ReportCard(
            title=REPORT_TITLE,
            subject=author,
            detections=detections,
            offending_text=message.content or None,
            channel_count=1,
            spam_occurrences=1,
        )
        if verdict.domains:
            card.extra_fields.append(("Domains", ", ".join(verdict.domains)))
        await self.send_threaded_report(author, card)

        if verdict.has_shortener:
            category = ScamType.URL_SHORTENERS
        elif verdict.has_invite:
            category = ScamType.DISCORD_INVITES
        elif verdict.is_obfuscated:
            category = ScamType.ENCODED_URLS
        else:
            category = ScamType.OTHER_SCAMS
        self.aggregator.record_event(category, author.id, author.display_name, author.username)

        logger.tree("Unauthorized URL Removed", [
            ("User", f"{author.tag} ({author.id})"),
            ("Channel", f"#{channel}"),
            ("Domains", ", ".join(verdict.domains) or "None"),
            ("DM Sent", "Yes" if dm_sent else "No"),
        ], emoji="🔗")
        return True

    # =========================================================================
    # Impersonation
    # =========================================================================

    async def handle_impersonation(self, verdict: Impersonation) -> bool:
        """Alert moderators about an impersonator, in a dedicated thread when possible."""
        candidate = verdict.candidate
        matched = verdict.matched
        card = ReportCard(
            title=IMPERSONATOR_TITLE,
            subject=candidate,
            impersonator=True,
            whitelist_action=False,
            extra_fields=[
                ("Impersonating", f"**{matched.display_name}**\n<@{matched.user_id}>\nRole: {matched.role_name}"),
                ("Match Details", f"Similarity: {round(verdict.similarity * 100)}%"),
            ],
        )

        name = f"Impersonator - {candidate.display_name} ({candidate.id})"[:100]
        thread_id = await self._open_thread(self.impersonation_threads, candidate.id, name)

        posted_in_thread = False
        if thread_id is not None:
            posted_in_thread = await self.platform.send_report(thread_id, card)
        if posted_in_thread:
            await self.platform.send_message(
                self.report_channel_id,
                f"⚠️ New impersonator detected: **{candidate.display_name}** impersonating "
                f"**{matched.display_name}**\nSee thread: <#{thread_id}>",
            )
            sent = True
        else:
            sent = await self.platform.send_report(self.report_channel_id, card)

        logger.tree("Impersonator Detected", [
            ("User", f"{candidate.tag} ({candidate.id})"),
            ("Display Name", candidate.display_name),
            ("Impersonating", f"{matched.display_name} ({matched.user_id})"),
            ("Similarity", f"{verdict.similarity:.0%}"),
            ("Thread", "Yes" if posted_in_thread else "No"),
        ], emoji="🎭")
        return sent

    async def post_scan_summary(self, found: int) -> bool:
        """Announce a finished impersonation sweep in the report channel."""
        return await self.platform.send_message(
            self.report_channel_id,
            f"🔍 **Impersonation Scan Complete**\nFound **{found}** impersonator(s)",
        )

    # =========================================================================
    # Manual Reports
    # =========================================================================

    async def handle_manual_report(self, message: MessageSnapshot) -> int:
        """
        Open a report for every non-bot, unprotected user a staff member mentioned.

        Reacts ✅ on the staff message when every report went out, ❌ otherwise.
        Returns the number of reports sent.
        """
        reporter = message.author
        reason = strip_mentions(message.content).strip() or "No reason provided"

        targets: List[MemberSnapshot] = []
        for mention in message.mentions:
            if mention.is_bot:
                continue
            member = mention.member or await self.platform.fetch_member(message.guild_id, mention.user_id)
            if member is None or member.is_bot:
                continue
            if has_protected_role(member.role_ids, self.protected_role_ids):
                continue
            targets.append(member)

        sent = 0
        for target in targets:
            card = ReportCard(
                title=REPORT_TITLE,
                subject=target,
                detections=[
                    f"{describe_reasons([ReasonTag.MANUAL_REPORT])[0]}\n"
                    f"  └ Reported by: {reporter.tag}\n"
                    f"  └ Reason: {reason}"
                ],
                offending_text="N/A - Manual admin report",
                channel_count=0,
                spam_occurrences=0,
            )
            if await self.send_threaded_report(target, card):
                sent += 1
                self.aggregator.record_manual_report()

        ok = bool(targets) and sent == len(targets)
        await self.platform.add_reaction(message.channel_id, message.id, "✅" if ok else "❌")

        logger.tree("Manual Report", [
            ("Reporter", f"{reporter.tag} ({reporter.id})"),
            ("Targets", str(len(targets))),
            ("Sent", str(sent)),
            ("Reason", reason[:50]),
        ], emoji="🔎")
        return sent

    # =========================================================================
    # Report Actions
    # =========================================================================

    async def ban_user(
        self,
        guild: GuildContext,
        user_id: int,
        moderator: MemberSnapshot,
        impersonator: bool = False,
        thread_id: Optional[int] = None,
        avatar_url: Optional[str] = None,
    ) -> Tuple[bool, str]:
        """
        Ban a reported user on behalf of a staff member.

        Returns:
            (success, message) for the clicking moderator.
        """
        if not self.protected_role_ids or not has_protected_role(moderator.role_ids, self.protected_role_ids):
            return False, "You don't have permission to use this button."

        target = await self.platform.fetch_member(guild.guild_id, user_id)
        if target is not None and not self._can_ban(target, moderator, guild):
            return False, "This user cannot be banned due to role hierarchy or protected status."

        reason = IMPERSONATOR_BAN_REASON if impersonator else BAN_REASON
        if not await self.platform.ban_member(guild.guild_id, user_id, reason, BAN_DELETE_MESSAGE_SECONDS):
            return False, "Failed to ban user. They may have already left or been banned."

        self.aggregator.record_admin_ban(moderator.id, moderator.display_name, avatar_url)

        index = self.impersonation_threads if impersonator else self.threads
        thread_id = thread_id or index.get(user_id)
        index.pop(user_id)
        if thread_id is not None:
            await self.platform.archive_thread(thread_id)

        name = target.tag if target else str(user_id)
        logger.tree("User Banned", [
            ("User", f"{name} ({user_id})"),
            ("Moderator", f"{moderator.tag} ({moderator.id})"),
            ("Reason", reason),
        ], emoji="🔨")
        return True, f"User {name} ({user_id}) has been banned and their messages from the last 7 days have been deleted."

    def _can_ban(self, target: MemberSnapshot, moderator: MemberSnapshot, guild: GuildContext) -> bool:
        if has_protected_role(target.role_ids, self.protected_role_ids):
            return False
        if target.id in (guild.moderator_id, moderator.id):
            return False
        return target.top_role_position < min(moderator.top_role_position, guild.moderator_top_role_position)

    async def whitelist_user(self, guild_id: int, user_id: int, moderator: MemberSnapshot) -> Tuple[bool, str]:
        """Add a reported user to the whitelist on behalf of a staff member."""
        if not self.protected_role_ids or not has_protected_role(moderator.role_ids, self.protected_role_ids):
            return False, "You don't have permission to use this button."
        if self.whitelist is None:
            return False, "Whitelist is unavailable."
        if self.whitelist.is_whitelisted(user_id):
            return False, "User is already whitelisted."

        target = await self.platform.fetch_member(guild_id, user_id)
        added, detail = self.whitelist.add(
            user_id,
            username=target.username if target else "",
            display_name=target.display_name if target else "",
            added_by=moderator.id,
            reason="Whitelisted from scam report",
        )
        if not added:
            return False, f"Failed to whitelist user: {detail}."

        logger.tree("User Whitelisted", [
            ("User", f"{target.tag if target else 'Unknown'} ({user_id})"),
            ("Moderator", f"{moderator.tag} ({moderator.id})"),
        ], emoji="✅")
        return True, f"User <@{user_id}> has been whitelisted."


__all__ = ["QuarantineOrchestrator", "ReportThreadIndex"]
