"""
Scam Detection Classifier
=========================

Turns one inbound message into a verdict: allow, quarantine or
escalate-kick.

DESIGN:
    All inputs arrive as snapshots, so classification never awaits. The
    only state it touches is the dedup tracker (each sighting is recorded)
    and the ledger's mention counter (suspected users only), and both are
    updated inside this one synchronous call.

    Order of evaluation:
    1. Skip protected, whitelisted and unmoderatable authors
    2. Compute every signal
    3. Cross-channel flood from a base-role-only author wins outright
    4. Any quarantine condition
    5. Escalation for authors already under suspicion
"""

from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, List, Optional, Set

from src.core.config import NY_TZ, has_protected_role
from src.core.logger import logger

from .constants import (
    FLOOD_CHANNEL_THRESHOLD,
    OFFICIAL_INVITE_MARKER,
    RECENT_JOIN_WINDOW,
)
from .dedup import DedupTracker
from .ledger import SuspicionLedger
from .models import (
    Allow,
    DetectionSignals,
    EscalateKick,
    GuildContext,
    MemberSnapshot,
    MessageSnapshot,
    Quarantine,
    ReasonTag,
    ScamType,
    Verdict,
)
from .patterns import (
    ANY_INVITE_PATTERN,
    DM_REQUEST_PATTERN,
    DSC_GG_PATTERN,
    STRICT_INVITE_PATTERN,
    SUPPORT_TERMS_PATTERN,
    has_discord_invite,
    match_scam_display_name,
    match_scam_patterns,
)
from .urls import (
    contains_url_shortener,
    detect_url_obfuscation,
    has_deceptive_url,
    is_allowed_url,
)


# =============================================================================
# Helpers
# =============================================================================

def scam_type_for(content: str) -> ScamType:
    """Reporting category for quarantined content, most specific first."""
    if contains_url_shortener(content):
        return ScamType.URL_SHORTENERS
    if STRICT_INVITE_PATTERN.search(content):
        return ScamType.DISCORD_INVITES
    if detect_url_obfuscation(content).is_obfuscated:
        return ScamType.ENCODED_URLS
    return ScamType.OTHER_SCAMS


def _signal_reasons(signals: DetectionSignals) -> FrozenSet[ReasonTag]:
    flags = [
        (signals.is_scam_content, ReasonTag.SCAM_PATTERN),
        (signals.has_external_url, ReasonTag.EXTERNAL_URL),
        (signals.has_deceptive_url, ReasonTag.DECEPTIVE_URL),
        (signals.has_shortener, ReasonTag.URL_SHORTENER),
        (signals.is_obfuscated, ReasonTag.URL_OBFUSCATION),
        (signals.is_targeted_scam, ReasonTag.TARGETED_SCAM),
        (signals.is_scam_username, ReasonTag.SCAM_USERNAME),
        (signals.base_role_mentioning_others, ReasonTag.BASE_ROLE_MENTIONING),
        (signals.recent_joiner_suspicious, ReasonTag.RECENT_JOINER),
        (signals.has_dsc_gg, ReasonTag.DSC_GG_LINK),
        (signals.has_discord_invite, ReasonTag.DISCORD_INVITE),
        (signals.is_forwarded, ReasonTag.FORWARDED),
    ]
    return frozenset(tag for flag, tag in flags if flag)


# =============================================================================
# Classifier
# =============================================================================

class ScamClassifier:
    """
    Decision core for inbound messages.

    Args:
        ledger: Suspicion ledger consulted for escalation.
        dedup: Cross-channel sighting tracker.
        base_role_id: Role every unverified member holds.
        protected_role_ids: Staff roles exempt from moderation.
        whitelist: Object exposing is_whitelisted(user_id), or None.
    """

    def __init__(
        self,
        ledger: SuspicionLedger,
        dedup: DedupTracker,
        base_role_id: int,
        protected_role_ids: Iterable[int],
        whitelist=None,
        recent_join_window: timedelta = timedelta(seconds=RECENT_JOIN_WINDOW),
    ) -> None:
        self.ledger = ledger
        self.dedup = dedup
        self.base_role_id = base_role_id
        self.protected_role_ids: Set[int] = set(protected_role_ids)
        self.whitelist = whitelist
        self.recent_join_window = recent_join_window

    # =========================================================================
    # Role Checks
    # =========================================================================

    def is_protected(self, member: Optional[MemberSnapshot]) -> bool:
        if member is None:
            return False
        return has_protected_role(member.role_ids, self.protected_role_ids)

    def is_whitelisted(self, user_id: int) -> bool:
        return self.whitelist is not None and self.whitelist.is_whitelisted(user_id)

    def has_only_base_role(self, member: Optional[MemberSnapshot]) -> bool:
        return member is not None and set(member.role_ids) == {self.base_role_id}

    def can_be_moderated(self, member: MemberSnapshot, guild: GuildContext) -> bool:
        """Target must be unprotected, not the bot, and ranked below the bot's top role."""
        if self.is_protected(member):
            return False
        if member.id == guild.moderator_id:
            return False
        return member.top_role_position < guild.moderator_top_role_position

    # =========================================================================
    # Signals
    # =========================================================================

    def compute_signals(self, message: MessageSnapshot, guild: GuildContext, now: datetime) -> DetectionSignals:
        """Evaluate every detector against the message. Pure apart from the clock."""
        content = message.content or ""
        author = message.author

        scam_patterns = tuple(match_scam_patterns(content))
        has_external_url = not is_allowed_url(content, guild.guild_id)
        only_base = self.has_only_base_role(author)

        user_mentions = list(message.mentions)
        has_user_mentions = len(user_mentions) > 0

        all_mentions_base_only = has_user_mentions and all(
            self.has_only_base_role(m.member) for m in user_mentions
        )
        has_qualifying_mentions = all_mentions_base_only or message.mentions_everyone
        has_any_mentions = has_user_mentions or message.mentions_everyone

        # Failed member lookups count as unprotected
        base_role_mentioning_others = only_base and any(
            m.member is None or not self.is_protected(m.member) for m in user_mentions
        )

        is_forwarded = (message.has_reference and not message.is_reply) or message.webhook_id is not None

        joined_recently = (
            author.joined_at is not None and now - author.joined_at < self.recent_join_window
        )

        has_dm_request = bool(DM_REQUEST_PATTERN.search(content))
        has_support_terms = bool(SUPPORT_TERMS_PATTERN.search(content))
        has_any_invite = bool(ANY_INVITE_PATTERN.search(content))

        is_targeted_scam = (
            only_base and has_qualifying_mentions and (has_external_url or has_dm_request)
        ) or (has_support_terms and has_any_invite)

        return DetectionSignals(
            scam_patterns=scam_patterns,
            has_external_url=has_external_url,
            has_deceptive_url=has_deceptive_url(content),
            has_shortener=contains_url_shortener(content),
            is_obfuscated=detect_url_obfuscation(content).is_obfuscated,
            has_only_base_role=only_base,
            has_qualifying_mentions=has_qualifying_mentions,
            has_any_mentions=has_any_mentions,
            is_forwarded=is_forwarded,
            has_reference=message.has_reference,
            via_webhook=message.webhook_id is not None,
            joined_recently=joined_recently,
            is_scam_username=bool(match_scam_display_name(author.display_name)),
            base_role_mentioning_others=base_role_mentioning_others,
            has_dsc_gg=bool(DSC_GG_PATTERN.search(content)),
            has_discord_invite=has_discord_invite(content),
            is_targeted_scam=is_targeted_scam,
            recent_joiner_suspicious=joined_recently and only_base and (has_any_mentions or has_external_url),
        )

    def should_quarantine(self, signals: DetectionSignals, content: str) -> bool:
        """Quarantine conditions for an author already known to be unprotected."""
        content_flagged = (
            signals.is_scam_content
            or (signals.has_external_url and signals.has_qualifying_mentions)
            or signals.has_deceptive_url
            or signals.has_shortener
            or signals.is_obfuscated
        )
        return (
            (content_flagged and signals.has_only_base_role)
            or signals.is_targeted_scam
            or signals.is_scam_username
            or signals.base_role_mentioning_others
            or signals.recent_joiner_suspicious
            or signals.has_dsc_gg
            or (signals.has_discord_invite and OFFICIAL_INVITE_MARKER not in content)
            or (signals.is_forwarded and signals.has_only_base_role)
        )

    # =========================================================================
    # Classification
    # =========================================================================

    def classify(self, message: MessageSnapshot, guild: GuildContext, now: Optional[datetime] = None) -> Verdict:
        """
        Classify one message.

        Returns:
            Allow, Quarantine or EscalateKick. Never raises for odd input.
        """
        now = now or datetime.now(NY_TZ)
        author = message.author
        content = message.content or ""

        if self.is_protected(author):
            return Allow(note="protected")
        if self.is_whitelisted(author.id):
            return Allow(note="whitelisted")
        if not self.can_be_moderated(author, guild):
            return Allow(note="unmoderatable")

        signals = self.compute_signals(message, guild, now)

        channels = self.dedup.record_sighting(author.id, content, message.channel_id, now=now)
        if len(channels) > FLOOD_CHANNEL_THRESHOLD and signals.has_only_base_role:
            logger.tree("Multi-Channel Flood", [
                ("User", f"{author.username} ({author.id})"),
                ("Channels", str(len(channels))),
            ], emoji="🌊")
            return Quarantine(
                reasons=frozenset({ReasonTag.MULTI_CHANNEL_FLOOD}),
                scam_type=scam_type_for(content),
                channel_ids=frozenset(channels),
                signals=signals,
            )

        if self.should_quarantine(signals, content):
            return Quarantine(
                reasons=_signal_reasons(signals),
                scam_type=scam_type_for(content),
                channel_ids=frozenset({message.channel_id}),
                signals=signals,
            )

        return self._check_escalation(message, signals, now)

    def _check_escalation(self, message: MessageSnapshot, signals: DetectionSignals, now: datetime) -> Verdict:
        user_id = message.author.id
        if not self.ledger.is_suspected(user_id, now):
            return Allow()

        if signals.has_any_mentions:
            count = self.ledger.record_mention(user_id, now)
            if self.ledger.exceeds_mention_limit(user_id):
                return EscalateKick(reason=ReasonTag.EXCESSIVE_MENTIONS, count=count)

        if self.ledger.exceeds_spam_limit(user_id):
            entry = self.ledger.get(user_id)
            return EscalateKick(reason=ReasonTag.EXCESSIVE_SPAM, count=entry.spam_occurrences)

        return Allow()


def describe_reasons(reasons: Iterable[ReasonTag]) -> List[str]:
    """Human-readable detection lines for moderator reports."""
    labels = {
        ReasonTag.MULTI_CHANNEL_FLOOD: "🌊 **Multi-Channel Flood**",
        ReasonTag.FORWARDED: "📤 **Forwarded Message**",
        ReasonTag.BASE_ROLE_MENTIONING: "👤 **Base Role User @Mentioning Others**",
        ReasonTag.RECENT_JOINER: "🆕 **New User (<10 min) with Suspicious Behavior**",
        ReasonTag.URL_OBFUSCATION: "🔗 **URL Obfuscation**",
        ReasonTag.EXTERNAL_URL: "🌐 **External URL**",
        ReasonTag.URL_SHORTENER: "📎 **URL Shortener**",
        ReasonTag.DISCORD_INVITE: "💬 **Discord Invite**",
        ReasonTag.DSC_GG_LINK: "💬 **dsc.gg Link**",
        ReasonTag.DECEPTIVE_URL: "🎭 **Deceptive URL**",
        ReasonTag.SCAM_PATTERN: "⚠️ **Scam Pattern Match**",
        ReasonTag.TARGETED_SCAM: "🎯 **Targeted Scam**",
        ReasonTag.SCAM_USERNAME: "🪪 **Scam Display Name**",
        ReasonTag.UNAUTHORIZED_URL: "🔗 **Unauthorized URL**",
        ReasonTag.IMPERSONATION: "🎭 **Impersonation**",
        ReasonTag.EXCESSIVE_MENTIONS: "📣 **Excessive Mentions**",
        ReasonTag.EXCESSIVE_SPAM: "🔁 **Excessive Spam Occurrences**",
        ReasonTag.MANUAL_REPORT: "🔎 **Manual Report**",
    }
    ordered = [tag for tag in labels if tag in set(reasons)]
    return [labels[tag] for tag in ordered] or ["Standard detection"]


__all__ = ["ScamClassifier", "scam_type_for", "describe_reasons"]
