"""
Scam Detection Data Models
==========================

Platform-neutral snapshots of members and messages, plus the verdict
variants the classifier hands to the orchestrator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple, Union


# =============================================================================
# Snapshots
# =============================================================================

@dataclass(frozen=True)
class MemberSnapshot:
    """A guild member as seen at the time of the event."""
    id: int
    username: str
    display_name: str
    role_ids: FrozenSet[int] = frozenset()  # excludes @everyone
    role_names: Tuple[str, ...] = ()
    top_role_position: int = 0
    joined_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    is_bot: bool = False

    @property
    def tag(self) -> str:
        return self.username


@dataclass(frozen=True)
class MentionedUser:
    """A mentioned user; member is None when the member lookup failed."""
    user_id: int
    username: str = ""
    member: Optional[MemberSnapshot] = None
    is_bot: bool = False


@dataclass(frozen=True)
class MessageSnapshot:
    """An inbound message with everything the classifier needs."""
    id: int
    guild_id: int
    channel_id: int
    author: MemberSnapshot
    content: str = ""
    channel_name: str = ""
    parent_channel_id: Optional[int] = None
    parent_channel_name: Optional[str] = None
    mentions: Tuple[MentionedUser, ...] = ()
    mentions_everyone: bool = False
    is_reply: bool = False
    has_reference: bool = False
    webhook_id: Optional[int] = None
    sticker_count: int = 0
    embed_types: Tuple[str, ...] = ()
    is_system: bool = False
    is_direct: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class GuildContext:
    """The guild and the bot's own standing in it."""
    guild_id: int
    moderator_id: int
    moderator_top_role_position: int


@dataclass(frozen=True)
class ProtectedIdentity:
    """Cached identity of a member holding a protected role."""
    user_id: int
    display_name: str
    username: str
    display_name_normalized: str
    username_normalized: str
    role_name: str


# =============================================================================
# Reason Tags & Categories
# =============================================================================

class ReasonTag(str, Enum):
    MULTI_CHANNEL_FLOOD = "multi_channel_flood"
    SCAM_PATTERN = "scam_pattern"
    EXTERNAL_URL = "external_url"
    DECEPTIVE_URL = "deceptive_url"
    URL_SHORTENER = "url_shortener"
    URL_OBFUSCATION = "url_obfuscation"
    TARGETED_SCAM = "targeted_scam"
    SCAM_USERNAME = "scam_username"
    BASE_ROLE_MENTIONING = "base_role_mentioning"
    RECENT_JOINER = "recent_joiner"
    DSC_GG_LINK = "dsc_gg_link"
    DISCORD_INVITE = "discord_invite"
    FORWARDED = "forwarded"
    EXCESSIVE_MENTIONS = "excessive_mentions"
    EXCESSIVE_SPAM = "excessive_spam"
    UNAUTHORIZED_URL = "unauthorized_url"
    IMPERSONATION = "impersonation"
    MANUAL_REPORT = "manual_report"


class ScamType(str, Enum):
    URL_SHORTENERS = "url_shorteners"
    DISCORD_INVITES = "discord_invites"
    ENCODED_URLS = "encoded_urls"
    OTHER_SCAMS = "other_scams"


# =============================================================================
# Detection Signals
# =============================================================================

@dataclass(frozen=True)
class DetectionSignals:
    """Every boolean the classifier computed for one message."""
    scam_patterns: Tuple[str, ...] = ()
    has_external_url: bool = False
    has_deceptive_url: bool = False
    has_shortener: bool = False
    is_obfuscated: bool = False
    has_only_base_role: bool = False
    has_qualifying_mentions: bool = False
    has_any_mentions: bool = False
    is_forwarded: bool = False
    has_reference: bool = False
    via_webhook: bool = False
    joined_recently: bool = False
    is_scam_username: bool = False
    base_role_mentioning_others: bool = False
    has_dsc_gg: bool = False
    has_discord_invite: bool = False
    is_targeted_scam: bool = False
    recent_joiner_suspicious: bool = False

    @property
    def is_scam_content(self) -> bool:
        return bool(self.scam_patterns)


# =============================================================================
# Verdicts
# =============================================================================

@dataclass(frozen=True)
class Allow:
    """No action. `note` says why when the message was skipped early."""
    note: Optional[str] = None

    should_quarantine = False


@dataclass(frozen=True)
class Quarantine:
    """Delete the message(s) and report the author."""
    reasons: FrozenSet[ReasonTag]
    scam_type: ScamType
    channel_ids: FrozenSet[int]
    signals: DetectionSignals = field(default_factory=DetectionSignals)

    should_quarantine = True


@dataclass(frozen=True)
class EscalateKick:
    """Kick an already-suspected member."""
    reason: ReasonTag
    count: int

    should_quarantine = False


@dataclass(frozen=True)
class UnauthorizedUrl:
    """Delete one message carrying a disallowed link and notify its author."""
    has_shortener: bool = False
    has_invite: bool = False
    is_obfuscated: bool = False
    domains: Tuple[str, ...] = ()

    should_quarantine = False


@dataclass(frozen=True)
class Impersonation:
    """A member whose name closely matches a protected member."""
    candidate: MemberSnapshot
    matched: ProtectedIdentity
    similarity: float

    should_quarantine = False


Verdict = Union[Allow, Quarantine, EscalateKick, UnauthorizedUrl, Impersonation]


# =============================================================================
# Report Cards
# =============================================================================

@dataclass
class ReportCard:
    """
    Platform-neutral moderator notification.

    The platform adapter decides how to render it (embed, buttons).
    """
    title: str
    subject: MemberSnapshot
    detections: List[str] = field(default_factory=list)
    offending_text: Optional[str] = None
    channel_count: int = 1
    spam_occurrences: int = 0
    ban_action: bool = True
    whitelist_action: bool = True
    impersonator: bool = False
    extra_fields: List[Tuple[str, str]] = field(default_factory=list)


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "MemberSnapshot",
    "MentionedUser",
    "MessageSnapshot",
    "GuildContext",
    "ProtectedIdentity",
    "ReasonTag",
    "ScamType",
    "DetectionSignals",
    "Allow",
    "Quarantine",
    "EscalateKick",
    "UnauthorizedUrl",
    "Impersonation",
    "Verdict",
    "ReportCard",
]
