"""
GardenGuard - Test Fixtures
===========================

Shared ids, snapshot factories and a mocked platform adapter.
"""

import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import NY_TZ, Config
from src.services.scam_detection.models import (
    GuildContext,
    MemberSnapshot,
    MentionedUser,
    MessageSnapshot,
)
from src.services.scam_detection.platform import PlatformAdapter


# =============================================================================
# Ids
# =============================================================================

GUILD_ID = 1000
BOT_ID = 1
REPORT_CHANNEL_ID = 5000
GENERAL_CHANNEL_ID = 5001
EXCLUDED_CHANNEL_ID = 5999
THREAD_ID = 7000

BASE_ROLE_ID = 100
MEMBER_ROLE_ID = 200
STAFF_ROLE_ID = 900

BOT_TOP_ROLE_POSITION = 50

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=NY_TZ)


# =============================================================================
# Snapshot Factories
# =============================================================================

def member(
    user_id: int = 42,
    username: str = "newbie",
    display_name: str = None,
    roles=(BASE_ROLE_ID,),
    top_role_position: int = 1,
    joined_at: datetime = None,
    is_bot: bool = False,
) -> MemberSnapshot:
    """Build a member; defaults to a long-standing base-role-only member."""
    return MemberSnapshot(
        id=user_id,
        username=username,
        display_name=display_name or username,
        role_ids=frozenset(roles),
        role_names=tuple(f"role-{r}" for r in roles),
        top_role_position=top_role_position,
        joined_at=joined_at or NOW - timedelta(days=30),
        created_at=NOW - timedelta(days=365),
        is_bot=is_bot,
    )


def mention(target: MemberSnapshot) -> MentionedUser:
    return MentionedUser(user_id=target.id, username=target.username, member=target, is_bot=target.is_bot)


def message(
    content: str = "",
    author: MemberSnapshot = None,
    channel_id: int = GENERAL_CHANNEL_ID,
    message_id: int = 1,
    **kwargs,
) -> MessageSnapshot:
    """Build a guild message; extra keyword arguments go straight to the snapshot."""
    kwargs.setdefault("channel_name", "general")
    return MessageSnapshot(
        id=message_id,
        guild_id=GUILD_ID,
        channel_id=channel_id,
        author=author or member(),
        content=content,
        created_at=NOW,
        **kwargs,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def guild():
    """The bot's standing in the test guild."""
    return GuildContext(guild_id=GUILD_ID, moderator_id=BOT_ID, moderator_top_role_position=BOT_TOP_ROLE_POSITION)


@pytest.fixture
def staff():
    """A moderator holding the protected role."""
    return member(user_id=900001, username="mod", display_name="Garden Mod", roles=(STAFF_ROLE_ID,), top_role_position=40)


@pytest.fixture
def config():
    """A real Config with every optional setting filled in."""
    return Config(
        discord_token="test-token",
        scam_channel_id=REPORT_CHANNEL_ID,
        base_role_id=BASE_ROLE_ID,
        protected_role_ids={STAFF_ROLE_ID},
        excluded_channel_ids={EXCLUDED_CHANNEL_ID},
        excluded_channel_patterns=[re.compile(r"^ticket-")],
        report_interval_minutes=60,
        whitelist_path="unused.json",
        ledger_retention_days=7,
        impersonation_threshold=0.95,
    )


@pytest.fixture
def platform(guild):
    """Platform adapter where every side effect succeeds."""
    mock = AsyncMock(spec=PlatformAdapter)
    mock.fetch_recent_messages.return_value = []
    mock.delete_message.return_value = True
    mock.fetch_member.return_value = None
    mock.ban_member.return_value = True
    mock.kick_member.return_value = True
    mock.create_or_fetch_thread.return_value = THREAD_ID
    mock.send_message.return_value = True
    mock.send_direct_message.return_value = True
    mock.add_reaction.return_value = True
    mock.archive_thread.return_value = True
    mock.send_notice_in_channel.return_value = True
    mock.send_report.return_value = True
    mock.send_summary.return_value = True
    mock.list_protected_members.return_value = []
    mock.list_members.return_value = []
    mock.get_guild_context.return_value = guild
    return mock
