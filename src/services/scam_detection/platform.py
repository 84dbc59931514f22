"""
Scam Detection Platform Adapter
===============================

The chat-platform operations the detection core calls, and their
discord.py implementation.

DESIGN:
    The core only sees PlatformAdapter and plain snapshots. Every
    operation is a soft failure: Discord errors are caught and logged
    here and the caller receives False, None or an empty list, so one
    missing message or closed DM never aborts a whole verdict.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple, Union

import discord

from src.core.constants import THREAD_AUTO_ARCHIVE_MINUTES
from src.core.logger import logger
from src.utils.discord_rate_limit import log_http_error, with_rate_limit_retry

from .embeds import build_report_embed, build_summary_embeds
from .models import GuildContext, MemberSnapshot, MentionedUser, MessageSnapshot, ReportCard
from .reporting import ReportSummary

if TYPE_CHECKING:
    from discord.ext import commands


# =============================================================================
# Abstract Adapter
# =============================================================================

class PlatformAdapter(ABC):
    """Capability surface the detection core depends on."""

    @abstractmethod
    async def fetch_recent_messages(self, channel_id: int, limit: int) -> List[MessageSnapshot]:
        ...

    @abstractmethod
    async def delete_message(self, channel_id: int, message_id: int) -> bool:
        ...

    @abstractmethod
    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberSnapshot]:
        ...

    @abstractmethod
    async def ban_member(self, guild_id: int, user_id: int, reason: str, delete_message_seconds: int) -> bool:
        ...

    @abstractmethod
    async def kick_member(self, guild_id: int, user_id: int, reason: str) -> bool:
        ...

    @abstractmethod
    async def create_or_fetch_thread(
        self,
        parent_channel_id: int,
        name: str,
        existing_thread_id: Optional[int] = None,
    ) -> Optional[int]:
        """Return the existing thread if it can still be reached, else a new one."""

    @abstractmethod
    async def send_message(self, channel_id: int, content: str) -> bool:
        ...

    @abstractmethod
    async def send_direct_message(self, user_id: int, content: str) -> bool:
        ...

    @abstractmethod
    async def add_reaction(self, channel_id: int, message_id: int, emoji: str) -> bool:
        ...

    @abstractmethod
    async def archive_thread(self, thread_id: int) -> bool:
        ...

    @abstractmethod
    async def send_notice_in_channel(self, channel_id: int, content: str, delete_after: float) -> bool:
        ...

    @abstractmethod
    async def send_report(self, channel_id: int, card: ReportCard) -> bool:
        ...

    @abstractmethod
    async def send_summary(self, channel_id: int, summary: ReportSummary) -> bool:
        ...

    @abstractmethod
    async def list_protected_members(
        self, guild_id: int, role_ids: Iterable[int]
    ) -> List[Tuple[MemberSnapshot, str]]:
        """Members holding any of the roles, each paired with the role name."""

    @abstractmethod
    async def list_members(self, guild_id: int) -> List[MemberSnapshot]:
        ...

    @abstractmethod
    async def get_guild_context(self, guild_id: int) -> Optional[GuildContext]:
        ...


# =============================================================================
# Snapshot Builders
# =============================================================================

def member_snapshot(member: Union[discord.Member, discord.User]) -> MemberSnapshot:
    """Freeze a discord.py member (or bare user) into a MemberSnapshot."""
    if isinstance(member, discord.Member):
        roles = [role for role in member.roles if not role.is_default()]
        return MemberSnapshot(
            id=member.id,
            username=member.name,
            display_name=member.display_name,
            role_ids=frozenset(role.id for role in roles),
            role_names=tuple(role.name for role in roles),
            top_role_position=member.top_role.position,
            joined_at=member.joined_at,
            created_at=member.created_at,
            is_bot=member.bot,
        )
    return MemberSnapshot(
        id=member.id,
        username=member.name,
        display_name=getattr(member, "display_name", member.name),
        created_at=member.created_at,
        is_bot=member.bot,
    )


def guild_context(guild: discord.Guild) -> GuildContext:
    me = guild.me
    return GuildContext(
        guild_id=guild.id,
        moderator_id=me.id,
        moderator_top_role_position=me.top_role.position,
    )


def is_processable_type(message: discord.Message) -> bool:
    return message.type in (discord.MessageType.default, discord.MessageType.reply)


# =============================================================================
# Discord Implementation
# =============================================================================

class DiscordPlatformAdapter(PlatformAdapter):
    """PlatformAdapter backed by a discord.py bot."""

    def __init__(self, bot: "commands.Bot") -> None:
        self.bot = bot

    # =========================================================================
    # Lookup Helpers
    # =========================================================================

    async def _get_channel(self, channel_id: int) -> Optional[discord.abc.Messageable]:
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.NotFound:
            logger.warning("Channel Not Found", [("Channel", str(channel_id))])
        except discord.HTTPException as e:
            log_http_error(e, "Fetch Channel", [("Channel", str(channel_id))])
        return None

    async def _fetch_discord_member(self, guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as e:
            log_http_error(e, "Fetch Member", [("User", str(user_id))])
            return None

    async def _ensure_chunked(self, guild: discord.Guild) -> None:
        if not guild.chunked:
            try:
                await guild.chunk()
            except discord.HTTPException as e:
                log_http_error(e, "Chunk Guild", [("Guild", str(guild.id))])

    async def build_message_snapshot(self, message: discord.Message) -> MessageSnapshot:
        """Snapshot a message, resolving each mentioned user to a member where possible."""
        mentions = []
        for user in message.mentions:
            member = user if isinstance(user, discord.Member) else None
            if member is None and message.guild is not None:
                member = await self._fetch_discord_member(message.guild, user.id)
            mentions.append(MentionedUser(
                user_id=user.id,
                username=user.name,
                member=member_snapshot(member) if member is not None else None,
                is_bot=user.bot,
            ))

        channel = message.channel
        parent = getattr(channel, "parent", None) if isinstance(channel, discord.Thread) else None

        return MessageSnapshot(
            id=message.id,
            guild_id=message.guild.id if message.guild else 0,
            channel_id=channel.id,
            channel_name=getattr(channel, "name", "") or "",
            parent_channel_id=parent.id if parent else None,
            parent_channel_name=parent.name if parent else None,
            author=member_snapshot(message.author),
            content=message.content or "",
            mentions=tuple(mentions),
            mentions_everyone=message.mention_everyone,
            is_reply=message.type == discord.MessageType.reply,
            has_reference=message.reference is not None,
            webhook_id=message.webhook_id,
            sticker_count=len(message.stickers),
            embed_types=tuple(str(embed.type) for embed in message.embeds),
            is_system=not is_processable_type(message),
            is_direct=message.guild is None,
            created_at=message.created_at,
        )

    # =========================================================================
    # Messages
    # =========================================================================

    async def fetch_recent_messages(self, channel_id: int, limit: int) -> List[MessageSnapshot]:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return []
        try:
            history = [m async for m in channel.history(limit=limit)]
        except discord.HTTPException as e:
            log_http_error(e, "Fetch History", [("Channel", str(channel_id))])
            return []

        # Only author and content matter to callers; skip mention resolution
        return [
            MessageSnapshot(
                id=m.id,
                guild_id=m.guild.id if m.guild else 0,
                channel_id=channel_id,
                author=member_snapshot(m.author),
                content=m.content or "",
            )
            for m in history
        ]

    async def delete_message(self, channel_id: int, message_id: int) -> bool:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return False
        try:
            await channel.get_partial_message(message_id).delete()
            return True
        except discord.NotFound:
            logger.debug("Message Already Deleted", [("Message", str(message_id))])
            return False
        except discord.HTTPException as e:
            log_http_error(e, "Delete Message", [("Message", str(message_id))])
            return False

    @with_rate_limit_retry()
    async def _send(self, channel: discord.abc.Messageable, **kwargs) -> discord.Message:
        return await channel.send(**kwargs)

    async def send_message(self, channel_id: int, content: str) -> bool:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return False
        try:
            await self._send(channel, content=content, allowed_mentions=discord.AllowedMentions.none())
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Send Message", [("Channel", str(channel_id))])
            return False

    async def send_direct_message(self, user_id: int, content: str) -> bool:
        try:
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            await user.send(content)
            return True
        except discord.Forbidden:
            logger.debug("DM Blocked", [("User", str(user_id))])
            return False
        except discord.HTTPException as e:
            log_http_error(e, "Send DM", [("User", str(user_id))])
            return False

    async def send_notice_in_channel(self, channel_id: int, content: str, delete_after: float) -> bool:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return False
        try:
            await self._send(
                channel,
                content=content,
                delete_after=delete_after,
                allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False),
            )
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Send Notice", [("Channel", str(channel_id))])
            return False

    async def add_reaction(self, channel_id: int, message_id: int, emoji: str) -> bool:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return False
        try:
            await channel.get_partial_message(message_id).add_reaction(emoji)
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Add Reaction", [("Message", str(message_id))])
            return False

    # =========================================================================
    # Reports
    # =========================================================================

    async def send_report(self, channel_id: int, card: ReportCard) -> bool:
        from src.views.scam_actions import build_report_view

        channel = await self._get_channel(channel_id)
        if channel is None:
            return False

        subject = card.subject
        content = None if card.impersonator else (
            f"Suspicious activity detected for user {subject.username} ({subject.id})"
        )
        try:
            await self._send(
                channel,
                content=content,
                embed=build_report_embed(card),
                view=build_report_view(card),
                allowed_mentions=discord.AllowedMentions.none(),
            )
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Send Report", [("Channel", str(channel_id)), ("User", str(subject.id))])
            return False

    async def send_summary(self, channel_id: int, summary: ReportSummary) -> bool:
        channel = await self._get_channel(channel_id)
        if channel is None:
            return False
        try:
            for embed in build_summary_embeds(summary):
                await self._send(channel, embed=embed)
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Send Summary", [("Channel", str(channel_id))])
            return False

    # =========================================================================
    # Threads
    # =========================================================================

    async def create_or_fetch_thread(
        self,
        parent_channel_id: int,
        name: str,
        existing_thread_id: Optional[int] = None,
    ) -> Optional[int]:
        if existing_thread_id is not None:
            existing = await self._get_channel(existing_thread_id)
            if isinstance(existing, discord.Thread):
                return existing.id

        parent = await self._get_channel(parent_channel_id)
        if not isinstance(parent, discord.TextChannel):
            logger.warning("Report Channel Unavailable", [("Channel", str(parent_channel_id))])
            return None
        try:
            thread = await parent.create_thread(
                name=name[:100],
                type=discord.ChannelType.public_thread,
                auto_archive_duration=THREAD_AUTO_ARCHIVE_MINUTES,
                reason="New suspicious activity detected",
            )
            return thread.id
        except discord.HTTPException as e:
            log_http_error(e, "Create Thread", [("Name", name[:50])])
            return None

    async def archive_thread(self, thread_id: int) -> bool:
        thread = await self._get_channel(thread_id)
        if not isinstance(thread, discord.Thread):
            return False
        try:
            await thread.edit(archived=True)
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Archive Thread", [("Thread", str(thread_id))])
            return False

    # =========================================================================
    # Members
    # =========================================================================

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberSnapshot]:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return None
        member = await self._fetch_discord_member(guild, user_id)
        return member_snapshot(member) if member is not None else None

    async def ban_member(self, guild_id: int, user_id: int, reason: str, delete_message_seconds: int) -> bool:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return False
        try:
            await guild.ban(
                discord.Object(id=user_id),
                reason=reason,
                delete_message_seconds=delete_message_seconds,
            )
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Ban Member", [("User", str(user_id))])
            return False

    async def kick_member(self, guild_id: int, user_id: int, reason: str) -> bool:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return False
        try:
            await guild.kick(discord.Object(id=user_id), reason=reason)
            return True
        except discord.HTTPException as e:
            log_http_error(e, "Kick Member", [("User", str(user_id))])
            return False

    async def list_protected_members(
        self, guild_id: int, role_ids: Iterable[int]
    ) -> List[Tuple[MemberSnapshot, str]]:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return []
        await self._ensure_chunked(guild)

        result: List[Tuple[MemberSnapshot, str]] = []
        for role_id in role_ids:
            role = guild.get_role(role_id)
            if role is None:
                logger.warning("Protected Role Not Found", [("Role", str(role_id))])
                continue
            for member in role.members:
                result.append((member_snapshot(member), role.name))
            await asyncio.sleep(0)
        return result

    async def list_members(self, guild_id: int) -> List[MemberSnapshot]:
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return []
        await self._ensure_chunked(guild)
        return [member_snapshot(m) for m in guild.members]

    async def get_guild_context(self, guild_id: int) -> Optional[GuildContext]:
        guild = self.bot.get_guild(guild_id)
        if guild is None or guild.me is None:
            return None
        return guild_context(guild)


__all__ = [
    "PlatformAdapter",
    "DiscordPlatformAdapter",
    "member_snapshot",
    "guild_context",
    "is_processable_type",
]
