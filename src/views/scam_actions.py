"""
GardenGuard - Scam Report Action Buttons
========================================

Persistent Ban and Whitelist buttons attached to every scam report.

DESIGN:
    Buttons are DynamicItems whose custom id carries the target user id,
    so they keep working after a restart without any stored view state.
    Permission and hierarchy checks live in the service; the callbacks
    only defer, delegate and report the outcome.
"""

from typing import TYPE_CHECKING, Optional

import discord

from src.core.logger import logger
from src.services.scam_detection.models import ReportCard
from src.services.scam_detection.platform import member_snapshot

if TYPE_CHECKING:
    from discord.ext import commands


def _service(interaction: discord.Interaction):
    return getattr(interaction.client, "scam_service", None)


def _thread_id(interaction: discord.Interaction) -> Optional[int]:
    channel = interaction.channel
    return channel.id if isinstance(channel, discord.Thread) else None


# =============================================================================
# Ban Button
# =============================================================================

class BanButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"scam_ban:(?P<user_id>\d+)(?::(?P<impersonator>impersonator))?",
):
    """Ban the reported user. Impersonator reports use a different ban reason."""

    def __init__(self, user_id: int, impersonator: bool = False):
        suffix = ":impersonator" if impersonator else ""
        super().__init__(
            discord.ui.Button(
                label="Ban Impersonator" if impersonator else "Ban",
                style=discord.ButtonStyle.danger,
                emoji="🔨",
                custom_id=f"scam_ban:{user_id}{suffix}",
            )
        )
        self.user_id = user_id
        self.impersonator = impersonator

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match,
    ) -> "BanButton":
        return cls(int(match.group("user_id")), impersonator=match.group("impersonator") is not None)

    async def callback(self, interaction: discord.Interaction) -> None:
        service = _service(interaction)
        if service is None or interaction.guild is None:
            logger.warning("Scam Ban Attempted But Service Unavailable")
            await interaction.response.send_message("Scam detection is unavailable.", ephemeral=True)
            return
        if not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message("This button only works inside the server.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.ban_user(
            interaction.guild.id,
            self.user_id,
            member_snapshot(interaction.user),
            impersonator=self.impersonator,
            thread_id=_thread_id(interaction),
            avatar_url=interaction.user.display_avatar.url,
        )
        if not success:
            logger.tree("Scam Ban Failed", [
                ("Target", str(self.user_id)),
                ("Moderator", f"{interaction.user} ({interaction.user.id})"),
                ("Reason", message),
            ], emoji="❌")
        await interaction.followup.send(message, ephemeral=True)


# =============================================================================
# Whitelist Button
# =============================================================================

class WhitelistButton(discord.ui.DynamicItem[discord.ui.Button], template=r"scam_whitelist:(?P<user_id>\d+)"):
    """Exempt the reported user from future screening."""

    def __init__(self, user_id: int):
        super().__init__(
            discord.ui.Button(
                label="Whitelist",
                style=discord.ButtonStyle.secondary,
                emoji="✅",
                custom_id=f"scam_whitelist:{user_id}",
            )
        )
        self.user_id = user_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match,
    ) -> "WhitelistButton":
        return cls(int(match.group("user_id")))

    async def callback(self, interaction: discord.Interaction) -> None:
        service = _service(interaction)
        if service is None or interaction.guild is None:
            logger.warning("Scam Whitelist Attempted But Service Unavailable")
            await interaction.response.send_message("Scam detection is unavailable.", ephemeral=True)
            return
        if not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message("This button only works inside the server.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        success, message = await service.whitelist_user(
            interaction.guild.id,
            self.user_id,
            member_snapshot(interaction.user),
        )
        if not success:
            logger.tree("Scam Whitelist Failed", [
                ("Target", str(self.user_id)),
                ("Moderator", f"{interaction.user} ({interaction.user.id})"),
                ("Reason", message),
            ], emoji="❌")
        await interaction.followup.send(message, ephemeral=True)


# =============================================================================
# View Builder & Registration
# =============================================================================

def build_report_view(card: ReportCard) -> Optional[discord.ui.View]:
    """Action row for a report card, or None when it carries no actions."""
    if not card.ban_action and not card.whitelist_action:
        return None

    view = discord.ui.View(timeout=None)
    if card.ban_action:
        view.add_item(BanButton(card.subject.id, impersonator=card.impersonator))
    if card.whitelist_action:
        view.add_item(WhitelistButton(card.subject.id))
    return view


def setup_scam_views(bot: "commands.Bot") -> None:
    """Register the persistent report buttons."""
    bot.add_dynamic_items(BanButton, WhitelistButton)
    logger.debug("Scam Views Registered (BanButton, WhitelistButton)")


__all__ = ["BanButton", "WhitelistButton", "build_report_view", "setup_scam_views"]
