"""
GardenGuard - Member Events
===========================

Checks newly joined members for impersonation of protected staff.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from src.core.logger import logger
from src.services.scam_detection.platform import member_snapshot
from src.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from src.bot import GuardBot


class MemberEvents(commands.Cog):
    """Member event handlers."""

    def __init__(self, bot: "GuardBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        """Log the join and run the impersonation check."""
        if member.bot:
            return

        account_age = "Unknown"
        if member.created_at:
            account_age = f"{(discord.utils.utcnow() - member.created_at).days} days"

        logger.tree("Member Joined", [
            ("User", f"{member} ({member.id})"),
            ("Display Name", member.display_name),
            ("Account Age", account_age),
        ], emoji="📥")

        service = self.bot.scam_service
        if service is None:
            return

        snapshot = member_snapshot(member)
        try:
            await service.handle_member_join(snapshot)
        except Exception as e:
            ErrorHandler.handle(e, location="MemberEvents.on_member_join", member=snapshot)


async def setup(bot: "GuardBot") -> None:
    """Add the member events cog to the bot."""
    await bot.add_cog(MemberEvents(bot))
    logger.debug("Member Events Loaded")
