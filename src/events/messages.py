"""
GardenGuard - Message Events
============================

Feeds every guild message through the scam detection pipeline.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from src.core.logger import logger
from src.services.scam_detection.platform import is_processable_type
from src.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from src.bot import GuardBot


class MessageEvents(commands.Cog):
    """Message event handlers."""

    def __init__(self, bot: "GuardBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """
        Screen a message for scams.

        Bots, DMs and system messages are dropped before any member
        lookups. Failures are logged and never reach discord.py.
        """
        if message.author.bot or message.guild is None or not is_processable_type(message):
            return

        service = self.bot.scam_service
        if service is None or self.bot.platform is None:
            return

        snapshot = None
        try:
            snapshot = await self.bot.platform.build_message_snapshot(message)
            await service.handle_message(snapshot)
        except Exception as e:
            ErrorHandler.handle(
                e,
                location="MessageEvents.on_message",
                message=snapshot,
                message_id=message.id,
                channel_id=message.channel.id,
            )


async def setup(bot: "GuardBot") -> None:
    """Add the message events cog to the bot."""
    await bot.add_cog(MessageEvents(bot))
    logger.debug("Message Events Loaded")
