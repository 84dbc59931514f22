"""
GardenGuard - Main Bot Class
============================

Discord client that screens community messages for scams and
impersonators and reports them to moderators.

Features:
- Scam and phishing message quarantine
- Repeat-offender escalation (kick)
- Impersonation scanning of member names
- Periodic security reports with a ban leaderboard
- Persistent Ban / Whitelist report buttons
"""

import asyncio
from datetime import datetime
from typing import Optional

import discord
from discord.ext import commands

from src.core.config import NY_TZ, get_config
from src.core.constants import SHUTDOWN_TIMEOUT
from src.core.logger import logger
from src.services.scam_detection import DiscordPlatformAdapter, ScamDetectionService
from src.services.whitelist import WhitelistStore


# =============================================================================
# GuardBot Class
# =============================================================================

class GuardBot(commands.Bot):
    """
    Main Discord bot class.

    SERVICE INITIALIZATION ORDER:
    1. setup_hook (before on_ready):
       - Event cog loading
       - Persistent view registration

    2. on_ready:
       - Platform adapter
       - Whitelist store
       - Scam detection service and its periodic jobs
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self) -> None:
        self.config = get_config()

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.start_time: datetime = datetime.now(NY_TZ)

        # Service placeholders
        self.platform: Optional[DiscordPlatformAdapter] = None
        self.whitelist: Optional[WhitelistStore] = None
        self.scam_service: Optional[ScamDetectionService] = None

        # Ready state guard
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Load event cogs and register persistent views before on_ready."""
        from src.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except commands.ExtensionError as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

        from src.views.scam_actions import setup_scam_views
        setup_scam_views(self)

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Initialize services once; reconnects skip re-initialization."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        await self._init_services()

    async def _init_services(self) -> None:
        """Create the platform adapter, whitelist and scam service."""
        report_channel = self.get_channel(self.config.scam_channel_id)
        if report_channel is None:
            try:
                report_channel = await self.fetch_channel(self.config.scam_channel_id)
            except discord.HTTPException as e:
                logger.error("Report Channel Unavailable", [
                    ("Channel", str(self.config.scam_channel_id)),
                    ("Error", str(e)[:100]),
                ])
                return

        guild = getattr(report_channel, "guild", None)
        if guild is None:
            logger.error("Report Channel Has No Guild", [("Channel", str(self.config.scam_channel_id))])
            return

        self.platform = DiscordPlatformAdapter(self)
        self.whitelist = WhitelistStore(self.config.whitelist_path)
        self.scam_service = ScamDetectionService(self.platform, self.config, whitelist=self.whitelist)
        self.scam_service.start(guild.id)

        logger.tree("Services Initialized", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Report Channel", f"#{getattr(report_channel, 'name', report_channel.id)}"),
            ("Whitelisted Users", str(len(self.whitelist))),
        ], emoji="✅")

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Stop periodic jobs, then close the gateway connection."""
        logger.info("Initiating Graceful Shutdown")

        if self.scam_service:
            try:
                await asyncio.wait_for(self.scam_service.stop(), timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Scam Service Stop Timed Out", [("Timeout", f"{SHUTDOWN_TIMEOUT}s")])

        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now(NY_TZ) - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["GuardBot"]
