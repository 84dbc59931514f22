#!/usr/bin/env python3
"""
GardenGuard - Entry Point
=========================

Scam and impersonation guard for a Discord community.

Startup:
1. Loads .env into the environment
2. Validates configuration (fails fast on missing values)
3. Builds the bot and connects to Discord
"""

import asyncio
import sys

from dotenv import load_dotenv

from src.core.config import ConfigValidationError, validate_and_log_config
from src.core.logger import logger
from src.utils.error_handler import ErrorHandler


async def main() -> None:
    """Load configuration, create the bot and run it until shutdown."""
    load_dotenv()

    logger.tree("GARDENGUARD STARTING", [
        ("Python", sys.version.split()[0]),
    ], emoji="🌱")

    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    from src.bot import GuardBot

    bot = GuardBot()
    try:
        async with bot:
            await bot.start(config.discord_token)
    except Exception as e:
        ErrorHandler.handle(e, location="main.main", critical=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as e:
        ErrorHandler.handle(e, location="main.__main__", critical=True)
        sys.exit(1)
