"""
GardenGuard - Error Handler
===========================

Last-resort handling for exceptions that reach an event handler or the
entry point.

Features:
- Error categorization (Discord, network, general)
- Recovery hint per category
- Snapshot context capture (message, member)
- Critical errors written to logs/errors/ as JSON
"""

import json
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp
import discord

from src.core.config import NY_TZ
from src.core.logger import logger
from src.services.scam_detection.models import MemberSnapshot, MessageSnapshot


ERROR_DIR = Path("logs/errors")


class ErrorContext:
    """Captures error details plus whatever the caller knew at the time."""

    @staticmethod
    def get_full_context(e: BaseException, location: str, **kwargs: Any) -> Dict[str, Any]:
        context: Dict[str, Any] = {
            "timestamp": datetime.now(NY_TZ).isoformat(),
            "location": location,
            "error_type": type(e).__name__,
            "error_message": str(e),
            "traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
            "python_version": sys.version,
            "additional_context": {k: v for k, v in kwargs.items() if k not in ("message", "member")},
        }

        message = kwargs.get("message")
        if isinstance(message, MessageSnapshot):
            context["message_context"] = {
                "guild_id": message.guild_id,
                "channel": message.channel_name or str(message.channel_id),
                "author": message.author.username,
                "author_id": message.author.id,
                "content": message.content[:100] if message.content else None,
            }

        member = kwargs.get("member")
        if isinstance(member, MemberSnapshot):
            context["member_context"] = {
                "name": member.username,
                "id": member.id,
                "roles": list(member.role_names),
                "joined_at": member.joined_at.isoformat() if member.joined_at else None,
            }

        return context


class ErrorHandler:
    """Categorize, log and (for critical errors) persist unexpected exceptions."""

    ERROR_CATEGORIES = {
        "discord": (discord.Forbidden, discord.NotFound, discord.HTTPException, discord.GatewayNotFound),
        "network": (aiohttp.ClientError, ConnectionError, TimeoutError, OSError),
    }

    RECOVERY_SUGGESTIONS = {
        discord.Forbidden: "Check bot permissions in server settings",
        discord.NotFound: "Resource not found - check IDs and channels",
        discord.HTTPException: "Discord API issue - will retry on the next event",
        aiohttp.ClientError: "HTTP client error - check connectivity",
        ConnectionError: "Network connection issue - check internet connection",
        TimeoutError: "Request timed out - will retry on the next event",
        OSError: "System resource issue - check disk space and permissions",
    }

    @classmethod
    def categorize_error(cls, e: BaseException) -> str:
        for category, error_types in cls.ERROR_CATEGORIES.items():
            if isinstance(e, error_types):
                return category
        return "general"

    @classmethod
    def get_recovery_suggestion(cls, e: BaseException) -> str:
        for error_type, suggestion in cls.RECOVERY_SUGGESTIONS.items():
            if isinstance(e, error_type):
                return suggestion
        return "Unexpected error - check logs for details"

    @classmethod
    def handle(cls, e: BaseException, location: str, critical: bool = False, **context: Any) -> Optional[Path]:
        """
        Log an exception with full context.

        Returns:
            Path of the stored JSON record for critical errors, else None.
        """
        category = cls.categorize_error(e)
        suggestion = cls.get_recovery_suggestion(e)
        full_context = ErrorContext.get_full_context(e, location, **context)

        details = [
            ("Category", category.upper()),
            ("Location", location),
            ("Type", full_context["error_type"]),
            ("Error", full_context["error_message"][:100]),
            ("Recovery", suggestion),
        ]
        message_context = full_context.get("message_context")
        if message_context:
            details.append(("User", f"{message_context['author']} ({message_context['author_id']})"))
            details.append(("Channel", str(message_context["channel"])))

        if not critical:
            logger.warning("Unhandled Error", details)
            return None

        logger.error("Critical Error", details)
        logger.info("Traceback", [("Trace", full_context["traceback"][-500:])])
        return cls._store_critical_error(full_context)

    @staticmethod
    def _store_critical_error(context: Dict[str, Any]) -> Optional[Path]:
        try:
            ERROR_DIR.mkdir(exist_ok=True, parents=True)
            timestamp = datetime.now(NY_TZ).strftime("%Y%m%d_%H%M%S_%f")
            error_file = ERROR_DIR / f"error_{timestamp}.json"
            with error_file.open("w", encoding="utf-8") as f:
                json.dump(context, f, indent=2, default=str)
        except OSError as save_error:
            logger.warning("Error Record Not Saved", [("Error", str(save_error)[:100])])
            return None

        logger.info("Critical Error Saved", [("File", str(error_file))])
        return error_file


__all__ = ["ErrorHandler", "ErrorContext"]
