"""
GardenGuard Discord Bot - Logger Module
=======================================

Tree-style logging with Eastern timestamps and daily log folders.

DESIGN:
    Each entry is a title line followed by indented (key, value) rows.
    Lines go to the console and the daily log file; errors are also
    appended to a separate error file and, when a webhook is set,
    posted to Discord.

    Log layout:
        logs/2024-06-01/GardenGuard-2024-06-01.log
        logs/2024-06-01/GardenGuard-Errors-2024-06-01.log
"""

import os
import uuid
import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import aiohttp
from zoneinfo import ZoneInfo


# =============================================================================
# Constants
# =============================================================================

LOGS_DIR = Path("logs")
"""Root directory for log files, one sub-folder per day."""

LOG_RETENTION_DAYS = 7
"""Number of days to keep dated log folders."""

NY_TZ = ZoneInfo("America/New_York")

Details = Optional[List[Tuple[str, str]]]


# =============================================================================
# Tree Logger Class
# =============================================================================

class TreeLogger:
    """
    Logger with tree-style formatting.

    Attributes:
        run_id: Short identifier for this bot session.
        log_file: Path to the main log file.
        error_file: Path to the error-only log file.
    """

    def __init__(self) -> None:
        self.run_id: str = str(uuid.uuid4())[:8]
        self._webhook_url: Optional[str] = None

        today = datetime.now(NY_TZ).strftime("%Y-%m-%d")
        self.log_dir = LOGS_DIR / today
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / f"GardenGuard-{today}.log"
        self.error_file = self.log_dir / f"GardenGuard-Errors-{today}.log"

        self._cleanup_old_logs()
        self._write_session_header()

    def set_webhook(self, url: Optional[str]) -> None:
        """Set the webhook URL used for error alerts."""
        self._webhook_url = url

    # =========================================================================
    # Log Cleanup
    # =========================================================================

    def _cleanup_old_logs(self) -> None:
        """
        Remove dated log folders older than the retention period.

        Only folders named YYYY-MM-DD are considered; anything else is left alone.
        """
        if not LOGS_DIR.exists():
            return

        now = datetime.now()
        deleted = 0

        for item in LOGS_DIR.iterdir():
            if not item.is_dir():
                continue
            try:
                dir_date = datetime.strptime(item.name, "%Y-%m-%d")
            except ValueError:
                continue
            if (now - dir_date).days > LOG_RETENTION_DAYS:
                for f in item.iterdir():
                    f.unlink()
                item.rmdir()
                deleted += 1

        if deleted > 0:
            print(f"[LOG CLEANUP] Removed {deleted} old log directories")

    def _append(self, path: Path, text: str) -> None:
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)

    def _write_session_header(self) -> None:
        rule = "=" * 60
        started = datetime.now(NY_TZ).strftime("%I:%M:%S %p %Z")
        self._append(self.log_file, f"\n{rule}\nSESSION {self.run_id} STARTED {started}\n{rule}\n")

    # =========================================================================
    # Core Logging
    # =========================================================================

    def _get_timestamp(self) -> str:
        return datetime.now(NY_TZ).strftime("[%I:%M:%S %p %Z]")

    def _write(
        self,
        message: str,
        emoji: str = "",
        include_timestamp: bool = True,
        is_error: bool = False,
    ) -> None:
        """
        Write one line to the console and the log files.

        Args:
            message: Line content.
            emoji: Optional emoji prefix.
            include_timestamp: Whether to prepend the timestamp.
            is_error: Whether to also append to the error log.
        """
        parts = [self._get_timestamp()] if include_timestamp else []
        if emoji:
            parts.append(emoji)
        parts.append(message)
        full_message = " ".join(parts)

        print(full_message)
        self._append(self.log_file, f"{full_message}\n")
        if is_error:
            self._append(self.error_file, f"{full_message}\n")

    def _write_details(self, details: List[Tuple[str, str]], is_error: bool = False) -> None:
        for i, (key, value) in enumerate(details):
            prefix = "└─" if i == len(details) - 1 else "├─"
            self._write(f"  {prefix} {key}: {value}", include_timestamp=False, is_error=is_error)

    # =========================================================================
    # Tree Formatting
    # =========================================================================

    def tree(
        self,
        title: str,
        items: List[Tuple[str, str]],
        emoji: str = "📦",
    ) -> None:
        """
        Log structured data in tree format.

        Example output:
            [02:30:45 PM EST] 🚨 Message Quarantined
              ├─ User: scammer (123)
              ├─ Channels: 3
              └─ Reasons: multi_channel_flood
        """
        self._append(self.log_file, "\n")

        self._write(title, emoji=emoji)
        self._write_details(items)

        self._append(self.log_file, "\n")

    def tree_nested(
        self,
        title: str,
        sections: List[Tuple[str, List[Tuple[str, str]]]],
        emoji: str = "📦",
    ) -> None:
        """
        Log a two-level tree: sections, each with its own (key, value) rows.

        Args:
            title: Main heading.
            sections: List of (section_name, items) tuples.
            emoji: Emoji prefix for the title.
        """
        self._append(self.log_file, "\n")

        self._write(title, emoji=emoji)

        for i, (section_name, items) in enumerate(sections):
            is_last_section = i == len(sections) - 1
            section_prefix = "└─" if is_last_section else "├─"
            self._write(f"  {section_prefix} {section_name}", include_timestamp=False)

            for j, (key, value) in enumerate(items):
                connector = "   " if is_last_section else "│  "
                item_prefix = "└─" if j == len(items) - 1 else "├─"
                self._write(
                    f"  {connector} {item_prefix} {key}: {value}",
                    include_timestamp=False,
                )

        self._append(self.log_file, "\n")

    # =========================================================================
    # Log Levels
    # =========================================================================

    def _log(self, msg: str, emoji: str, details: Details) -> None:
        self._write(msg, emoji)
        if details:
            self._write_details(details)

    def debug(self, msg: str, details: Details = None) -> None:
        """Log a debug message (only when the DEBUG env var is set)."""
        if os.getenv("DEBUG"):
            self._log(msg, "🔍", details)

    def info(self, msg: str, details: Details = None) -> None:
        self._log(msg, "ℹ️", details)

    def success(self, msg: str, details: Details = None) -> None:
        self._log(msg, "✅", details)

    def warning(self, msg: str, details: Details = None) -> None:
        self._log(msg, "⚠️", details)

    def error(self, msg: str, details: Details = None) -> None:
        """
        Log an error, optionally with structured details.

        Errors with details are also pushed to the webhook when one is set.
        """
        if details:
            self._write("", is_error=True)
            self._write(msg, "❌", is_error=True)
            self._write_details(details, is_error=True)
            self._write("", include_timestamp=False, is_error=True)

            if self._webhook_url:
                try:
                    asyncio.get_running_loop().create_task(
                        self._send_webhook_error(msg, details)
                    )
                except RuntimeError:
                    pass  # No running loop (startup or tests)
        else:
            self._write(msg, "❌", is_error=True)

    def critical(self, msg: str) -> None:
        self._write(msg, "🚨", is_error=True)

    # =========================================================================
    # Webhook Integration
    # =========================================================================

    async def _send_webhook_error(
        self,
        title: str,
        details: List[Tuple[str, str]],
    ) -> None:
        """Post an error embed to the configured Discord webhook."""
        if not self._webhook_url:
            return

        try:
            description = "\n".join([f"**{k}:** {v}" for k, v in details])
            payload = {
                "embeds": [{
                    "title": f"❌ {title}",
                    "description": description[:4000],
                    "color": 0xFF0000,
                    "timestamp": datetime.now(NY_TZ).isoformat(),
                    "footer": {"text": f"Run ID: {self.run_id}"},
                }]
            }

            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._webhook_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=10),
                ) as resp:
                    if resp.status != 204:
                        print(f"Webhook error: {resp.status}")

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"Failed to send webhook: {e}")


# =============================================================================
# Global Instance
# =============================================================================

logger = TreeLogger()


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "logger",
    "TreeLogger",
]
