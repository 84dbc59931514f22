"""
Discord Rate Limit Utilities
============================

Retry and logging helpers for Discord API calls.

Usage:
    from src.utils.discord_rate_limit import log_http_error, with_rate_limit_retry

    @with_rate_limit_retry()
    async def post(channel, content):
        return await channel.send(content)
"""

import asyncio
import random
from functools import wraps
from typing import Any, Callable, List, Optional, Tuple

import discord

from src.core.logger import logger


# =============================================================================
# Configuration
# =============================================================================

class RateLimitConfig:
    """Retry tuning for Discord API calls."""
    MAX_RETRIES: int = 3
    BASE_DELAY: float = 1.0
    MAX_DELAY: float = 30.0


HTTP_STATUS_DESCRIPTIONS = {
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate Limited",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


# =============================================================================
# Logging Helper
# =============================================================================

def log_http_error(
    e: discord.HTTPException,
    operation: str,
    context: Optional[List[Tuple[str, str]]] = None,
) -> None:
    """
    Log a Discord HTTPException at a level that matches its status.

    Not Found, Forbidden and rate limits are expected during moderation
    (messages vanish, users close DMs) and log as warnings.
    """
    status = getattr(e, "status", 0)
    log_items = [
        ("Status", f"{status} ({HTTP_STATUS_DESCRIPTIONS.get(status, 'Unknown')})"),
        ("Error", str(getattr(e, "text", "") or e)[:100]),
    ]
    if context:
        log_items.extend(context)

    if status == 429:
        logger.warning(f"{operation} Rate Limited", log_items)
    elif status == 403:
        logger.warning(f"{operation} Forbidden", log_items)
    elif status == 404:
        logger.warning(f"{operation} Not Found", log_items)
    else:
        logger.error(f"{operation} Failed", log_items)


# =============================================================================
# Rate Limit Decorator
# =============================================================================

def with_rate_limit_retry(
    max_retries: int = RateLimitConfig.MAX_RETRIES,
    base_delay: float = RateLimitConfig.BASE_DELAY,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Retry a coroutine on 429 and 5xx responses with exponential backoff.

    Other HTTP errors (403, 404, 400) are raised immediately since a retry
    cannot fix them.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)

                except discord.RateLimited as e:
                    delay = e.retry_after + 0.5
                    if attempt >= max_retries - 1 or delay >= RateLimitConfig.MAX_DELAY:
                        raise
                    logger.warning("Discord Rate Limited", [
                        ("Function", func.__name__),
                        ("Attempt", f"{attempt + 1}/{max_retries}"),
                        ("Retry After", f"{delay:.1f}s"),
                    ])
                    await asyncio.sleep(delay)

                except discord.HTTPException as e:
                    retryable = e.status == 429 or e.status >= 500
                    if not retryable or attempt >= max_retries - 1:
                        raise
                    delay = min(base_delay * (2 ** attempt), RateLimitConfig.MAX_DELAY)
                    delay += random.uniform(0, delay * 0.1)
                    logger.warning("Discord API Error", [
                        ("Function", func.__name__),
                        ("Attempt", f"{attempt + 1}/{max_retries}"),
                        ("Status", str(e.status)),
                        ("Retry In", f"{delay:.1f}s"),
                    ])
                    await asyncio.sleep(delay)

            raise RuntimeError(f"{func.__name__} failed without exception")

        return wrapper

    return decorator


__all__ = ["RateLimitConfig", "log_http_error", "with_rate_limit_retry"]
