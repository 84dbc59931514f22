"""
GardenGuard - Events Package
============================

Event handler Cogs, loaded by the bot from EVENT_COGS.

DESIGN:
    Each event file contains a Cog with @commands.Cog.listener methods
    and a module-level setup() for load_extension(). Cogs convert
    discord.py objects to snapshots and hand them to the scam service.

    Event routing:
    - messages.py: Message create
    - members.py: Member join
"""

# =============================================================================
# Event Cog Registry
# =============================================================================

EVENT_COGS = [
    "src.events.messages",
    "src.events.members",
]
"""Event cog module paths, loaded in order by the bot's setup_hook."""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "EVENT_COGS",
]
