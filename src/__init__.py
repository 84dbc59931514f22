"""
GardenGuard - Source Package
============================

Scam and impersonation guard for a Discord community.

Package Structure:
- bot.py: Main Discord bot class and lifecycle
- core/: Configuration, logging and constants
- events/: Message and member event cogs
- services/: Scam detection engine and whitelist store
- views/: Persistent report buttons
- utils/: Async helpers, rate limit retry and error handling

Version: v1.0.0
"""
