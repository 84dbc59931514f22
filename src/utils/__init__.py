"""
GardenGuard - Utils Package
===========================

Helpers shared across services and event handlers.

DESIGN:
    Utils hold no bot state. Import submodules directly
    (src.utils.async_utils, src.utils.error_handler) so the detection
    package can use them without import cycles.

Available Utilities:
    async_utils: Safe background tasks, scheduled jobs, in-flight guard
    discord_rate_limit: Retry decorator and HTTP error logging
    error_handler: Categorized logging for unexpected exceptions
"""
