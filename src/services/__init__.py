"""
GardenGuard - Services Package
==============================

Stateful services the bot wires together on startup.

Available Services:
    ScamDetectionService: Message and member screening, escalation, reporting
    WhitelistStore: JSON-backed list of users exempt from screening
"""

from src.services.scam_detection import ScamDetectionService
from src.services.whitelist import WhitelistStore

__all__ = ["ScamDetectionService", "WhitelistStore"]
