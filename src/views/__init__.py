"""
GardenGuard - Views Package
===========================

Persistent Discord UI components.

Modules:
    scam_actions: Ban and Whitelist buttons on scam reports
"""
