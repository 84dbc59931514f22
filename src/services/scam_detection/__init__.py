"""
Scam Detection Package
======================

Message screening, repeat-offender escalation, impersonation scanning
and security reporting.

Structure:
    constants.py: Thresholds, windows and domain lists
    patterns.py: Scam phrase and invite regexes
    urls.py: URL extraction and link heuristics
    models.py: Snapshots, verdicts and report cards
    ledger.py: Per-user suspicion state
    dedup.py: Cross-channel duplicate tracking
    classifier.py: Message to verdict
    orchestrator.py: Verdict execution and report actions
    impersonation.py: Protected-name lookalike scanner
    reporting.py: Periodic security summary counters
    embeds.py: Report and summary embeds
    platform.py: Platform adapter and its discord.py implementation
    service.py: Wiring and periodic jobs
"""

from .classifier import ScamClassifier
from .dedup import DedupTracker
from .impersonation import ImpersonationScanner
from .ledger import SuspicionLedger
from .models import (
    Allow,
    EscalateKick,
    Impersonation,
    MemberSnapshot,
    MessageSnapshot,
    Quarantine,
    ReasonTag,
    ScamType,
    UnauthorizedUrl,
    Verdict,
)
from .orchestrator import QuarantineOrchestrator
from .platform import DiscordPlatformAdapter, PlatformAdapter
from .reporting import ReportingAggregator
from .service import ScamDetectionService

__all__ = [
    "ScamDetectionService",
    "ScamClassifier",
    "QuarantineOrchestrator",
    "ImpersonationScanner",
    "ReportingAggregator",
    "SuspicionLedger",
    "DedupTracker",
    "PlatformAdapter",
    "DiscordPlatformAdapter",
    "MemberSnapshot",
    "MessageSnapshot",
    "ReasonTag",
    "ScamType",
    "Allow",
    "Quarantine",
    "EscalateKick",
    "UnauthorizedUrl",
    "Impersonation",
    "Verdict",
]
