"""
Safeguard Assessment Services
=============================

Business logic for assessment runs.

Services:
- Scoring: safeguard scores and assessment rollups
- FindingGenerator: remediation findings for gaps
- AssessmentOrchestrator: run workflow and run control

Version: 0.1.0
"""

from services.safeguard_assessment.services.findings import (
    FindingGenerator,
    build_finding,
)
from services.safeguard_assessment.services.orchestrator import (
    AssessmentOrchestrator,
    ProgressPhase,
    RunHandle,
    RunProgress,
    RunRegistry,
    RunResult,
)
from services.safeguard_assessment.services.scoring import (
    AssessmentStats,
    SafeguardScore,
    ScoreBreakdown,
    calculate_assessment_stats,
    calculate_safeguard_score,
    get_status_from_score,
    round_half_up,
)


__all__ = [
    # Scoring
    "AssessmentStats",
    "SafeguardScore",
    "ScoreBreakdown",
    "calculate_assessment_stats",
    "calculate_safeguard_score",
    "get_status_from_score",
    "round_half_up",
    # Findings
    "FindingGenerator",
    "build_finding",
    # Orchestrator
    "AssessmentOrchestrator",
    "ProgressPhase",
    "RunHandle",
    "RunProgress",
    "RunRegistry",
    "RunResult",
]
