"""
Safeguard Assessment Models
===========================

Pydantic models for the assessment domain.

Models:
- Assessment, Safeguard, Criterion, Finding: persisted by the storage layer
- EvidenceChunk, ClassificationResult: ephemeral, produced per criterion

Version: 0.1.0
"""

from services.safeguard_assessment.models.assessment import (
    DEFAULT_COMPANY_ID,
    Assessment,
    AssessmentRunStatus,
    Criterion,
    CriterionStatus,
    Finding,
    FindingCreate,
    FindingSeverity,
    FindingStatus,
    RunStatus,
    Safeguard,
    SafeguardStatus,
)
from services.safeguard_assessment.models.evidence import (
    ClassificationResult,
    EvidenceChunk,
)

__all__ = [
    # Assessment
    "DEFAULT_COMPANY_ID",
    "Assessment",
    "AssessmentRunStatus",
    "RunStatus",
    # Safeguards and criteria
    "Safeguard",
    "SafeguardStatus",
    "Criterion",
    "CriterionStatus",
    # Findings
    "Finding",
    "FindingCreate",
    "FindingSeverity",
    "FindingStatus",
    # Evidence
    "EvidenceChunk",
    "ClassificationResult",
]
