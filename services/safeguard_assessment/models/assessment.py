"""
Assessment Models
=================

Models for assessments, safeguards, criteria and findings.

Safeguards and criteria are created from the fixed catalog when an
assessment is instantiated; a run only updates their status fields.

Version: 0.1.0
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_COMPANY_ID = "default"


def _new_id() -> str:
    return str(uuid4())


class RunStatus(str, Enum):
    """Assessment run state."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class SafeguardStatus(str, Enum):
    """Safeguard coverage derived from its score."""

    COVERED = "covered"
    PARTIAL = "partial"
    GAP = "gap"


class CriterionStatus(str, Enum):
    """Outcome of evaluating one criterion."""

    MET = "met"
    PARTIAL = "partial"
    NOT_MET = "not_met"
    INSUFFICIENT = "insufficient"


class FindingSeverity(str, Enum):
    """Finding severity."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FindingStatus(str, Enum):
    """Finding remediation state."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class Assessment(BaseModel):
    """An assessment of one tenant against the safeguard catalog."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=_new_id)
    company_id: str = DEFAULT_COMPANY_ID
    name: str
    framework: str = "CIS Controls v8 IG1"
    status: str = "in_progress"

    # Rollup
    maturity_score: int = Field(default=0, ge=0, le=100)
    controls_covered: int = 0
    controls_partial: int = 0
    controls_gap: int = 0
    total_controls: int = 0

    # Run tracking
    run_status: RunStatus = RunStatus.IDLE
    run_progress: int = Field(default=0, ge=0, le=100)
    run_started_at: datetime | None = None
    run_completed_at: datetime | None = None
    run_error: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_running(self) -> bool:
        """Check if a run is in progress."""
        return self.run_status == RunStatus.RUNNING


class Safeguard(BaseModel):
    """One control from the catalog, scoped to an assessment."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=_new_id)
    company_id: str = DEFAULT_COMPANY_ID
    assessment_id: str
    cis_id: str = Field(..., description="Catalog id, e.g. '1.1'")
    name: str
    asset_type: str = ""
    security_function: str = ""
    status: SafeguardStatus = SafeguardStatus.GAP
    score: int = Field(default=0, ge=0, le=100)

    @property
    def label(self) -> str:
        """Human-readable label used in progress events and findings."""
        return f"{self.cis_id}: {self.name}"


class Criterion(BaseModel):
    """A gradable evidence requirement within a safeguard."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=_new_id)
    company_id: str = DEFAULT_COMPANY_ID
    safeguard_id: str
    text: str
    status: CriterionStatus = CriterionStatus.NOT_MET

    # Citation (set for met/partial only)
    citation_document_id: str | None = None
    citation_page: str | None = None
    citation_section: str | None = None
    citation_excerpt: str | None = None
    citation_highlight: str | None = None
    evidence_chunk_id: str | None = None

    sort_order: int = 0


class FindingCreate(BaseModel):
    """Fields for a new finding."""

    company_id: str = DEFAULT_COMPANY_ID
    assessment_id: str
    cis_id: str
    title: str
    severity: FindingSeverity
    impact: str
    recommendation: str
    status: FindingStatus = FindingStatus.OPEN
    assigned_to: str | None = None
    due_date: str | None = None


class Finding(FindingCreate):
    """A remediation item for a gap or partial safeguard."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AssessmentRunStatus(BaseModel):
    """Read-only projection of an assessment's run fields."""

    status: RunStatus
    progress: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> "AssessmentRunStatus":
        """Project the run fields of an assessment."""
        return cls(
            status=assessment.run_status,
            progress=assessment.run_progress,
            started_at=assessment.run_started_at,
            completed_at=assessment.run_completed_at,
            error=assessment.run_error,
        )
