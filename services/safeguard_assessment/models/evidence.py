"""
Evidence Models
===============

Ephemeral models produced while evaluating a criterion. Neither is
persisted; the orchestrator copies the citation fields it needs onto the
criterion.

Version: 0.1.0
"""

from pydantic import BaseModel, Field

from services.safeguard_assessment.models.assessment import CriterionStatus


class EvidenceChunk(BaseModel):
    """A retrieved passage of source-document text."""

    content: str
    score: float = 0.0
    chunk_id: str | None = None
    document_id: str | None = None
    document_name: str | None = None
    page: str | None = None
    section_title: str | None = None

    @property
    def source(self) -> str:
        """Best available name of the source document."""
        return self.document_name or self.document_id or "Unknown"


class ClassificationResult(BaseModel):
    """Structured decision on whether evidence satisfies a criterion."""

    status: CriterionStatus
    confidence: float = Field(..., ge=0.0, le=1.0)
    excerpt: str = Field(default="", max_length=500)
    chunk_id: str | None = None
    document_id: str | None = None
    document_name: str | None = None
    page: str | None = None
    section: str | None = None
    reasoning: str = ""

    @property
    def has_evidence(self) -> bool:
        """Check if the decision rests on a quoted excerpt."""
        return self.status != CriterionStatus.INSUFFICIENT and bool(self.excerpt)

    @classmethod
    def insufficient(cls, reasoning: str, confidence: float = 0.0) -> "ClassificationResult":
        """Build an `insufficient` result with no reference."""
        return cls(
            status=CriterionStatus.INSUFFICIENT,
            confidence=confidence,
            reasoning=reasoning,
        )
