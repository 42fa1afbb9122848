"""
Assessment Storage
==================

Storage collaborator consumed by the run orchestrator.

The orchestrator performs every read and write through `AssessmentStorage`,
so the pipeline does not depend on a particular database. `InMemoryStorage`
is the development and test implementation.

Version: 0.1.0
"""

from datetime import UTC, datetime
from typing import Any, Protocol

from services.safeguard_assessment.models import (
    Assessment,
    Criterion,
    Finding,
    FindingCreate,
    Safeguard,
)


class AssessmentStorage(Protocol):
    """Persistence operations used during an assessment run."""

    async def get_assessment(self, assessment_id: str) -> Assessment | None: ...

    async def update_assessment(
        self, assessment_id: str, data: dict[str, Any]
    ) -> Assessment | None: ...

    async def get_safeguards_by_assessment(self, assessment_id: str) -> list[Safeguard]: ...

    async def get_criteria_by_safeguard(self, safeguard_id: str) -> list[Criterion]: ...

    async def update_criterion(
        self, criterion_id: str, data: dict[str, Any]
    ) -> Criterion | None: ...

    async def update_safeguard(
        self, safeguard_id: str, data: dict[str, Any]
    ) -> Safeguard | None: ...

    async def get_findings_by_assessment(self, assessment_id: str) -> list[Finding]: ...

    async def create_finding(self, finding: FindingCreate) -> Finding: ...


class InMemoryStorage:
    """Dict-backed AssessmentStorage."""

    def __init__(self) -> None:
        self.assessments: dict[str, Assessment] = {}
        self.safeguards: dict[str, Safeguard] = {}
        self.criteria: dict[str, Criterion] = {}
        self.findings: dict[str, Finding] = {}

    # Assessments

    async def create_assessment(self, assessment: Assessment) -> Assessment:
        self.assessments[assessment.id] = assessment
        return assessment

    async def get_assessment(self, assessment_id: str) -> Assessment | None:
        return self.assessments.get(assessment_id)

    async def update_assessment(
        self, assessment_id: str, data: dict[str, Any]
    ) -> Assessment | None:
        existing = self.assessments.get(assessment_id)
        if existing is None:
            return None
        updated = existing.model_copy(update={**data, "updated_at": datetime.now(UTC)})
        self.assessments[assessment_id] = updated
        return updated

    # Safeguards

    async def create_safeguard(self, safeguard: Safeguard) -> Safeguard:
        self.safeguards[safeguard.id] = safeguard
        return safeguard

    async def get_safeguards_by_assessment(self, assessment_id: str) -> list[Safeguard]:
        return [s for s in self.safeguards.values() if s.assessment_id == assessment_id]

    async def update_safeguard(
        self, safeguard_id: str, data: dict[str, Any]
    ) -> Safeguard | None:
        existing = self.safeguards.get(safeguard_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=data)
        self.safeguards[safeguard_id] = updated
        return updated

    # Criteria

    async def create_criterion(self, criterion: Criterion) -> Criterion:
        self.criteria[criterion.id] = criterion
        return criterion

    async def get_criteria_by_safeguard(self, safeguard_id: str) -> list[Criterion]:
        matches = [c for c in self.criteria.values() if c.safeguard_id == safeguard_id]
        return sorted(matches, key=lambda c: c.sort_order)

    async def update_criterion(
        self, criterion_id: str, data: dict[str, Any]
    ) -> Criterion | None:
        existing = self.criteria.get(criterion_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=data)
        self.criteria[criterion_id] = updated
        return updated

    # Findings

    async def get_findings_by_assessment(self, assessment_id: str) -> list[Finding]:
        return [f for f in self.findings.values() if f.assessment_id == assessment_id]

    async def create_finding(self, finding: FindingCreate) -> Finding:
        created = Finding(**finding.model_dump())
        self.findings[created.id] = created
        return created
