"""
Finding Generation Service
==========================

Creates remediation findings for safeguards scored gap or partial.

Findings are keyed by (assessment id, safeguard catalog id): if one already
exists for the key, nothing is created, so repeated runs stay idempotent.

Version: 0.1.0
"""

from services.safeguard_assessment.models import (
    Finding,
    FindingCreate,
    FindingSeverity,
    FindingStatus,
    Safeguard,
    SafeguardStatus,
)
from services.safeguard_assessment.storage import AssessmentStorage
from shared.logging import get_logger


logger = get_logger(__name__)


def build_finding(
    safeguard: Safeguard,
    status: SafeguardStatus,
    company_id: str,
) -> FindingCreate | None:
    """
    Build the finding for a scored safeguard.

    Returns None for covered safeguards.
    """
    if status == SafeguardStatus.GAP:
        return FindingCreate(
            company_id=company_id,
            assessment_id=safeguard.assessment_id,
            cis_id=safeguard.cis_id,
            title=f"Gap: {safeguard.cis_id} {safeguard.name}",
            severity=FindingSeverity.HIGH,
            impact=(
                f"Control {safeguard.cis_id} is not implemented. This creates a "
                "security gap that could be exploited."
            ),
            recommendation=(
                f"Implement {safeguard.name} according to CIS Controls v8 guidance. "
                "Review the criterion requirements and gather appropriate evidence."
            ),
            status=FindingStatus.OPEN,
        )

    if status == SafeguardStatus.PARTIAL:
        return FindingCreate(
            company_id=company_id,
            assessment_id=safeguard.assessment_id,
            cis_id=safeguard.cis_id,
            title=f"Partial: {safeguard.cis_id} {safeguard.name}",
            severity=FindingSeverity.MEDIUM,
            impact=(
                f"Control {safeguard.cis_id} is partially implemented. Some "
                "requirements are not fully addressed."
            ),
            recommendation=(
                "Review the specific criteria that are not met or partially met for "
                f"{safeguard.name}. Address the gaps to achieve full compliance."
            ),
            status=FindingStatus.OPEN,
        )

    return None


class FindingGenerator:
    """Creates missing findings through the storage collaborator."""

    def __init__(self, storage: AssessmentStorage) -> None:
        self.storage = storage

    async def generate(
        self,
        safeguard: Safeguard,
        status: SafeguardStatus,
        company_id: str,
    ) -> Finding | None:
        """
        Create the finding for a safeguard unless one already exists.

        Args:
            safeguard: Safeguard that was just scored
            status: Its computed status
            company_id: Tenant the finding belongs to

        Returns:
            The created finding, or None if covered or already present
        """
        finding = build_finding(safeguard, status, company_id)
        if finding is None:
            return None

        existing = await self.storage.get_findings_by_assessment(safeguard.assessment_id)
        if any(f.cis_id == safeguard.cis_id for f in existing):
            logger.debug(
                "finding_exists",
                assessment_id=safeguard.assessment_id,
                cis_id=safeguard.cis_id,
            )
            return None

        created = await self.storage.create_finding(finding)

        logger.info(
            "finding_created",
            assessment_id=safeguard.assessment_id,
            cis_id=safeguard.cis_id,
            severity=created.severity.value,
        )
        return created
