"""
Assessment Run Routes
=====================

API endpoints for starting, monitoring and controlling assessment runs.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from shared.logging import get_logger
from shared.models.common import SuccessResponse

from services.safeguard_assessment.dependencies import get_orchestrator
from services.safeguard_assessment.errors import ConflictError, NotFoundError
from services.safeguard_assessment.models import AssessmentRunStatus
from services.safeguard_assessment.services import AssessmentOrchestrator


logger = get_logger(__name__)

router = APIRouter()


class RunRequest(BaseModel):
    """Optional parameters for starting a run."""

    company_id: str | None = Field(
        default=None,
        description="Tenant override for evidence retrieval",
    )


@router.post(
    "/{assessment_id}/run",
    response_model=AssessmentRunStatus,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_assessment_run(
    assessment_id: str,
    request: RunRequest | None = None,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
) -> AssessmentRunStatus:
    """
    Start an assessment run in the background.

    Poll `GET /{assessment_id}/run` for progress.
    """
    company_id = request.company_id if request else None

    try:
        run_status = await orchestrator.start_run(assessment_id, company_id=company_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    logger.info("assessment_run_requested", assessment_id=assessment_id)
    return run_status


@router.get("/{assessment_id}/run", response_model=AssessmentRunStatus)
async def get_assessment_run_status(
    assessment_id: str,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
) -> AssessmentRunStatus:
    """Get the run status of an assessment."""
    run_status = await orchestrator.get_assessment_run_status(assessment_id)
    if run_status is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Assessment not found: {assessment_id}",
        )
    return run_status


@router.post("/{assessment_id}/run/cancel", response_model=SuccessResponse)
async def cancel_assessment_run(
    assessment_id: str,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
) -> SuccessResponse:
    """Cancel a running assessment."""
    if not await orchestrator.cancel_assessment(assessment_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Assessment is not running",
        )
    return SuccessResponse(message="Assessment run cancelled")


@router.post("/{assessment_id}/run/reset", response_model=SuccessResponse)
async def reset_assessment_run(
    assessment_id: str,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
) -> SuccessResponse:
    """Reset the run state of an assessment that is not running."""
    if not await orchestrator.reset_assessment(assessment_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Assessment is missing or still running",
        )
    return SuccessResponse(message="Assessment run reset")
