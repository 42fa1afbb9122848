"""
Assessment Run Orchestrator
===========================

Drives one assessment run end to end.

Workflow:
1. Load the assessment, reject if missing or already running
2. Mark it running
3. For each safeguard, for each criterion:
   retrieve evidence -> classify -> persist criterion
4. Score the safeguard, persist, generate a finding for gap/partial
5. Roll up assessment statistics and mark the run completed

Run states: idle -> running -> completed | completed_with_errors | failed.

Safeguards and criteria are processed sequentially: network calls are the
only suspension points and provider rate limits stay predictable. One
safeguard's failure is recorded and the run moves on. Cancellation is
cooperative: the run checks its token before each safeguard.

Version: 0.1.0
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from fractions import Fraction
from typing import Any

from shared.config import AssessmentSettings, settings
from shared.http import ProviderError
from shared.logging import bound_context, get_logger

from services.safeguard_assessment.errors import (
    ConflictError,
    NoSafeguardsError,
    NotFoundError,
    SafeguardProcessingError,
)
from services.safeguard_assessment.evidence import (
    EvidenceClassifier,
    EvidenceRetriever,
    compute_partition,
)
from services.safeguard_assessment.models import (
    Assessment,
    AssessmentRunStatus,
    ClassificationResult,
    Criterion,
    CriterionStatus,
    EvidenceChunk,
    RunStatus,
    Safeguard,
    SafeguardStatus,
)
from services.safeguard_assessment.services.findings import FindingGenerator
from services.safeguard_assessment.services.scoring import (
    AssessmentStats,
    calculate_assessment_stats,
    calculate_safeguard_score,
    round_half_up,
)
from services.safeguard_assessment.storage import AssessmentStorage


logger = get_logger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"

CITED_STATUSES = frozenset({CriterionStatus.MET, CriterionStatus.PARTIAL})
FINDING_STATUSES = frozenset({SafeguardStatus.GAP, SafeguardStatus.PARTIAL})


# =============================================================================
# Run Types
# =============================================================================


class ProgressPhase(str, Enum):
    """Phase reported in progress events."""

    STARTING = "starting"
    PROCESSING = "processing"
    COMPLETED = "completed"


@dataclass
class RunProgress:
    """Progress event emitted during a run."""

    phase: ProgressPhase
    percent_complete: int
    safeguard_index: int = 0
    safeguard_total: int = 0
    current_safeguard: str | None = None


ProgressCallback = Callable[[RunProgress], None]


@dataclass
class RunResult:
    """Outcome of one assessment run."""

    assessment_id: str
    status: RunStatus
    safeguards_processed: int = 0
    criteria_processed: int = 0
    criteria_with_evidence: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    stats: AssessmentStats = field(default_factory=AssessmentStats)


@dataclass
class ProcessedSafeguard:
    """Per-safeguard outcome used for the rollup."""

    safeguard: Safeguard
    score: int
    status: SafeguardStatus
    criteria_processed: int = 0
    criteria_with_evidence: int = 0


# =============================================================================
# Run Registry
# =============================================================================


@dataclass
class RunHandle:
    """Registry entry for an active run."""

    assessment_id: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: "asyncio.Task[RunResult] | None" = None

    @property
    def cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self.cancel_event.is_set()


class RunRegistry:
    """
    Active runs owned by one orchestrator, keyed by assessment id.

    Entries are created when a run starts and removed when it reaches a
    terminal state.
    """

    def __init__(self) -> None:
        self._runs: dict[str, RunHandle] = {}

    def __contains__(self, assessment_id: object) -> bool:
        return assessment_id in self._runs

    def __len__(self) -> int:
        return len(self._runs)

    def register(self, assessment_id: str) -> RunHandle:
        """Create the handle for a new run."""
        if assessment_id in self._runs:
            raise ConflictError("Assessment is already running")
        handle = RunHandle(assessment_id=assessment_id)
        self._runs[assessment_id] = handle
        return handle

    def get(self, assessment_id: str) -> RunHandle | None:
        return self._runs.get(assessment_id)

    def cancel(self, assessment_id: str) -> bool:
        """Flag a run for cancellation. Returns False if it is not active."""
        handle = self._runs.get(assessment_id)
        if handle is None:
            return False
        handle.cancel_event.set()
        return True

    def remove(self, assessment_id: str) -> None:
        self._runs.pop(assessment_id, None)


# =============================================================================
# Orchestrator
# =============================================================================


class AssessmentOrchestrator:
    """
    Runs assessments and exposes run control (start, status, cancel, reset).

    Example:
        orchestrator = AssessmentOrchestrator(storage, retriever, classifier)
        result = await orchestrator.run_assessment(assessment_id)
        print(result.status, result.stats.maturity_score)
    """

    def __init__(
        self,
        storage: AssessmentStorage,
        retriever: EvidenceRetriever,
        classifier: EvidenceClassifier,
        findings: FindingGenerator | None = None,
        config: AssessmentSettings | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            storage: Storage collaborator for all reads and writes
            retriever: Evidence retrieval client
            classifier: Evidence classification client
            findings: Finding generator (default: one over `storage`)
            config: Assessment settings (default from settings)
        """
        self.storage = storage
        self.retriever = retriever
        self.classifier = classifier
        self.findings = findings or FindingGenerator(storage)
        self.config = config or settings.assessment
        self.registry = RunRegistry()

    # -------------------------------------------------------------------------
    # Run control
    # -------------------------------------------------------------------------

    async def run_assessment(
        self,
        assessment_id: str,
        company_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RunResult:
        """
        Run an assessment and wait for it to finish.

        Args:
            assessment_id: Assessment to run
            company_id: Tenant override for evidence retrieval (administrative
                re-runs against another partition)
            on_progress: Called with each progress event

        Returns:
            RunResult with final status, counts and errors

        Raises:
            NotFoundError: Assessment does not exist
            ConflictError: A run is already in progress
            NoSafeguardsError: Assessment has no safeguards (run marked failed)
        """
        assessment, handle = await self._begin(assessment_id)
        return await self._execute(assessment, handle, company_id, on_progress)

    async def start_run(
        self,
        assessment_id: str,
        company_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AssessmentRunStatus:
        """
        Start a run in the background and return once it is marked running.

        Raises:
            NotFoundError: Assessment does not exist
            ConflictError: A run is already in progress
        """
        assessment, handle = await self._begin(assessment_id)
        handle.task = asyncio.create_task(
            self._execute(assessment, handle, company_id, on_progress),
            name=f"assessment-run-{assessment_id}",
        )
        handle.task.add_done_callback(_log_task_outcome)
        return AssessmentRunStatus.from_assessment(assessment)

    async def wait_for_run(self, assessment_id: str) -> RunResult | None:
        """Wait for a background run. Returns None if none is active."""
        handle = self.registry.get(assessment_id)
        if handle is None or handle.task is None:
            return None
        return await handle.task

    async def get_assessment_run_status(self, assessment_id: str) -> AssessmentRunStatus | None:
        """Read the run fields of an assessment, None if it does not exist."""
        assessment = await self.storage.get_assessment(assessment_id)
        if assessment is None:
            return None
        return AssessmentRunStatus.from_assessment(assessment)

    async def cancel_assessment(self, assessment_id: str) -> bool:
        """
        Cancel a running assessment.

        The in-flight safeguard finishes; no further safeguards start.

        Returns:
            False if the assessment does not exist or is not running
        """
        assessment = await self.storage.get_assessment(assessment_id)
        if assessment is None or not assessment.is_running:
            return False

        await self.storage.update_assessment(
            assessment_id,
            {
                "run_status": RunStatus.FAILED,
                "run_error": CANCELLED_MESSAGE,
                "run_completed_at": datetime.now(UTC),
            },
        )
        signalled = self.registry.cancel(assessment_id)

        logger.info(
            "assessment_run_cancel_requested",
            assessment_id=assessment_id,
            active_run=signalled,
        )
        return True

    async def reset_assessment(self, assessment_id: str) -> bool:
        """
        Reset run fields to idle so the assessment can be run again.

        Returns:
            False if the assessment does not exist or a run (including a
            cancelled one still finishing) is active
        """
        assessment = await self.storage.get_assessment(assessment_id)
        if assessment is None or assessment.is_running or assessment_id in self.registry:
            return False

        await self.storage.update_assessment(
            assessment_id,
            {
                "run_status": RunStatus.IDLE,
                "run_progress": 0,
                "run_started_at": None,
                "run_completed_at": None,
                "run_error": None,
            },
        )
        logger.info("assessment_run_reset", assessment_id=assessment_id)
        return True

    async def close(self) -> None:
        """Close provider clients."""
        await self.retriever.close()
        await self.classifier.provider.close()

    # -------------------------------------------------------------------------
    # Run execution
    # -------------------------------------------------------------------------

    async def _begin(self, assessment_id: str) -> tuple[Assessment, RunHandle]:
        assessment = await self.storage.get_assessment(assessment_id)
        if assessment is None:
            raise NotFoundError(f"Assessment not found: {assessment_id}")

        if assessment.is_running:
            raise ConflictError("Assessment is already running")
        if assessment_id in self.registry:
            raise ConflictError("Previous run is still stopping")

        # No await between the registry check and registration
        handle = self.registry.register(assessment_id)

        try:
            updated = await self.storage.update_assessment(
                assessment_id,
                {
                    "run_status": RunStatus.RUNNING,
                    "run_progress": 0,
                    "run_started_at": datetime.now(UTC),
                    "run_completed_at": None,
                    "run_error": None,
                },
            )
        except Exception:
            self.registry.remove(assessment_id)
            raise

        return updated or assessment, handle

    async def _execute(
        self,
        assessment: Assessment,
        handle: RunHandle,
        company_id: str | None,
        on_progress: ProgressCallback | None,
    ) -> RunResult:
        started = time.perf_counter()
        effective_company = (
            company_id or assessment.company_id or self.config.default_company_id
        )
        partition = compute_partition(effective_company)

        with bound_context(assessment_id=assessment.id):
            try:
                logger.info(
                    "assessment_run_started",
                    company_id=effective_company,
                    partition=partition,
                )
                _emit(on_progress, RunProgress(phase=ProgressPhase.STARTING, percent_complete=0))

                safeguards = await self.storage.get_safeguards_by_assessment(assessment.id)
                if not safeguards:
                    raise NoSafeguardsError("No safeguards found for assessment")

                result = await self._process_safeguards(
                    assessment, safeguards, handle, effective_company, partition, on_progress
                )
                result.duration_ms = (time.perf_counter() - started) * 1000
                return result

            except asyncio.CancelledError:
                if not handle.cancelled:
                    await self._mark_failed(assessment.id, "Run task was cancelled")
                raise
            except Exception as e:
                logger.error(
                    "assessment_run_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                # A user cancel already recorded the terminal state
                if not handle.cancelled:
                    await self._mark_failed(assessment.id, str(e))
                raise
            finally:
                self.registry.remove(assessment.id)

    async def _process_safeguards(
        self,
        assessment: Assessment,
        safeguards: list[Safeguard],
        handle: RunHandle,
        company_id: str,
        partition: str,
        on_progress: ProgressCallback | None,
    ) -> RunResult:
        total = len(safeguards)
        processed: list[ProcessedSafeguard] = []
        errors: list[str] = []

        for index, safeguard in enumerate(safeguards):
            if handle.cancelled:
                return self._cancelled_result(assessment.id, processed, errors)

            try:
                outcome = await self._process_safeguard(safeguard, company_id, partition)
            except Exception as e:
                error = SafeguardProcessingError(safeguard.cis_id, e)
                errors.append(str(error))
                logger.error(
                    "safeguard_processing_failed",
                    cis_id=safeguard.cis_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                # Unknown outcome counts as an unscored gap in the rollup
                outcome = ProcessedSafeguard(
                    safeguard=safeguard,
                    score=0,
                    status=SafeguardStatus.GAP,
                )
            processed.append(outcome)

            percent = round_half_up(Fraction(index + 1, total) * 100)
            await self.storage.update_assessment(assessment.id, {"run_progress": percent})
            _emit(
                on_progress,
                RunProgress(
                    phase=ProgressPhase.PROCESSING,
                    percent_complete=percent,
                    safeguard_index=index + 1,
                    safeguard_total=total,
                    current_safeguard=safeguard.label,
                ),
            )

        if handle.cancelled:
            return self._cancelled_result(assessment.id, processed, errors)

        stats = calculate_assessment_stats((p.score, p.status) for p in processed)
        status = RunStatus.COMPLETED_WITH_ERRORS if errors else RunStatus.COMPLETED

        await self.storage.update_assessment(
            assessment.id,
            {
                "run_status": status,
                "run_progress": 100,
                "run_completed_at": datetime.now(UTC),
                "run_error": "; ".join(errors) if errors else None,
                "status": "completed",
                **stats.to_update(),
            },
        )
        _emit(
            on_progress,
            RunProgress(
                phase=ProgressPhase.COMPLETED,
                percent_complete=100,
                safeguard_index=total,
                safeguard_total=total,
            ),
        )

        result = RunResult(
            assessment_id=assessment.id,
            status=status,
            safeguards_processed=len(processed),
            criteria_processed=sum(p.criteria_processed for p in processed),
            criteria_with_evidence=sum(p.criteria_with_evidence for p in processed),
            errors=errors,
            stats=stats,
        )

        logger.info(
            "assessment_run_completed",
            status=status.value,
            safeguards=result.safeguards_processed,
            criteria=result.criteria_processed,
            with_evidence=result.criteria_with_evidence,
            errors=len(errors),
            maturity_score=stats.maturity_score,
        )
        return result

    async def _process_safeguard(
        self,
        safeguard: Safeguard,
        company_id: str,
        partition: str,
    ) -> ProcessedSafeguard:
        criteria = await self.storage.get_criteria_by_safeguard(safeguard.id)

        statuses: list[CriterionStatus] = []
        with_evidence = 0

        for criterion in criteria:
            evidence = await self._evaluate_criterion(criterion, safeguard, partition)
            await self.storage.update_criterion(criterion.id, _criterion_update(evidence))
            statuses.append(evidence.status)
            if evidence.has_evidence:
                with_evidence += 1

        score = calculate_safeguard_score(statuses)
        await self.storage.update_safeguard(
            safeguard.id,
            {"score": score.score, "status": score.status},
        )

        if score.status in FINDING_STATUSES:
            await self.findings.generate(safeguard, score.status, company_id)

        logger.info(
            "safeguard_scored",
            cis_id=safeguard.cis_id,
            score=score.score,
            status=score.status.value,
            met=score.breakdown.met,
            partial=score.breakdown.partial,
            total=score.breakdown.total,
        )

        return ProcessedSafeguard(
            safeguard=safeguard,
            score=score.score,
            status=score.status,
            criteria_processed=len(criteria),
            criteria_with_evidence=with_evidence,
        )

    async def _evaluate_criterion(
        self,
        criterion: Criterion,
        safeguard: Safeguard,
        partition: str,
    ) -> ClassificationResult:
        query = f"{safeguard.name}: {criterion.text}"

        chunks: list[EvidenceChunk] = []
        try:
            chunks = await self.retriever.retrieve(
                query,
                partition=partition,
                top_k=self.config.retrieval_top_k,
                max_chunks_per_document=self.config.retrieval_max_per_document,
                rerank=self.config.retrieval_rerank,
            )
        except Exception as e:
            # No evidence rather than a failed criterion
            logger.warning(
                "retrieval_failed",
                criterion_id=criterion.id,
                status_code=getattr(e, "status_code", None),
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            return await self.classifier.classify(criterion.text, chunks)
        except ProviderError as e:
            logger.warning(
                "classification_failed",
                criterion_id=criterion.id,
                status_code=e.status_code,
                error=str(e),
            )
            return ClassificationResult.insufficient(f"Evaluation failed: {e}")

    def _cancelled_result(
        self,
        assessment_id: str,
        processed: list[ProcessedSafeguard],
        errors: list[str],
    ) -> RunResult:
        # Run state was already written by cancel_assessment
        logger.warning(
            "assessment_run_cancelled",
            safeguards_processed=len(processed),
        )
        return RunResult(
            assessment_id=assessment_id,
            status=RunStatus.FAILED,
            safeguards_processed=len(processed),
            criteria_processed=sum(p.criteria_processed for p in processed),
            criteria_with_evidence=sum(p.criteria_with_evidence for p in processed),
            errors=[*errors, CANCELLED_MESSAGE],
        )

    async def _mark_failed(self, assessment_id: str, error: str) -> None:
        try:
            await self.storage.update_assessment(
                assessment_id,
                {
                    "run_status": RunStatus.FAILED,
                    "run_error": error,
                    "run_completed_at": datetime.now(UTC),
                },
            )
        except Exception as update_error:
            # Keep the original failure as the one that propagates
            logger.error("mark_failed_update_failed", error=str(update_error))


def _criterion_update(evidence: ClassificationResult) -> dict[str, Any]:
    """Criterion fields to persist; citations only for met/partial."""
    cited = evidence.status in CITED_STATUSES
    update: dict[str, Any] = {
        "status": evidence.status,
        "citation_document_id": evidence.document_id if cited else None,
        "citation_page": evidence.page if cited else None,
        "citation_section": evidence.section if cited else None,
        "citation_excerpt": evidence.excerpt if cited else None,
        "evidence_chunk_id": evidence.chunk_id if cited else None,
    }
    if not cited:
        update["citation_highlight"] = None
    return update


def _emit(callback: ProgressCallback | None, progress: RunProgress) -> None:
    if callback is not None:
        callback(progress)


def _log_task_outcome(task: "asyncio.Task[RunResult]") -> None:
    if task.cancelled():
        logger.warning("assessment_run_task_cancelled", task=task.get_name())
        return
    error = task.exception()
    if error is not None:
        logger.error(
            "assessment_run_task_failed",
            task=task.get_name(),
            error=str(error),
            error_type=type(error).__name__,
        )
