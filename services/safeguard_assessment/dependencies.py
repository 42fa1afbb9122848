"""
Service Dependencies
====================

Process-wide orchestrator used by the API routes.

Built lazily from settings on first access. Tests install their own with
`set_orchestrator`.

Version: 0.1.0
"""

from shared.logging import get_logger

from services.safeguard_assessment.evidence import EvidenceClassifier, EvidenceRetriever
from services.safeguard_assessment.services import AssessmentOrchestrator
from services.safeguard_assessment.storage import InMemoryStorage


logger = get_logger(__name__)

# Global orchestrator instance
_orchestrator: AssessmentOrchestrator | None = None


def get_orchestrator() -> AssessmentOrchestrator:
    """
    Get the orchestrator, building it on first call.

    Raises:
        ConfigurationError: If a provider API key is not set
    """
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = AssessmentOrchestrator(
            storage=InMemoryStorage(),
            retriever=EvidenceRetriever(),
            classifier=EvidenceClassifier(),
        )
        logger.info("orchestrator_initialized")

    return _orchestrator


def set_orchestrator(orchestrator: AssessmentOrchestrator) -> None:
    """Install a custom orchestrator."""
    global _orchestrator
    _orchestrator = orchestrator


async def close_orchestrator() -> None:
    """Close the orchestrator's clients and drop it."""
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
