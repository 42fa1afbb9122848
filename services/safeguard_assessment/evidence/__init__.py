"""
Evidence Clients
================

Outbound clients used while evaluating criteria:
- EvidenceRetriever: ranked passages from the tenant's indexed documents
- EvidenceClassifier: structured LLM decision on those passages
"""

from services.safeguard_assessment.evidence.classification import (
    EVALUATE_EVIDENCE_TOOL,
    CriterionEvidence,
    EvidenceClassifier,
    parse_decision,
)
from services.safeguard_assessment.evidence.retrieval import (
    EvidenceRetriever,
    compute_partition,
    normalize_chunks,
)

__all__ = [
    "EVALUATE_EVIDENCE_TOOL",
    "CriterionEvidence",
    "EvidenceClassifier",
    "EvidenceRetriever",
    "compute_partition",
    "normalize_chunks",
    "parse_decision",
]
