"""
Evidence Classification Client
==============================

Uses an LLM to decide whether retrieved evidence satisfies a criterion.

The model must answer through the `evaluate_evidence` tool. The tool input
is validated locally; anything that does not fit the schema degrades to an
`insufficient` result instead of raising. Provider failures (after
retries) do raise, so callers decide how to degrade.

Version: 0.1.0
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from pydantic import BaseModel, ValidationError, field_validator

from shared.config import settings
from shared.llm import LLMProvider, ToolDefinition, get_llm_provider
from shared.logging import get_logger

from services.safeguard_assessment.models import (
    ClassificationResult,
    CriterionStatus,
    EvidenceChunk,
)


logger = get_logger(__name__)

EXCERPT_MAX_LENGTH = 500
ELLIPSIS = "..."

NO_EVIDENCE_REASONING = "No evidence chunks were provided for evaluation."
PARSE_FAILURE_REASONING = "Failed to parse model response"


EVALUATE_EVIDENCE_TOOL = ToolDefinition(
    name="evaluate_evidence",
    description=(
        "Evaluate whether the provided evidence chunks satisfy the assessment "
        "criterion. Returns a structured evaluation result."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": [s.value for s in CriterionStatus],
                "description": (
                    "The evaluation status:\n"
                    '- "met": Evidence clearly and fully satisfies the criterion\n'
                    '- "partial": Evidence partially addresses the criterion but has gaps\n'
                    '- "not_met": Evidence exists but does not satisfy the criterion\n'
                    '- "insufficient": Not enough relevant evidence to make a determination'
                ),
            },
            "confidence": {
                "type": "number",
                "minimum": 0,
                "maximum": 1,
                "description": "Confidence score from 0.0 to 1.0 in the evaluation",
            },
            "excerpt": {
                "type": "string",
                "description": (
                    "The most relevant excerpt from the evidence that supports the "
                    "evaluation (verbatim quote, max 500 chars). Empty string if no "
                    "relevant evidence."
                ),
            },
            "chunk_index": {
                "type": ["integer", "null"],
                "description": (
                    "Zero-based index of the chunk containing the best evidence, "
                    "or null if no relevant evidence"
                ),
            },
            "reasoning": {
                "type": "string",
                "description": "Brief explanation of why this status was assigned (1-2 sentences)",
            },
        },
        "required": ["status", "confidence", "excerpt", "chunk_index", "reasoning"],
    },
)


class EvidenceDecision(BaseModel):
    """Validated `evaluate_evidence` tool input."""

    status: CriterionStatus
    confidence: float = 0.0
    excerpt: str = ""
    chunk_index: int | None = None
    reasoning: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: object) -> float:
        """Clamp confidence into [0, 1]; missing counts as 0."""
        if v is None:
            return 0.0
        return max(0.0, min(1.0, float(v)))  # type: ignore[arg-type]

    @field_validator("excerpt", "reasoning", mode="before")
    @classmethod
    def none_to_empty(cls, v: object) -> object:
        return "" if v is None else v


def truncate_excerpt(text: str, max_length: int = EXCERPT_MAX_LENGTH) -> str:
    """Truncate to `max_length` characters, ending with an ellipsis if cut."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def build_prompt(criterion_text: str, chunks: list[EvidenceChunk]) -> str:
    """Build the auditor prompt listing each chunk with its index."""
    chunks_text = "\n\n---\n\n".join(
        f"[Chunk {index}] Source: {chunk.source}"
        f"{f' (Page {chunk.page})' if chunk.page else ''}\n{chunk.content}"
        for index, chunk in enumerate(chunks)
    )

    return f"""You are a compliance auditor evaluating whether documentary evidence satisfies a security control criterion.

## Criterion to Evaluate
{criterion_text}

## Available Evidence
{chunks_text if chunks else "(No evidence chunks provided)"}

## Instructions
1. Carefully analyze each evidence chunk for relevance to the criterion
2. Determine if the evidence satisfies the criterion:
   - "met": Clear, documented evidence that fully addresses the criterion
   - "partial": Some evidence exists but incomplete or unclear
   - "not_met": Evidence exists but contradicts or fails to meet the criterion
   - "insufficient": No relevant evidence found in the provided chunks
3. Extract the most relevant verbatim excerpt (if any)
4. Provide brief reasoning for your evaluation

Use the {EVALUATE_EVIDENCE_TOOL.name} tool to submit your structured evaluation."""


def parse_decision(
    tool_input: dict[str, object] | None,
    chunks: list[EvidenceChunk],
) -> ClassificationResult:
    """
    Turn raw tool input into a ClassificationResult.

    Never raises: a missing or invalid input yields `insufficient` with
    confidence 0. An out-of-range chunk index yields a null reference.
    """
    if tool_input is None:
        return ClassificationResult.insufficient(PARSE_FAILURE_REASONING)

    try:
        decision = EvidenceDecision.model_validate(tool_input)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning("classification_parse_failed", error=str(e))
        return ClassificationResult.insufficient(f"{PARSE_FAILURE_REASONING}: {e}")

    chunk: EvidenceChunk | None = None
    index = decision.chunk_index
    if index is not None and 0 <= index < len(chunks):
        chunk = chunks[index]

    return ClassificationResult(
        status=decision.status,
        confidence=decision.confidence,
        excerpt=truncate_excerpt(decision.excerpt),
        chunk_id=chunk.chunk_id if chunk else None,
        document_id=chunk.document_id if chunk else None,
        document_name=chunk.document_name if chunk else None,
        page=chunk.page if chunk else None,
        section=chunk.section_title if chunk else None,
        reasoning=decision.reasoning,
    )


@dataclass
class CriterionEvidence:
    """One batch item: a criterion and the evidence retrieved for it."""

    id: str
    text: str
    chunks: list[EvidenceChunk] = field(default_factory=list)


class EvidenceClassifier:
    """
    Classifies evidence against criteria with a tool-using LLM.

    Example:
        classifier = EvidenceClassifier()
        result = await classifier.classify("An asset inventory exists", chunks)
        print(result.status, result.confidence)
    """

    def __init__(self, provider: LLMProvider | None = None) -> None:
        """
        Initialize the classifier.

        Args:
            provider: LLM provider (default: configured provider)

        Raises:
            ConfigurationError: If the default provider has no API key
        """
        self.provider = provider or get_llm_provider()

    async def classify(
        self,
        criterion_text: str,
        chunks: list[EvidenceChunk],
    ) -> ClassificationResult:
        """
        Evaluate evidence chunks against one criterion.

        With no chunks the result is `insufficient` with confidence 1.0 and
        the provider is not called.

        Raises:
            TransientProviderError: Provider retries exhausted
            TerminalProviderError: Non-retryable provider failure
        """
        if not chunks:
            return ClassificationResult.insufficient(NO_EVIDENCE_REASONING, confidence=1.0)

        call = await self.provider.invoke_tool(
            build_prompt(criterion_text, chunks),
            tool=EVALUATE_EVIDENCE_TOOL,
        )
        result = parse_decision(call.input, chunks)

        logger.debug(
            "criterion_classified",
            status=result.status.value,
            confidence=result.confidence,
            chunks=len(chunks),
            chunk_id=result.chunk_id,
        )
        return result

    async def classify_batch(
        self,
        items: list[CriterionEvidence],
        delay_seconds: float | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> dict[str, ClassificationResult]:
        """
        Classify many criteria one after another.

        Calls are sequential to respect provider rate limits. A failed item
        becomes `insufficient` instead of failing the batch.

        Args:
            items: Criteria with their evidence
            delay_seconds: Pause between calls (default from settings)
            on_progress: Called with (completed, total) after each item,
                in submission order

        Returns:
            Results keyed by criterion id
        """
        if delay_seconds is None:
            delay_seconds = settings.assessment.batch_delay_ms / 1000

        results: dict[str, ClassificationResult] = {}
        total = len(items)

        for position, item in enumerate(items, start=1):
            try:
                results[item.id] = await self.classify(item.text, item.chunks)
            except Exception as e:
                logger.warning(
                    "batch_classification_failed",
                    criterion_id=item.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                results[item.id] = ClassificationResult.insufficient(
                    f"Evaluation failed: {e}"
                )

            if on_progress:
                on_progress(position, total)

            if position < total and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)

        return results
