"""
Evidence Retrieval Client
=========================

Semantic retrieval over a tenant's indexed documents (Ragie API).

Tenancy is enforced by partition: every call carries the partition derived
from the tenant id, and a client never queries across partitions.

Version: 0.1.0
"""

import re
from typing import Any

from shared.config import ConfigurationError, RetrievalSettings, RetrySettings, settings
from shared.http import RetryingClient, RetryPolicy
from shared.logging import get_logger

from services.safeguard_assessment.models import EvidenceChunk


logger = get_logger(__name__)

_PARTITION_INVALID = re.compile(r"[^a-z0-9_-]+")


def compute_partition(company_id: str) -> str:
    """
    Compute the retrieval partition for a tenant.

    Lower-cases the id and replaces each run of characters outside
    [a-z0-9_-] with a single "-".

    Example:
        >>> compute_partition("Acme Corp/EU")
        'acme-corp-eu'
    """
    return _PARTITION_INVALID.sub("-", company_id.lower())


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _optional_str(value: Any) -> str | None:
    return None if value in (None, "") else str(value)


def normalize_chunk(raw: dict[str, Any]) -> EvidenceChunk:
    """
    Normalize one wire-level chunk.

    Tolerates the field-name variants the API has used: `text`/`content`,
    `id`/`chunk_id`, `doc_id`/`document_id` (top level or in metadata) and
    several document-name keys.
    """
    metadata = raw.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    score = raw.get("score")

    return EvidenceChunk(
        content=str(_first(raw.get("text"), raw.get("content")) or ""),
        score=float(score) if isinstance(score, int | float) else 0.0,
        chunk_id=_optional_str(_first(raw.get("chunk_id"), raw.get("id"))),
        document_id=_optional_str(
            _first(
                metadata.get("document_id"),
                metadata.get("doc_id"),
                raw.get("document_id"),
                raw.get("doc_id"),
            )
        ),
        document_name=_optional_str(
            _first(
                metadata.get("document_name"),
                metadata.get("filename"),
                metadata.get("title"),
                raw.get("doc_title"),
                raw.get("title"),
            )
        ),
        page=_optional_str(
            _first(metadata.get("page"), raw.get("page"), raw.get("page_number"))
        ),
        section_title=_optional_str(metadata.get("section_title")),
    )


def normalize_chunks(raw_chunks: Any) -> list[EvidenceChunk]:
    """Normalize a chunk list, highest relevance first."""
    if not isinstance(raw_chunks, list):
        return []

    chunks = [normalize_chunk(c) for c in raw_chunks if isinstance(c, dict)]
    # Stable: equal scores keep provider order
    return sorted(chunks, key=lambda c: c.score, reverse=True)


class EvidenceRetriever:
    """
    Client for the Ragie retrieval API.

    Example:
        retriever = EvidenceRetriever()
        chunks = await retriever.search("asset inventory policy", company_id="acme")
    """

    def __init__(
        self,
        config: RetrievalSettings | None = None,
        retry: RetrySettings | None = None,
        client: RetryingClient | None = None,
    ) -> None:
        """
        Initialize the retriever.

        Args:
            config: Retrieval settings (default from settings)
            retry: Retry settings (default from settings)
            client: Pre-built HTTP client (used by tests)

        Raises:
            ConfigurationError: If no API key is configured
        """
        self.config = config or settings.retrieval

        api_key = self.config.api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError("RAGIE_API_KEY environment variable is not set")

        self._client = client or RetryingClient(
            base_url=self.config.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=self.config.timeout_seconds,
            policy=RetryPolicy.from_settings(retry or settings.retry, name="ragie"),
        )

    async def retrieve(
        self,
        query: str,
        partition: str,
        top_k: int | None = None,
        max_chunks_per_document: int | None = None,
        rerank: bool | None = None,
        filter: dict[str, Any] | None = None,
    ) -> list[EvidenceChunk]:
        """
        Retrieve the chunks most relevant to a query within one partition.

        Args:
            query: Query text
            partition: Tenant partition (see compute_partition)
            top_k: Maximum number of chunks
            max_chunks_per_document: Per-document cap
            rerank: Whether the provider should re-rank results
            filter: Optional metadata filter

        Returns:
            Chunks ordered by relevance; an empty list is a valid result

        Raises:
            TransientProviderError: Retries exhausted
            TerminalProviderError: Non-retryable failure
        """
        payload: dict[str, Any] = {
            "query": query,
            "partition": partition,
            "top_k": top_k or self.config.top_k,
            "max_chunks_per_document": max_chunks_per_document
            or self.config.max_chunks_per_document,
            "rerank": self.config.rerank if rerank is None else rerank,
        }
        if filter:
            payload["filter"] = filter

        data = await self._client.request_json("POST", "/retrievals", json=payload)
        if not isinstance(data, dict):
            return []

        chunks = normalize_chunks(data.get("scored_chunks") or data.get("chunks") or [])

        logger.debug(
            "evidence_retrieved",
            partition=partition,
            chunks=len(chunks),
            top_score=chunks[0].score if chunks else None,
        )
        return chunks

    async def search(
        self,
        query: str,
        company_id: str,
        top_k: int | None = None,
        max_chunks_per_document: int | None = None,
        rerank: bool | None = None,
    ) -> list[EvidenceChunk]:
        """Retrieve within the partition of `company_id`."""
        return await self.retrieve(
            query,
            partition=compute_partition(company_id),
            top_k=top_k,
            max_chunks_per_document=max_chunks_per_document,
            rerank=rerank,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
