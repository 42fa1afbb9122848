"""
Evidence Retrieval Tests
========================

Tests for partitioning, chunk normalization and the retrieval client.

Version: 0.1.0
"""

import json

import httpx
import pytest
from pydantic import SecretStr

from shared.config import ConfigurationError, RetrievalSettings
from shared.http import RetryingClient, RetryPolicy, TerminalProviderError, TransientProviderError
from services.safeguard_assessment.evidence import (
    EvidenceRetriever,
    compute_partition,
    normalize_chunks,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def retrieval_settings() -> RetrievalSettings:
    return RetrievalSettings(api_key=SecretStr("test-ragie-key"))


def make_retriever(retrieval_settings, handler, no_sleep) -> tuple[EvidenceRetriever, list]:
    """Retriever whose HTTP client is backed by `handler`."""
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = RetryingClient(
        base_url="https://api.ragie.test",
        headers={"Authorization": "Bearer test-ragie-key"},
        policy=RetryPolicy(name="ragie", sleep=no_sleep),
        transport=httpx.MockTransport(recording),
    )
    return EvidenceRetriever(config=retrieval_settings, client=client), seen


# =============================================================================
# Partition Tests
# =============================================================================


class TestComputePartition:
    """Tests for tenant partition derivation."""

    @pytest.mark.parametrize(
        "company_id,expected",
        [
            ("acme", "acme"),
            ("Acme", "acme"),
            ("acme_corp-1", "acme_corp-1"),
            ("Acme Corp/EU", "acme-corp-eu"),
            ("a  b", "a-b"),
            ("user@example.com", "user-example-com"),
        ],
    )
    def test_partition(self, company_id, expected):
        assert compute_partition(company_id) == expected

    def test_deterministic(self):
        assert compute_partition("Tenant 42") == compute_partition("Tenant 42")


# =============================================================================
# Normalization Tests
# =============================================================================


class TestNormalizeChunks:
    """Tests for wire-level chunk normalization."""

    def test_metadata_fields(self):
        chunks = normalize_chunks([
            {
                "text": "Asset inventory is reviewed quarterly.",
                "score": 0.91,
                "id": "chunk-1",
                "metadata": {
                    "document_id": "doc-1",
                    "document_name": "Asset Policy.pdf",
                    "page": 3,
                    "section_title": "Inventory",
                },
            }
        ])

        chunk = chunks[0]
        assert chunk.content == "Asset inventory is reviewed quarterly."
        assert chunk.score == 0.91
        assert chunk.chunk_id == "chunk-1"
        assert chunk.document_id == "doc-1"
        assert chunk.document_name == "Asset Policy.pdf"
        assert chunk.page == "3"
        assert chunk.section_title == "Inventory"

    def test_alternate_field_names(self):
        chunks = normalize_chunks([
            {
                "content": "MFA is enforced.",
                "score": 0.5,
                "chunk_id": "c-9",
                "doc_id": "doc-9",
                "doc_title": "Access Standard",
                "page_number": 12,
            }
        ])

        chunk = chunks[0]
        assert chunk.content == "MFA is enforced."
        assert chunk.chunk_id == "c-9"
        assert chunk.document_id == "doc-9"
        assert chunk.document_name == "Access Standard"
        assert chunk.page == "12"

    def test_missing_fields_tolerated(self):
        chunk = normalize_chunks([{"text": "bare"}])[0]

        assert chunk.score == 0.0
        assert chunk.document_id is None
        assert chunk.source == "Unknown"

    def test_non_dict_metadata_ignored(self):
        chunk = normalize_chunks([
            {"text": "x", "score": 0.5, "doc_id": "doc-2", "metadata": "oops"}
        ])[0]

        assert chunk.content == "x"
        assert chunk.document_id == "doc-2"
        assert chunk.section_title is None

    def test_sorted_by_score(self):
        chunks = normalize_chunks([
            {"text": "low", "score": 0.1},
            {"text": "high", "score": 0.9},
            {"text": "mid", "score": 0.5},
        ])

        assert [c.content for c in chunks] == ["high", "mid", "low"]

    def test_non_list_is_empty(self):
        assert normalize_chunks(None) == []
        assert normalize_chunks({"text": "x"}) == []


# =============================================================================
# Client Tests
# =============================================================================


class TestEvidenceRetriever:
    """Tests for EvidenceRetriever."""

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError):
            EvidenceRetriever(config=RetrievalSettings(api_key=SecretStr("")))

    @pytest.mark.asyncio
    async def test_posts_partitioned_query(self, retrieval_settings, no_sleep):
        def handler(request):
            return httpx.Response(
                200,
                json={"scored_chunks": [{"text": "evidence", "score": 0.8}]},
            )

        retriever, seen = make_retriever(retrieval_settings, handler, no_sleep)

        chunks = await retriever.retrieve(
            "Asset inventory: An inventory exists",
            partition="acme",
            top_k=10,
            max_chunks_per_document=4,
            rerank=True,
        )

        assert [c.content for c in chunks] == ["evidence"]
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/retrievals"
        assert request.headers["Authorization"] == "Bearer test-ragie-key"
        assert json.loads(request.content) == {
            "query": "Asset inventory: An inventory exists",
            "partition": "acme",
            "top_k": 10,
            "max_chunks_per_document": 4,
            "rerank": True,
        }
        await retriever.close()

    @pytest.mark.asyncio
    async def test_defaults_and_filter(self, retrieval_settings, no_sleep):
        def handler(request):
            return httpx.Response(200, json={"chunks": []})

        retriever, seen = make_retriever(retrieval_settings, handler, no_sleep)

        chunks = await retriever.retrieve("q", partition="p", filter={"type": "policy"})

        assert chunks == []
        payload = json.loads(seen[0].content)
        assert payload["top_k"] == 24
        assert payload["max_chunks_per_document"] == 6
        assert payload["rerank"] is True
        assert payload["filter"] == {"type": "policy"}
        await retriever.close()

    @pytest.mark.asyncio
    async def test_search_derives_partition(self, retrieval_settings, no_sleep):
        def handler(request):
            return httpx.Response(200, json={"scored_chunks": []})

        retriever, seen = make_retriever(retrieval_settings, handler, no_sleep)

        await retriever.search("q", company_id="Acme Corp")

        assert json.loads(seen[0].content)["partition"] == "acme-corp"
        await retriever.close()

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, retrieval_settings, no_sleep):
        def handler(request):
            return httpx.Response(503)

        retriever, seen = make_retriever(retrieval_settings, handler, no_sleep)

        with pytest.raises(TransientProviderError):
            await retriever.retrieve("q", partition="p")
        assert len(seen) == 3
        await retriever.close()

    @pytest.mark.asyncio
    async def test_client_error_raises_terminal(self, retrieval_settings, no_sleep):
        def handler(request):
            return httpx.Response(400, json={"detail": "bad partition"})

        retriever, seen = make_retriever(retrieval_settings, handler, no_sleep)

        with pytest.raises(TerminalProviderError):
            await retriever.retrieve("q", partition="p")
        assert len(seen) == 1
        await retriever.close()
