"""
Claude Provider Tests
=====================

Tests for Anthropic error translation and tool-use extraction.

Version: 0.1.0
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import anthropic
import httpx
import pytest
from pydantic import SecretStr

from shared.config import ConfigurationError, settings
from shared.http import RetryPolicy, TerminalProviderError, TransientProviderError
from shared.llm import (
    ClaudeProvider,
    ToolDefinition,
    get_llm_provider,
    reset_llm_provider,
    set_llm_provider,
)
from shared.llm.claude import translate_anthropic_error


MESSAGES_URL = "https://api.anthropic.com/v1/messages"


# =============================================================================
# Fixtures
# =============================================================================


def api_response(status_code: int, headers: dict[str, str] | None = None) -> httpx.Response:
    """Build the httpx response attached to an SDK status error."""
    return httpx.Response(
        status_code,
        headers=headers or {},
        request=httpx.Request("POST", MESSAGES_URL),
    )


def message(*blocks, input_tokens: int = 1000, output_tokens: int = 200) -> SimpleNamespace:
    """Minimal stand-in for an Anthropic Message."""
    return SimpleNamespace(
        content=list(blocks),
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
        model="claude-sonnet-4-20250514",
        stop_reason="tool_use",
    )


@pytest.fixture
def tool() -> ToolDefinition:
    return ToolDefinition(
        name="evaluate_evidence",
        description="Evaluate evidence",
        input_schema={"type": "object", "properties": {}},
    )


@pytest.fixture
def provider(no_sleep) -> ClaudeProvider:
    """Provider with a test key and a non-sleeping retry policy."""
    return ClaudeProvider(
        api_key="test-key",
        model="claude-sonnet-4-20250514",
        policy=RetryPolicy(max_attempts=3, name="anthropic", sleep=no_sleep),
    )


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestTranslateAnthropicError:
    """Tests for mapping SDK errors to provider errors."""

    def test_rate_limit_is_transient_with_retry_after(self):
        error = anthropic.RateLimitError(
            "rate limited",
            response=api_response(429, {"retry-after": "2"}),
            body=None,
        )

        result = translate_anthropic_error(error)

        assert isinstance(result, TransientProviderError)
        assert result.status_code == 429
        assert result.retry_after == 2.0

    def test_server_error_is_transient(self):
        error = anthropic.InternalServerError("boom", response=api_response(500), body=None)

        result = translate_anthropic_error(error)

        assert isinstance(result, TransientProviderError)
        assert result.retry_after is None

    def test_bad_request_is_terminal(self):
        error = anthropic.BadRequestError(
            "invalid tool schema",
            response=api_response(400),
            body={"error": {"message": "invalid tool schema"}},
        )

        result = translate_anthropic_error(error)

        assert isinstance(result, TerminalProviderError)
        assert result.status_code == 400
        assert "invalid tool schema" in result.response_body

    def test_connection_error_is_transient(self):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", MESSAGES_URL))

        assert isinstance(translate_anthropic_error(error), TransientProviderError)


# =============================================================================
# Provider Tests
# =============================================================================


class TestClaudeProvider:
    """Tests for ClaudeProvider.invoke_tool."""

    def test_missing_key_raises_configuration_error(self, monkeypatch):
        monkeypatch.setattr(settings.llm.claude, "api_key", SecretStr(""))

        with pytest.raises(ConfigurationError):
            ClaudeProvider()

    @pytest.mark.asyncio
    async def test_extracts_matching_tool_input(self, provider, tool):
        response = message(
            SimpleNamespace(type="text", text="Let me check."),
            SimpleNamespace(type="tool_use", name="evaluate_evidence", input={"status": "met"}),
        )

        with patch.object(
            provider._client.messages, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = response
            call = await provider.invoke_tool("prompt", tool=tool)

        assert call.input == {"status": "met"}
        assert call.provider == "claude"
        assert call.usage.total_tokens == 1200
        assert call.usage.total_cost == pytest.approx(0.006)

        kwargs = mock_create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": "evaluate_evidence"}
        assert kwargs["tools"][0]["name"] == "evaluate_evidence"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_no_tool_block_yields_none(self, provider, tool):
        response = message(SimpleNamespace(type="text", text="I refuse."))

        with patch.object(
            provider._client.messages, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = response
            call = await provider.invoke_tool("prompt", tool=tool)

        assert call.input is None

    @pytest.mark.asyncio
    async def test_retries_rate_limit_then_succeeds(self, provider, tool, no_sleep):
        rate_limited = anthropic.RateLimitError(
            "rate limited",
            response=api_response(429, {"retry-after": "1"}),
            body=None,
        )
        response = message(
            SimpleNamespace(type="tool_use", name="evaluate_evidence", input={"status": "partial"}),
        )

        with patch.object(
            provider._client.messages, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = [rate_limited, response]
            call = await provider.invoke_tool("prompt", tool=tool)

        assert call.input == {"status": "partial"}
        assert mock_create.await_count == 2
        assert no_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_terminal_error_propagates_without_retry(self, provider, tool):
        error = anthropic.AuthenticationError("bad key", response=api_response(401), body=None)

        with patch.object(
            provider._client.messages, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = error
            with pytest.raises(TerminalProviderError):
                await provider.invoke_tool("prompt", tool=tool)

        assert mock_create.await_count == 1


class TestProviderRegistry:
    """Tests for the process-wide provider accessors."""

    def test_default_provider_is_cached_claude(self):
        reset_llm_provider()
        try:
            provider = get_llm_provider()

            assert isinstance(provider, ClaudeProvider)
            assert get_llm_provider() is provider
        finally:
            reset_llm_provider()

    def test_set_provider_overrides_default(self, provider):
        set_llm_provider(provider)
        try:
            assert get_llm_provider() is provider
        finally:
            reset_llm_provider()
