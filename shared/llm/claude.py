"""
Claude Provider
===============

Anthropic Claude API implementation (tool use for structured output).

Version: 0.1.0
"""

import time
from typing import Any

import anthropic

from shared.config import ConfigurationError, settings
from shared.http import (
    ProviderError,
    RetryPolicy,
    TerminalProviderError,
    TransientProviderError,
    is_retryable_status,
    parse_retry_after,
)
from shared.http.retrying import truncate
from shared.llm.provider import LLMProvider, LLMToolCall, LLMUsage, ToolDefinition
from shared.logging import get_logger

logger = get_logger(__name__)

# Pricing per 1M tokens
CLAUDE_PRICING = {
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
}


def translate_anthropic_error(error: anthropic.APIError) -> ProviderError:
    """Map an Anthropic SDK error onto the transient/terminal split."""
    if isinstance(error, anthropic.APIConnectionError):
        # Also covers APITimeoutError
        return TransientProviderError(f"Anthropic request failed: {error}")

    if isinstance(error, anthropic.APIStatusError):
        status_code = error.status_code
        message = f"Anthropic API error: {status_code} {error.message}"
        body = truncate(str(error.body)) if error.body is not None else None
        if is_retryable_status(status_code):
            return TransientProviderError(
                message,
                status_code=status_code,
                response_body=body,
                retry_after=parse_retry_after(error.response.headers.get("retry-after")),
            )
        return TerminalProviderError(message, status_code=status_code, response_body=body)

    return TerminalProviderError(f"Anthropic response could not be processed: {error}")


class ClaudeProvider(LLMProvider):
    """
    Anthropic Claude provider implementation.

    The SDK's own retries are disabled; every call goes through the shared
    RetryPolicy so 429/5xx handling matches the other provider clients.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize Claude provider.

        Args:
            api_key: Anthropic API key (default from settings)
            model: Model to use (default from settings)
            policy: Retry policy (default from settings)

        Raises:
            ConfigurationError: If no API key is available
        """
        self._api_key = api_key or settings.llm.claude.api_key.get_secret_value()
        self._model = model or settings.llm.claude.model
        self._max_tokens = settings.llm.claude.max_tokens
        self._policy = policy or RetryPolicy.from_settings(settings.retry, name="anthropic")

        if not self._api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY environment variable is not set")

        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key,
            max_retries=0,
            timeout=settings.llm.timeout_seconds,
        )

        logger.debug("claude_provider_initialized", model=self._model)

    @property
    def name(self) -> str:
        return "claude"

    @property
    def model(self) -> str:
        return self._model

    async def invoke_tool(
        self,
        prompt: str,
        tool: ToolDefinition,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMToolCall:
        """
        Force Claude to answer through `tool` and return the tool input.

        Args:
            prompt: User prompt
            tool: Tool definition (name, description, JSON schema)
            system_prompt: Optional system prompt
            max_tokens: Max tokens to generate (default from settings)

        Returns:
            LLMToolCall with the tool input, or input=None when the
            response holds no matching tool_use block
        """
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": settings.llm.temperature,
            "tools": [tool.to_dict()],
            "tool_choice": {"type": "tool", "name": tool.name},
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        async def create() -> Any:
            try:
                return await self._client.messages.create(**kwargs)
            except anthropic.APIError as e:
                raise translate_anthropic_error(e) from e

        start_time = time.perf_counter()
        response = await self._policy.call(create)
        latency_ms = (time.perf_counter() - start_time) * 1000

        tool_input: dict[str, Any] | None = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and getattr(block, "name", None) == tool.name:
                if isinstance(block.input, dict):
                    tool_input = block.input
                break

        usage = self._usage(response)

        logger.debug(
            "claude_tool_call",
            model=self._model,
            tool=tool.name,
            found=tool_input is not None,
            tokens=usage.total_tokens,
            cost=usage.total_cost,
            latency_ms=round(latency_ms, 2),
        )

        return LLMToolCall(
            tool_name=tool.name,
            input=tool_input,
            model=getattr(response, "model", self._model),
            provider=self.name,
            usage=usage,
            stop_reason=getattr(response, "stop_reason", None),
            latency_ms=latency_ms,
        )

    def _usage(self, response: Any) -> LLMUsage:
        usage = getattr(response, "usage", None)
        if usage is None:
            return LLMUsage()

        input_tokens = int(getattr(usage, "input_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "output_tokens", 0) or 0)
        pricing = CLAUDE_PRICING.get(self._model, {"input": 3.00, "output": 15.00})

        return LLMUsage(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            total_cost=(input_tokens * pricing["input"] + output_tokens * pricing["output"])
            / 1_000_000,
        )

    async def health_check(self) -> dict[str, Any]:
        """
        Check Claude API health.

        Returns:
            dict with status and model info
        """
        try:
            start = time.perf_counter()

            await self._client.messages.create(
                model=self._model,
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=5,
            )

            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "provider": self.name,
                "model": self._model,
                "latency_ms": round(latency_ms, 2),
            }

        except anthropic.APIError as e:
            logger.error("claude_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "provider": self.name,
                "model": self._model,
                "error": str(e),
            }

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()
