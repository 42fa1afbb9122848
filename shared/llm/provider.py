"""
LLM Provider Base
=================

Abstract base class and common models for LLM providers.

Providers are used for structured output only: the model is forced to call
a single tool whose JSON schema describes the expected decision, and the
tool input is returned to the caller for local validation.

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from shared.logging import get_logger

logger = get_logger(__name__)


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    # Cost tracking (in USD)
    total_cost: float = 0.0


class ToolDefinition(BaseModel):
    """A tool the model is forced to call."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API calls."""
        return self.model_dump()


class LLMToolCall(BaseModel):
    """Result of a forced tool invocation."""

    tool_name: str = Field(..., description="Tool that was requested")
    input: dict[str, Any] | None = Field(
        default=None,
        description="Tool input produced by the model, None if the model did not call the tool",
    )
    model: str = Field(..., description="Model used for generation")
    provider: str = Field(..., description="Provider name")
    usage: LLMUsage = Field(default_factory=LLMUsage)
    stop_reason: str | None = None
    latency_ms: float = 0.0


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implements the Strategy pattern for swappable LLM backends.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier."""
        ...

    @abstractmethod
    async def invoke_tool(
        self,
        prompt: str,
        tool: ToolDefinition,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMToolCall:
        """
        Ask the model to answer by calling `tool`.

        Args:
            prompt: User prompt
            tool: Tool the model must call
            system_prompt: Optional system prompt
            max_tokens: Maximum tokens to generate

        Returns:
            LLMToolCall whose `input` is None when no matching tool call
            was found in the response

        Raises:
            TransientProviderError: Retries exhausted on 429/5xx/timeout
            TerminalProviderError: Non-retryable provider failure
        """
        ...

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """
        Check provider health.

        Returns:
            dict with status and provider info
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""
        return None


# Global provider instance
_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """
    Get the configured LLM provider instance.

    Creates and caches a ClaudeProvider on first call.

    Returns:
        LLMProvider instance

    Raises:
        ConfigurationError: If the Anthropic API key is not set
    """
    global _provider

    if _provider is None:
        from shared.llm.claude import ClaudeProvider

        _provider = ClaudeProvider()

        logger.info(
            "llm_provider_initialized",
            provider=_provider.name,
            model=_provider.model,
        )

    return _provider


def set_llm_provider(provider: LLMProvider) -> None:
    """
    Set a custom LLM provider.

    Useful for testing or custom implementations.

    Args:
        provider: LLMProvider instance to use
    """
    global _provider
    _provider = provider
    logger.info(
        "llm_provider_set",
        provider=provider.name,
        model=provider.model,
    )


def reset_llm_provider() -> None:
    """Reset the provider to be re-initialized on next access."""
    global _provider
    _provider = None
