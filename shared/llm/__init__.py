"""
LLM Provider Module
===================

Abstraction layer for LLM providers used for structured (tool-use) output.

Usage:
    from shared.llm import ToolDefinition, get_llm_provider

    provider = get_llm_provider()

    call = await provider.invoke_tool(
        prompt="Evaluate this evidence...",
        tool=ToolDefinition(name="evaluate_evidence", description="...", input_schema={...}),
    )
    print(call.input)
"""

from shared.llm.provider import (
    LLMProvider,
    LLMToolCall,
    LLMUsage,
    ToolDefinition,
    get_llm_provider,
    reset_llm_provider,
    set_llm_provider,
)
from shared.llm.claude import ClaudeProvider

__all__ = [
    # Base
    "LLMProvider",
    "LLMToolCall",
    "LLMUsage",
    "ToolDefinition",
    "get_llm_provider",
    "set_llm_provider",
    "reset_llm_provider",
    # Providers
    "ClaudeProvider",
]
