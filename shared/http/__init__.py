"""
HTTP Module
===========

Retrying client for outbound provider calls.

Usage:
    from shared.http import RetryingClient, TransientProviderError

    client = RetryingClient("https://api.example.com")
    data = await client.request_json("GET", "/status")
"""

from shared.http.retrying import (
    ProviderError,
    RetryingClient,
    RetryPolicy,
    TerminalProviderError,
    TransientProviderError,
    is_retryable_status,
    parse_retry_after,
)


__all__ = [
    "ProviderError",
    "RetryingClient",
    "RetryPolicy",
    "TerminalProviderError",
    "TransientProviderError",
    "is_retryable_status",
    "parse_retry_after",
]
