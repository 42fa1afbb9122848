"""
Retrying HTTP Client
====================

Retry primitive shared by every outbound provider call.

Failures are split in two:
- TransientProviderError: HTTP 429, HTTP 5xx, timeouts and network errors.
  Retried with exponential backoff (base * 2^attempt), or after the
  server-supplied Retry-After delay when one is present.
- TerminalProviderError: any other 4xx, or a body that is not valid JSON.
  Raised immediately.

Version: 0.1.0
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from shared.config import RetrySettings
from shared.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

ERROR_BODY_LIMIT = 600


# =============================================================================
# Errors
# =============================================================================


class ProviderError(Exception):
    """Base error for a failed call to an external provider."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TransientProviderError(ProviderError):
    """Retryable failure (429, 5xx, timeout, connection error)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code, response_body)
        self.retry_after = retry_after


class TerminalProviderError(ProviderError):
    """Non-retryable failure (4xx other than 429, malformed response)."""


# =============================================================================
# Helpers
# =============================================================================


def is_retryable_status(status_code: int) -> bool:
    """Check whether an HTTP status should be retried."""
    return status_code == 429 or status_code >= 500


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """
    Parse a Retry-After header into seconds.

    Accepts delta-seconds ("3") or an HTTP date. Returns None when the
    header is absent or unparseable.
    """
    if not value:
        return None

    value = value.strip()
    if value.isdigit():
        return float(value)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None

    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    delta = (retry_at - (now or datetime.now(UTC))).total_seconds()
    return max(delta, 0.0)


def truncate(text: str, limit: int = ERROR_BODY_LIMIT) -> str:
    """Shorten a response body for error messages."""
    return text if len(text) <= limit else text[:limit] + "…"


class wait_retry_after_or_exponential(wait_base):  # noqa: N801 - tenacity naming
    """Wait for the server's Retry-After hint, else base * 2^attempt."""

    def __init__(self, base: float, max_wait: float) -> None:
        self.base = base
        self.max_wait = max_wait

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, TransientProviderError) and exc.retry_after is not None:
            return min(exc.retry_after, self.max_wait)

        # attempt_number is 1-based; the first retry waits `base`
        return min(self.base * 2 ** (retry_state.attempt_number - 1), self.max_wait)


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass
class RetryPolicy:
    """
    Bounded retry loop for provider operations.

    `call` is stateless between invocations, so one policy may be shared
    by concurrent runs.
    """

    max_attempts: int = 3
    backoff_base: float = 0.75
    max_backoff: float = 30.0
    name: str = "provider"
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls, retry_settings: RetrySettings, name: str) -> "RetryPolicy":
        """Build a policy from retry settings."""
        return cls(
            max_attempts=retry_settings.max_attempts,
            backoff_base=retry_settings.backoff_base_seconds,
            max_backoff=retry_settings.max_backoff_seconds,
            name=name,
        )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an operation, retrying on TransientProviderError.

        Args:
            operation: Zero-argument coroutine function (not a lambda
                returning a coroutine; tenacity only awaits coroutine
                functions). It must raise
                TransientProviderError or TerminalProviderError on failure.

        Returns:
            The operation's result

        Raises:
            TransientProviderError: When every attempt failed transiently
            TerminalProviderError: On the first terminal failure
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_retry_after_or_exponential(self.backoff_base, self.max_backoff),
            retry=retry_if_exception_type(TransientProviderError),
            sleep=self.sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(operation)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "provider_retry",
            provider=self.name,
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else None,
            status_code=getattr(exc, "status_code", None),
            error=str(exc),
        )


# =============================================================================
# HTTP Client
# =============================================================================


class RetryingClient:
    """
    httpx client whose requests go through a RetryPolicy.

    Example:
        client = RetryingClient("https://api.ragie.ai", headers={...})
        data = await client.request_json("POST", "/retrievals", json=payload)
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Prefix for relative request URLs
            headers: Default headers sent with every request
            timeout: Per-attempt timeout in seconds
            policy: Retry policy (default: 3 attempts, 750 ms base)
            transport: Optional httpx transport (used by tests)
        """
        self.policy = policy or RetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers or {},
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retries and return the successful response."""

        async def send() -> httpx.Response:
            return await self._send(method, url, **kwargs)

        return await self.policy.call(send)

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request with retries and decode the JSON body."""
        response = await self.request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise TerminalProviderError(
                f"{self.policy.name} returned a malformed response",
                status_code=response.status_code,
                response_body=truncate(response.text),
            ) from e

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientProviderError(f"{self.policy.name} request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientProviderError(f"{self.policy.name} request failed: {e}") from e

        if is_retryable_status(response.status_code):
            raise TransientProviderError(
                f"{self.policy.name} API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                response_body=truncate(response.text),
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )

        if response.is_error:
            raise TerminalProviderError(
                f"{self.policy.name} API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                response_body=truncate(response.text),
            )

        logger.debug(
            "provider_request",
            provider=self.policy.name,
            method=method,
            url=url,
            status=response.status_code,
        )
        return response
