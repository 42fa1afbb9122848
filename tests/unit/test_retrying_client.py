"""
Retrying Client Tests
=====================

Tests for the shared retry policy and HTTP client.

Version: 0.1.0
"""

from datetime import UTC, datetime

import httpx
import pytest

from shared.http import (
    RetryingClient,
    RetryPolicy,
    TerminalProviderError,
    TransientProviderError,
    is_retryable_status,
    parse_retry_after,
)
from shared.http.retrying import truncate


# =============================================================================
# Fixtures
# =============================================================================


def scripted_transport(responses: list) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """Transport returning (or raising) the scripted items in order."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = responses[min(len(seen), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler), seen


@pytest.fixture
def policy(no_sleep) -> RetryPolicy:
    """Three attempts, 750 ms base, sleeps recorded instead of awaited."""
    return RetryPolicy(max_attempts=3, backoff_base=0.75, name="test", sleep=no_sleep)


# =============================================================================
# Helper Tests
# =============================================================================


class TestHelpers:
    """Tests for status classification and header parsing."""

    @pytest.mark.parametrize("code", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, code):
        assert is_retryable_status(code)

    @pytest.mark.parametrize("code", [400, 401, 403, 404, 422])
    def test_terminal_statuses(self, code):
        assert not is_retryable_status(code)

    def test_retry_after_seconds(self):
        assert parse_retry_after("7") == 7.0

    def test_retry_after_http_date(self):
        now = datetime(2026, 10, 21, 7, 28, 0, tzinfo=UTC)
        assert parse_retry_after("Wed, 21 Oct 2026 07:28:05 GMT", now=now) == 5.0

    def test_retry_after_in_the_past_is_zero(self):
        now = datetime(2026, 10, 21, 8, 0, 0, tzinfo=UTC)
        assert parse_retry_after("Wed, 21 Oct 2026 07:28:05 GMT", now=now) == 0.0

    @pytest.mark.parametrize("value", [None, "", "soon", "-1"])
    def test_retry_after_unusable(self, value):
        assert parse_retry_after(value) is None

    def test_truncate_long_body(self):
        body = "x" * 700
        result = truncate(body)
        assert len(result) == 601
        assert result.endswith("…")

    def test_truncate_short_body_unchanged(self):
        assert truncate("short") == "short"


# =============================================================================
# Retry Policy Tests
# =============================================================================


class TestRetryPolicy:
    """Tests for the bounded retry loop."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self, policy, no_sleep):
        async def operation():
            return "ok"

        assert await policy.call(operation) == "ok"
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_exponential_backoff_then_success(self, policy, no_sleep):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise TransientProviderError("busy", status_code=503)
            return "ok"

        assert await policy.call(operation) == "ok"
        assert len(calls) == 3
        assert no_sleep.delays == [0.75, 1.5]

    @pytest.mark.asyncio
    async def test_retry_after_overrides_backoff(self, policy, no_sleep):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise TransientProviderError("slow down", status_code=429, retry_after=4.0)
            return "ok"

        await policy.call(operation)
        assert no_sleep.delays == [4.0]

    @pytest.mark.asyncio
    async def test_wait_is_capped(self, no_sleep):
        policy = RetryPolicy(max_attempts=2, backoff_base=1.0, max_backoff=2.0, sleep=no_sleep)
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise TransientProviderError("slow down", status_code=429, retry_after=120.0)
            return "ok"

        await policy.call(operation)
        assert no_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_transient(self, policy):
        calls = []

        async def operation():
            calls.append(1)
            raise TransientProviderError("down", status_code=500)

        with pytest.raises(TransientProviderError):
            await policy.call(operation)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_terminal_is_not_retried(self, policy, no_sleep):
        calls = []

        async def operation():
            calls.append(1)
            raise TerminalProviderError("bad request", status_code=400)

        with pytest.raises(TerminalProviderError):
            await policy.call(operation)
        assert len(calls) == 1
        assert no_sleep.delays == []


# =============================================================================
# HTTP Client Tests
# =============================================================================


class TestRetryingClient:
    """Tests for the httpx-backed client."""

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, policy, no_sleep):
        transport, seen = scripted_transport([
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json={"ok": True}),
        ])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        data = await client.request_json("POST", "/retrievals", json={"query": "q"})

        assert data == {"ok": True}
        assert len(seen) == 2
        assert no_sleep.delays == [0.75]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_honors_retry_after_header(self, policy, no_sleep):
        transport, _ = scripted_transport([
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json={}),
        ])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        await client.request_json("GET", "/x")

        assert no_sleep.delays == [3.0]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, policy):
        request = httpx.Request("GET", "https://api.test/x")
        transport, seen = scripted_transport([httpx.ReadTimeout("timed out", request=request)])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        with pytest.raises(TransientProviderError):
            await client.request("GET", "/x")
        assert len(seen) == 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_client_error_is_terminal(self, policy):
        transport, seen = scripted_transport([httpx.Response(401, text="unauthorized")])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        with pytest.raises(TerminalProviderError) as exc_info:
            await client.request("GET", "/x")

        assert exc_info.value.status_code == 401
        assert exc_info.value.response_body == "unauthorized"
        assert len(seen) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_exhaustion_keeps_last_status(self, policy):
        transport, seen = scripted_transport([httpx.Response(503, text="x" * 1000)])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        with pytest.raises(TransientProviderError) as exc_info:
            await client.request("GET", "/x")

        assert exc_info.value.status_code == 503
        assert len(exc_info.value.response_body) == 601
        assert len(seen) == 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_malformed_json_is_terminal(self, policy):
        transport, seen = scripted_transport([httpx.Response(200, text="<html>")])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        with pytest.raises(TerminalProviderError):
            await client.request_json("GET", "/x")
        assert len(seen) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_returns_awaited_response(self, policy):
        transport, _ = scripted_transport([httpx.Response(200, json={"ok": True})])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        response = await client.request("GET", "/x")

        assert isinstance(response, httpx.Response)
        assert response.status_code == 200
        await client.aclose()

    @pytest.mark.asyncio
    async def test_protocol_error_is_transient(self, policy, no_sleep):
        transport, seen = scripted_transport([
            httpx.RemoteProtocolError("Server disconnected"),
            httpx.Response(200, json={"ok": True}),
        ])
        client = RetryingClient("https://api.test", policy=policy, transport=transport)

        data = await client.request_json("GET", "/x")

        assert data == {"ok": True}
        assert len(seen) == 2
        assert no_sleep.delays == [0.75]
        await client.aclose()
