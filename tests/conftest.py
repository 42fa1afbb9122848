"""
Test Configuration
==================

Pytest fixtures for safeguard assessment tests.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment before settings are loaded
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("RAGIE_API_KEY", "test-ragie-key")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def no_sleep():
    """Recorder that replaces asyncio.sleep in retry policies."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep


@pytest_asyncio.fixture
async def safeguard_assessment_client() -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the Safeguard Assessment Service."""
    from services.safeguard_assessment.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
