"""
Finding Generator Tests
=======================

Tests for finding construction and idempotent creation.

Version: 0.1.0
"""

import pytest

from services.safeguard_assessment.models import (
    FindingSeverity,
    FindingStatus,
    Safeguard,
    SafeguardStatus,
)
from services.safeguard_assessment.services.findings import FindingGenerator, build_finding
from services.safeguard_assessment.storage import InMemoryStorage


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def safeguard() -> Safeguard:
    return Safeguard(
        assessment_id="assessment-1",
        cis_id="1.1",
        name="Establish and Maintain Detailed Enterprise Asset Inventory",
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


# =============================================================================
# Construction Tests
# =============================================================================


class TestBuildFinding:
    """Tests for build_finding."""

    def test_gap_is_high_severity(self, safeguard):
        finding = build_finding(safeguard, SafeguardStatus.GAP, "acme")

        assert finding.severity == FindingSeverity.HIGH
        assert finding.title == (
            "Gap: 1.1 Establish and Maintain Detailed Enterprise Asset Inventory"
        )
        assert finding.status == FindingStatus.OPEN
        assert finding.company_id == "acme"
        assert finding.cis_id == "1.1"
        assert "1.1" in finding.impact

    def test_partial_is_medium_severity(self, safeguard):
        finding = build_finding(safeguard, SafeguardStatus.PARTIAL, "acme")

        assert finding.severity == FindingSeverity.MEDIUM
        assert finding.title.startswith("Partial: 1.1 ")
        assert finding.status == FindingStatus.OPEN

    def test_covered_has_no_finding(self, safeguard):
        assert build_finding(safeguard, SafeguardStatus.COVERED, "acme") is None


# =============================================================================
# Generator Tests
# =============================================================================


class TestFindingGenerator:
    """Tests for FindingGenerator.generate."""

    @pytest.mark.asyncio
    async def test_creates_finding(self, storage, safeguard):
        generator = FindingGenerator(storage)

        created = await generator.generate(safeguard, SafeguardStatus.GAP, "acme")

        assert created is not None
        assert created.id
        assert list(storage.findings.values()) == [created]

    @pytest.mark.asyncio
    async def test_skips_existing_catalog_id(self, storage, safeguard):
        generator = FindingGenerator(storage)

        await generator.generate(safeguard, SafeguardStatus.GAP, "acme")
        second = await generator.generate(safeguard, SafeguardStatus.PARTIAL, "acme")

        assert second is None
        assert len(storage.findings) == 1

    @pytest.mark.asyncio
    async def test_other_assessment_not_deduplicated(self, storage, safeguard):
        generator = FindingGenerator(storage)
        other = safeguard.model_copy(update={"assessment_id": "assessment-2"})

        await generator.generate(safeguard, SafeguardStatus.GAP, "acme")
        await generator.generate(other, SafeguardStatus.GAP, "acme")

        assert len(storage.findings) == 2

    @pytest.mark.asyncio
    async def test_covered_creates_nothing(self, storage, safeguard):
        generator = FindingGenerator(storage)

        assert await generator.generate(safeguard, SafeguardStatus.COVERED, "acme") is None
        assert storage.findings == {}
