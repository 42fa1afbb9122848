"""
Safeguard Scoring Service
=========================

Deterministic scoring for safeguards and assessment rollups. Pure
functions, no I/O.

Score Formula: (met + 0.5 × partial) / total_criteria
Status Thresholds:
- ≥ 0.80 = covered
- ≥ 0.40 = partial
- < 0.40 = gap

`not_met` and `insufficient` both weigh 0. This treats "no evidence found"
the same as "evidence contradicts the criterion"; it is a modeling choice
kept for score stability across runs.

Arithmetic is exact (Fraction), so boundaries such as 4/5 land on the
covered threshold and scores round half up.

Version: 0.1.0
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from fractions import Fraction

from services.safeguard_assessment.models import CriterionStatus, SafeguardStatus


COVERED_THRESHOLD = Fraction(4, 5)
PARTIAL_THRESHOLD = Fraction(2, 5)

THRESHOLDS = {
    "covered": float(COVERED_THRESHOLD),
    "partial": float(PARTIAL_THRESHOLD),
}

CRITERION_WEIGHTS: dict[CriterionStatus, Fraction] = {
    CriterionStatus.MET: Fraction(1),
    CriterionStatus.PARTIAL: Fraction(1, 2),
    CriterionStatus.NOT_MET: Fraction(0),
    CriterionStatus.INSUFFICIENT: Fraction(0),
}


@dataclass
class ScoreBreakdown:
    """Criteria counted by status."""

    met: int = 0
    partial: int = 0
    not_met: int = 0
    insufficient: int = 0
    total: int = 0


@dataclass
class SafeguardScore:
    """Score (0-100), status and breakdown for one safeguard."""

    score: int
    status: SafeguardStatus
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)


@dataclass
class AssessmentStats:
    """Rollup statistics for an assessment."""

    maturity_score: int = 0
    controls_covered: int = 0
    controls_partial: int = 0
    controls_gap: int = 0
    total_controls: int = 0

    def to_update(self) -> dict[str, int]:
        """Fields to persist on the assessment."""
        return {
            "maturity_score": self.maturity_score,
            "controls_covered": self.controls_covered,
            "controls_partial": self.controls_partial,
            "controls_gap": self.controls_gap,
            "total_controls": self.total_controls,
        }


def round_half_up(value: Fraction | float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def get_status_from_score(raw_score: Fraction | float) -> SafeguardStatus:
    """Map a raw score in [0, 1] to a safeguard status."""
    raw = Fraction(raw_score)
    if raw >= COVERED_THRESHOLD:
        return SafeguardStatus.COVERED
    if raw >= PARTIAL_THRESHOLD:
        return SafeguardStatus.PARTIAL
    return SafeguardStatus.GAP


def calculate_safeguard_score(
    statuses: Iterable[CriterionStatus | str],
) -> SafeguardScore:
    """
    Score a safeguard from its criteria statuses.

    Args:
        statuses: Status of each criterion

    Returns:
        SafeguardScore; an empty list scores 0 / gap
    """
    breakdown = ScoreBreakdown()
    earned = Fraction(0)

    for value in statuses:
        status = CriterionStatus(value)
        earned += CRITERION_WEIGHTS[status]
        breakdown.total += 1
        if status == CriterionStatus.MET:
            breakdown.met += 1
        elif status == CriterionStatus.PARTIAL:
            breakdown.partial += 1
        elif status == CriterionStatus.NOT_MET:
            breakdown.not_met += 1
        else:
            breakdown.insufficient += 1

    if breakdown.total == 0:
        return SafeguardScore(score=0, status=SafeguardStatus.GAP, breakdown=breakdown)

    raw = earned / breakdown.total
    return SafeguardScore(
        score=round_half_up(raw * 100),
        status=get_status_from_score(raw),
        breakdown=breakdown,
    )


def calculate_assessment_stats(
    safeguards: Iterable[tuple[int, SafeguardStatus | str]],
) -> AssessmentStats:
    """
    Roll safeguard scores up to assessment statistics.

    Args:
        safeguards: (score, status) pairs

    Returns:
        AssessmentStats; maturity is the rounded mean score, all zeros for
        an empty input
    """
    stats = AssessmentStats()
    total_score = 0

    for score, value in safeguards:
        status = SafeguardStatus(value)
        total_score += score
        stats.total_controls += 1
        if status == SafeguardStatus.COVERED:
            stats.controls_covered += 1
        elif status == SafeguardStatus.PARTIAL:
            stats.controls_partial += 1
        else:
            stats.controls_gap += 1

    if stats.total_controls:
        stats.maturity_score = round_half_up(Fraction(total_score, stats.total_controls))

    return stats
