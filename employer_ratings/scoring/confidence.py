"""
Confidence Estimator

Grades how much data backs a component (count and recency jointly) and
blends per-component grades into one overall grade using the same weights
the Weighting Engine used for that calculation.
"""

from decimal import Decimal

from employer_ratings.scoring.policy import (
    CONFIDENCE_CUTOFFS,
    CONFIDENCE_VALUES,
    ConfidenceTier,
)
from employer_ratings.scoring.types import Confidence


def grade(count: int, latest_age_days: int | None, tiers: tuple[ConfidenceTier, ...]) -> Confidence:
    """First tier whose count and recency thresholds both hold; very_low otherwise."""
    if count <= 0 or latest_age_days is None:
        return Confidence.VERY_LOW
    for tier in tiers:
        if count >= tier.min_count and latest_age_days <= tier.max_age_days:
            return tier.level
    return Confidence.VERY_LOW


def from_value(value: Decimal) -> Confidence:
    for cutoff, level in CONFIDENCE_CUTOFFS:
        if value >= cutoff:
            return level
    return Confidence.VERY_LOW


def blend(pairs: list[tuple[Confidence, Decimal]]) -> tuple[Confidence, Decimal]:
    """Weighted blend of (grade, weight) pairs.

    Returns the re-mapped grade and the numeric blend. Zero total weight
    means nothing backs the result: very_low.
    """
    total = sum((w for _, w in pairs), Decimal("0"))
    if total <= 0:
        return Confidence.VERY_LOW, CONFIDENCE_VALUES[Confidence.VERY_LOW]
    value = sum((CONFIDENCE_VALUES[c] * w for c, w in pairs), Decimal("0")) / total
    return from_value(value), value
