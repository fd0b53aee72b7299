"""
Discrepancy Detector & Reconciler

Compares direct observation (project component) with expert judgment.
The level comes from the absolute gap, banded by configured cutoffs; when
the two sides land in different rating categories the level is escalated
one step. Major and critical discrepancies always go to a human.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from employer_ratings.scoring.policy import ThresholdTable
from employer_ratings.scoring.types import ComponentScore, Confidence, Rating

_CONFIDENCE_ORDER = {
    Confidence.VERY_LOW: 0,
    Confidence.LOW: 1,
    Confidence.MEDIUM: 2,
    Confidence.HIGH: 3,
}


class DiscrepancyLevel(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


LEVELS = [
    DiscrepancyLevel.NONE,
    DiscrepancyLevel.MINOR,
    DiscrepancyLevel.MODERATE,
    DiscrepancyLevel.MAJOR,
    DiscrepancyLevel.CRITICAL,
]

REVIEW_LEVELS = {DiscrepancyLevel.MAJOR, DiscrepancyLevel.CRITICAL}


class Strategy(str, Enum):
    ACCEPT_CALCULATED = "accept_calculated"
    PREFER_PROJECT = "prefer_project"
    PREFER_EXPERT_JUDGMENT = "prefer_expert_judgment"
    MANUAL_REVIEW = "manual_review"
    SINGLE_SOURCE = "single_source"


class Resolution(str, Enum):
    NOT_REQUIRED = "not_required"
    AUTO_RESOLVED = "auto_resolved"
    DEFERRED_TO_HUMAN = "deferred_to_human"


@dataclass
class DiscrepancyResult:
    level: DiscrepancyLevel
    requires_review: bool
    strategy: Strategy
    resolution: Resolution
    comparable: bool = True
    left: str | None = None
    right: str | None = None
    left_score: Decimal | None = None
    right_score: Decimal | None = None
    left_rating: Rating = Rating.UNKNOWN
    right_rating: Rating = Rating.UNKNOWN
    score_difference: Decimal | None = None
    gap_level: DiscrepancyLevel = DiscrepancyLevel.NONE
    category_mismatch: bool = False

    @property
    def detected(self) -> bool:
        return self.level != DiscrepancyLevel.NONE

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "gap_level": self.gap_level.value,
            "requires_review": self.requires_review,
            "strategy": self.strategy.value,
            "resolution": self.resolution.value,
            "comparable": self.comparable,
            "left": self.left,
            "right": self.right,
            "left_score": float(self.left_score) if self.left_score is not None else None,
            "right_score": float(self.right_score) if self.right_score is not None else None,
            "left_rating": self.left_rating.value,
            "right_rating": self.right_rating.value,
            "score_difference": float(self.score_difference) if self.score_difference is not None else None,
            "category_mismatch": self.category_mismatch,
        }


def classify_gap(gap: Decimal, cutoffs: tuple[Decimal, ...]) -> DiscrepancyLevel:
    """Highest level whose cutoff the gap strictly exceeds."""
    level = DiscrepancyLevel.NONE
    for i, cutoff in enumerate(cutoffs, start=1):
        if gap > cutoff:
            level = LEVELS[i]
    return level


def escalate(level: DiscrepancyLevel, steps: int = 1) -> DiscrepancyLevel:
    return LEVELS[min(LEVELS.index(level) + steps, len(LEVELS) - 1)]


def detect(
    left: ComponentScore,
    right: ComponentScore,
    thresholds: ThresholdTable,
    cutoffs: tuple[Decimal, ...],
) -> DiscrepancyResult:
    """Compare two independently derived component scores.

    ``left`` is treated as direct observation and ``right`` as expert
    judgment when choosing which side an automatic reconciliation prefers.
    """
    if not (left.has_data and right.has_data):
        return DiscrepancyResult(
            level=DiscrepancyLevel.NONE,
            requires_review=False,
            strategy=Strategy.SINGLE_SOURCE,
            resolution=Resolution.NOT_REQUIRED,
            comparable=False,
            left=left.name,
            right=right.name,
            left_score=left.score,
            right_score=right.score,
        )

    left_rating = thresholds.classify(left.score)
    right_rating = thresholds.classify(right.score)
    gap = abs(left.score - right.score)
    gap_level = classify_gap(gap, cutoffs)
    mismatch = left_rating != right_rating
    level = escalate(gap_level) if mismatch else gap_level

    if level == DiscrepancyLevel.NONE:
        strategy, resolution = Strategy.ACCEPT_CALCULATED, Resolution.NOT_REQUIRED
    elif level in REVIEW_LEVELS:
        strategy, resolution = Strategy.MANUAL_REVIEW, Resolution.DEFERRED_TO_HUMAN
    elif _CONFIDENCE_ORDER[right.confidence] > _CONFIDENCE_ORDER[left.confidence]:
        strategy, resolution = Strategy.PREFER_EXPERT_JUDGMENT, Resolution.AUTO_RESOLVED
    else:
        strategy, resolution = Strategy.PREFER_PROJECT, Resolution.AUTO_RESOLVED

    return DiscrepancyResult(
        level=level,
        requires_review=level in REVIEW_LEVELS,
        strategy=strategy,
        resolution=resolution,
        left=left.name,
        right=right.name,
        left_score=left.score,
        right_score=right.score,
        left_rating=left_rating,
        right_rating=right_rating,
        score_difference=gap,
        gap_level=gap_level,
        category_mismatch=mismatch,
    )
