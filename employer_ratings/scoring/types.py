"""
Shared value types for the rating pipeline.

Assessment snapshots are plain frozen dataclasses so every scoring stage is
a pure function of its inputs; nothing in ``employer_ratings.scoring``
touches the database.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class Rating(str, Enum):
    RED = "red"          # terrible
    AMBER = "amber"      # poor
    YELLOW = "yellow"    # fair
    GREEN = "green"      # good
    UNKNOWN = "unknown"


# Canonical ordinal direction: higher is better. 4 = green.
RATING_RANK: dict[Rating, int] = {
    Rating.RED: 1,
    Rating.AMBER: 2,
    Rating.YELLOW: 3,
    Rating.GREEN: 4,
}


class Scale(str, Enum):
    CONTINUOUS = "continuous"   # 0 - 100
    FOUR_POINT = "four_point"   # 1 - 4


SCALE_BOUNDS: dict[Scale, tuple[Decimal, Decimal]] = {
    Scale.CONTINUOUS: (Decimal("0"), Decimal("100")),
    Scale.FOUR_POINT: (Decimal("1"), Decimal("4")),
}


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very_low"


class CalculationMethod(str, Enum):
    WEIGHTED_AVERAGE = "weighted_average"
    WEIGHTED_SUM = "weighted_sum"
    MINIMUM_OF_CRITICAL = "minimum_of_critical"
    HYBRID = "hybrid"


class RoleCategory(str, Enum):
    TRADE = "trade"
    BUILDER = "builder"
    BOTH = "both"
    UNKNOWN = "unknown"


class CategoricalKind(str, Enum):
    RELATIONSHIP_RESPECT = "relationship_respect"
    SAFETY = "safety"
    SUBCONTRACTOR_USE = "subcontractor_use"
    ROLE_SPECIFIC = "role_specific"


class ScaleConvention(str, Enum):
    HIGH_IS_BEST = "high_is_best"
    LOW_IS_BEST = "low_is_best"   # legacy records where 1 meant green


# Component names
PROJECT = "project"
EXPERT_JUDGMENT = "expert_judgment"
AGREEMENT = "agreement"

COMPLIANCE_ASSESSMENT_TYPES = (
    "cbus_status",
    "incolink_status",
    "site_visit_report",
    "delegate_report",
    "organiser_verbal_report",
    "organiser_written_report",
    "eca_status",
    "safety_incidents",
    "industrial_disputes",
    "payment_issues",
)


# ── Assessment snapshots ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class OrganizationSnapshot:
    id: int
    name: str
    role_category: RoleCategory = RoleCategory.UNKNOWN


@dataclass(frozen=True)
class StructuredAssessment:
    assessment_type: str
    score: Decimal | None
    assessment_date: date
    severity_level: int | None = None
    confidence_level: str = "medium"
    project_id: int | None = None


@dataclass(frozen=True)
class ExpertAssessmentInput:
    overall_score: Decimal
    assessment_date: date
    confidence_level: str = "medium"
    overall_score_4point: Decimal | None = None
    assessor_id: str | None = None
    accuracy_percentage: Decimal | None = None
    reputation_score: Decimal | None = None


@dataclass(frozen=True)
class AgreementInput:
    certified_date: date | None = None
    lodged_date: date | None = None
    signed_date: date | None = None
    vote_date: date | None = None


@dataclass(frozen=True)
class CategoricalInput:
    kind: CategoricalKind
    assessment_date: date
    criteria: dict = field(default_factory=dict)
    overall_value: Decimal | None = None
    scale_convention: ScaleConvention = ScaleConvention.HIGH_IS_BEST
    project_id: int | None = None


@dataclass(frozen=True)
class IntegrityFlag:
    finding_type: str
    detected_date: date
    cleared_date: date | None = None

    def is_active(self, as_of: date) -> bool:
        if self.detected_date > as_of:
            return False
        return self.cleared_date is None or self.cleared_date > as_of


@dataclass
class AssessmentBundle:
    """Everything the engine reads for one organization as of one date."""
    organization: OrganizationSnapshot
    structured: list[StructuredAssessment] = field(default_factory=list)
    expert: list[ExpertAssessmentInput] = field(default_factory=list)
    agreements: list[AgreementInput] = field(default_factory=list)
    categorical: list[CategoricalInput] = field(default_factory=list)
    integrity_flags: list[IntegrityFlag] = field(default_factory=list)


# ── Stage outputs ────────────────────────────────────────────────────────────

@dataclass
class ComponentScore:
    """One source's normalized contribution, or an explicit no-data marker.

    ``score`` is None when the source has nothing in window; downstream
    stages exclude the component rather than treating it as zero.
    """
    name: str
    score: Decimal | None = None
    count: int = 0
    latest_age_days: int | None = None
    confidence: Confidence = Confidence.VERY_LOW
    rating: Rating = Rating.UNKNOWN
    applicable: bool = True
    breakdown: dict = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return self.applicable and self.score is not None

    def to_dict(self) -> dict:
        return {
            "score": float(self.score) if self.score is not None else None,
            "status": self.status,
            "count": self.count,
            "latest_age_days": self.latest_age_days,
            "confidence": self.confidence.value,
            "rating": self.rating.value,
            "breakdown": self.breakdown,
        }

    @property
    def status(self) -> str:
        if not self.applicable:
            return "not_applicable"
        return "ok" if self.score is not None else "no_data"
