"""
Rating policy: the configuration one calculation runs under.

A ``RatingPolicy`` is an immutable snapshot of the versioned weight sets,
severity tables and threshold tables active on the calculation date, plus
the tier tables for confidence, discrepancy and agreement age. It is built
either from the policy store (production) or from the seed defaults
(``RatingPolicy.default()``).
"""

from dataclasses import dataclass, field
from decimal import Decimal

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.scoring.types import COMPLIANCE_ASSESSMENT_TYPES, Confidence, Rating, Scale, SCALE_BOUNDS
from employer_ratings.seed import reference_data

WEIGHT_MIN = Decimal("0")
WEIGHT_MAX = Decimal("10")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def validate_weights(name: str, weights: dict) -> dict[str, Decimal]:
    """Coerce a weight mapping to Decimals and check every value lies in [0, 10]."""
    if not weights:
        raise ConfigurationError(f"Weight set '{name}' is empty")
    result = {}
    for key, raw in weights.items():
        try:
            value = to_decimal(raw)
        except ArithmeticError as exc:
            raise ConfigurationError(f"Weight '{name}.{key}' is not numeric: {raw!r}") from exc
        if not (WEIGHT_MIN <= value <= WEIGHT_MAX):
            raise ConfigurationError(
                f"Weight '{name}.{key}' = {value} is outside [{WEIGHT_MIN}, {WEIGHT_MAX}]"
            )
        result[key] = value
    return result


def validate_assessment_types(types, context: str) -> None:
    """Every assessment type must belong to the fixed compliance vocabulary."""
    unknown = sorted(set(types) - set(COMPLIANCE_ASSESSMENT_TYPES))
    if unknown:
        raise ConfigurationError(f"{context} names unknown assessment types: {', '.join(unknown)}")


# ── Threshold tables ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Band:
    rating: Rating
    min_score: Decimal
    max_score: Decimal


@dataclass(frozen=True)
class ThresholdTable:
    """Ordered bands partitioning a scale's domain.

    Lower bounds are inclusive, upper bounds exclusive, except the top band
    which also includes the domain maximum.
    """
    scale: Scale
    bands: tuple[Band, ...]
    version: int = 1

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        lo, hi = SCALE_BOUNDS[self.scale]
        if not self.bands:
            raise ConfigurationError(f"Threshold table for {self.scale.value} has no bands")
        ordered = sorted(self.bands, key=lambda b: b.min_score)
        if ordered[0].min_score != lo:
            raise ConfigurationError(
                f"Threshold table for {self.scale.value} starts at {ordered[0].min_score}, expected {lo}"
            )
        if ordered[-1].max_score != hi:
            raise ConfigurationError(
                f"Threshold table for {self.scale.value} ends at {ordered[-1].max_score}, expected {hi}"
            )
        seen = set()
        for i, band in enumerate(ordered):
            if band.min_score >= band.max_score:
                raise ConfigurationError(f"Empty or inverted band for {band.rating.value}")
            if band.rating == Rating.UNKNOWN or band.rating in seen:
                raise ConfigurationError(f"Invalid or duplicate band rating {band.rating.value}")
            seen.add(band.rating)
            if i > 0 and ordered[i - 1].max_score != band.min_score:
                raise ConfigurationError(
                    f"Threshold bands for {self.scale.value} leave a gap or overlap at "
                    f"{ordered[i - 1].max_score} / {band.min_score}"
                )
        object.__setattr__(self, "bands", tuple(ordered))

    def classify(self, score: Decimal) -> Rating:
        """Map a score to its band's rating. Raises for scores outside the domain."""
        last = len(self.bands) - 1
        for i, band in enumerate(self.bands):
            if band.min_score <= score < band.max_score:
                return band.rating
            if i == last and score == band.max_score:
                return band.rating
        raise ConfigurationError(f"No {self.scale.value} threshold band covers score {score}")

    @classmethod
    def from_rows(cls, scale: Scale, rows: list[tuple[str, Decimal, Decimal]], version: int = 1):
        try:
            bands = tuple(Band(Rating(r), to_decimal(lo), to_decimal(hi)) for r, lo, hi in rows)
        except (ValueError, ArithmeticError) as exc:
            raise ConfigurationError(f"Invalid threshold band for {scale.value}: {exc}") from exc
        return cls(scale=scale, bands=bands, version=version)


# ── Confidence tiers ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConfidenceTier:
    level: Confidence
    min_count: int
    max_age_days: int


# Ordered best first; both conditions must hold for a tier.
PROJECT_CONFIDENCE_TIERS = (
    ConfidenceTier(Confidence.HIGH, 5, 30),
    ConfidenceTier(Confidence.MEDIUM, 3, 60),
    ConfidenceTier(Confidence.LOW, 1, 90),
)
EXPERT_CONFIDENCE_TIERS = (
    ConfidenceTier(Confidence.HIGH, 2, 60),
    ConfidenceTier(Confidence.MEDIUM, 1, 90),
    ConfidenceTier(Confidence.LOW, 1, 120),
)
CATEGORICAL_CONFIDENCE_TIERS = (
    ConfidenceTier(Confidence.HIGH, 3, 90),
    ConfidenceTier(Confidence.MEDIUM, 2, 180),
    ConfidenceTier(Confidence.LOW, 1, 270),
)
SPARSE_CATEGORICAL_CONFIDENCE_TIERS = (
    ConfidenceTier(Confidence.HIGH, 2, 180),
    ConfidenceTier(Confidence.MEDIUM, 1, 270),
    ConfidenceTier(Confidence.LOW, 1, 365),
)

CONFIDENCE_VALUES = {
    Confidence.HIGH: Decimal("0.9"),
    Confidence.MEDIUM: Decimal("0.7"),
    Confidence.LOW: Decimal("0.5"),
    Confidence.VERY_LOW: Decimal("0.3"),
}

# Blended value cutoffs, best first
CONFIDENCE_CUTOFFS = (
    (Decimal("0.8"), Confidence.HIGH),
    (Decimal("0.6"), Confidence.MEDIUM),
    (Decimal("0.4"), Confidence.LOW),
)

# Expert judgment weighting
EXPERT_CONFIDENCE_BASE = {
    "high": Decimal("1.0"),
    "medium": Decimal("0.8"),
    "low": Decimal("0.6"),
    "very_low": Decimal("0.4"),
}
EXPERT_DEFAULT_REPUTATION = Decimal("0.7")
EXPERT_MIN_WEIGHT = Decimal("0.1")
# (max age in days, multiplier); anything older gets the fallback
EXPERT_RECENCY_BANDS = ((30, Decimal("1.0")), (90, Decimal("0.8")))
EXPERT_RECENCY_FALLBACK = Decimal("0.6")


# ── Agreement bands ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AgreementBand:
    status: str
    rating: Rating
    score: Decimal | None
    max_years: int | None = None      # None = any age beyond the previous band
    cap: Rating | None = None
    reason: str | None = None
    confidence: Confidence = Confidence.MEDIUM


AGREEMENT_AGE_BANDS = (
    AgreementBand("current", Rating.GREEN, Decimal("100"), max_years=1, confidence=Confidence.HIGH),
    AgreementBand("current", Rating.GREEN, Decimal("85"), max_years=2, confidence=Confidence.HIGH),
    AgreementBand("ageing", Rating.YELLOW, Decimal("65"), max_years=3),
    AgreementBand("lapsed", Rating.AMBER, Decimal("35"), cap=Rating.YELLOW, reason="agreement_lapsed"),
)
AGREEMENT_NOT_CERTIFIED = AgreementBand(
    "not_certified", Rating.RED, Decimal("0"),
    cap=Rating.AMBER, reason="agreement_not_certified", confidence=Confidence.LOW,
)
AGREEMENT_NONE = AgreementBand(
    "none", Rating.UNKNOWN, None,
    cap=Rating.AMBER, reason="no_agreement", confidence=Confidence.VERY_LOW,
)


# ── Discrepancy cutoffs (minor, moderate, major, critical; strictly greater) ──

DISCREPANCY_CUTOFFS = {
    Scale.CONTINUOUS: (Decimal("10"), Decimal("20"), Decimal("30"), Decimal("45")),
    Scale.FOUR_POINT: (Decimal("0.5"), Decimal("1.0"), Decimal("1.5"), Decimal("2.0")),
}


@dataclass(frozen=True)
class Lookbacks:
    project_days: int = 365
    expert_days: int = 180
    categorical_days: int = 365
    project_count_days: int = 365

    @property
    def longest(self) -> int:
        return max(self.project_days, self.expert_days, self.categorical_days, self.project_count_days)


@dataclass(frozen=True)
class RatingPolicy:
    compliance_type_weights: dict[str, Decimal]
    severity_impacts: dict[tuple[str, int], Decimal]
    thresholds: dict[Scale, ThresholdTable]
    criteria_weights: dict[str, dict[str, Decimal]]
    role_weights: dict[str, dict[str, Decimal]]
    calculation: dict[str, Decimal]
    role_specific_roles: tuple[str, ...] = reference_data.ROLE_SPECIFIC_APPLICABLE
    project_tiers: tuple[ConfidenceTier, ...] = PROJECT_CONFIDENCE_TIERS
    expert_tiers: tuple[ConfidenceTier, ...] = EXPERT_CONFIDENCE_TIERS
    categorical_tiers: dict[str, tuple[ConfidenceTier, ...]] = field(default_factory=lambda: {
        "relationship_respect": CATEGORICAL_CONFIDENCE_TIERS,
        "safety": CATEGORICAL_CONFIDENCE_TIERS,
        "subcontractor_use": SPARSE_CATEGORICAL_CONFIDENCE_TIERS,
        "role_specific": SPARSE_CATEGORICAL_CONFIDENCE_TIERS,
    })
    agreement_bands: tuple[AgreementBand, ...] = AGREEMENT_AGE_BANDS
    agreement_not_certified: AgreementBand = AGREEMENT_NOT_CERTIFIED
    agreement_none: AgreementBand = AGREEMENT_NONE
    integrity_cap: Rating = Rating.YELLOW
    discrepancy_cutoffs: dict[Scale, tuple[Decimal, ...]] = field(
        default_factory=lambda: dict(DISCREPANCY_CUTOFFS)
    )
    critical_components: tuple[str, ...] = ("agreement",)
    lookbacks: Lookbacks = field(default_factory=Lookbacks)
    versions: dict[str, int] = field(default_factory=dict)

    def calculation_value(self, key: str) -> Decimal:
        try:
            return self.calculation[key]
        except KeyError:
            raise ConfigurationError(f"Calculation weight '{key}' is not configured") from None

    def threshold_table(self, scale: Scale) -> ThresholdTable:
        try:
            return self.thresholds[scale]
        except KeyError:
            raise ConfigurationError(f"No threshold table for scale {scale.value}") from None

    @classmethod
    def from_weight_sets(
        cls,
        weight_sets: dict[str, dict],
        severity_rows: dict[str, list[tuple[int, str, Decimal]]],
        threshold_rows: dict[str, list[tuple[str, Decimal, Decimal]]],
        versions: dict[str, int] | None = None,
        **overrides,
    ) -> "RatingPolicy":
        """Assemble a policy from raw weight sets and table rows, validating each."""
        def _set(name: str) -> dict[str, Decimal]:
            if name not in weight_sets:
                raise ConfigurationError(f"No active weight set '{name}'")
            return validate_weights(name, weight_sets[name])

        criteria = {kind: _set(f"criteria.{kind}") for kind in reference_data.CRITERIA_WEIGHTS}
        roles = {role: _set(f"role.{role}") for role in reference_data.ROLE_WEIGHTS}

        compliance = _set("compliance_assessment_types")
        validate_assessment_types(compliance, "Weight set 'compliance_assessment_types'")
        validate_assessment_types(severity_rows, "Severity tables")

        impacts: dict[tuple[str, int], Decimal] = {}
        for assessment_type, levels in severity_rows.items():
            for level, _name, impact in levels:
                impact = to_decimal(impact)
                if not (1 <= level <= 5):
                    raise ConfigurationError(f"Severity level {level} for {assessment_type} outside 1-5")
                if not (Decimal("-100") <= impact <= Decimal("100")):
                    raise ConfigurationError(f"Severity impact {impact} for {assessment_type} outside [-100, 100]")
                impacts[(assessment_type, level)] = impact

        versions = versions or {}
        thresholds = {}
        for scale in Scale:
            rows = threshold_rows.get(scale.value)
            if not rows:
                raise ConfigurationError(f"No active threshold table for scale {scale.value}")
            thresholds[scale] = ThresholdTable.from_rows(
                scale, rows, version=versions.get(f"thresholds:{scale.value}", 1),
            )

        return cls(
            compliance_type_weights=compliance,
            severity_impacts=impacts,
            thresholds=thresholds,
            criteria_weights=criteria,
            role_weights=roles,
            calculation=_set("calculation"),
            versions=dict(versions),
            **overrides,
        )

    @classmethod
    def default(cls, **overrides) -> "RatingPolicy":
        """Policy built from the seed defaults, without touching the database."""
        return cls.from_weight_sets(
            reference_data.default_weight_sets(),
            reference_data.SEVERITY_LEVELS,
            reference_data.THRESHOLD_BANDS,
            **overrides,
        )
