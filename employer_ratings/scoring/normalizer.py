"""
Score Normalizer

Turns each source's raw assessment records into one ``ComponentScore`` in a
common unit: a continuous score on [0, 100] or an ordinal value on [1, 4].

  Structured compliance:  Σ(clamp(score + severity_impact) · w_type) / Σ w_type
  Expert judgment:        Σ(score · w) / Σ w,
                          w = max(0.1, confidence_base · reputation · recency)
  Agreement:              banded by age of the most recent certification
  Categorical (4-point):  per-criterion mean (2.5 when unobserved), combined
                          by configured criterion weights

A source with nothing in window yields ``score=None``; it is never coerced
to zero.
"""

import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.scoring.policy import (
    AgreementBand,
    RatingPolicy,
    EXPERT_CONFIDENCE_BASE,
    EXPERT_DEFAULT_REPUTATION,
    EXPERT_MIN_WEIGHT,
    EXPERT_RECENCY_BANDS,
    EXPERT_RECENCY_FALLBACK,
    to_decimal,
)
from employer_ratings.scoring.types import (
    AGREEMENT,
    COMPLIANCE_ASSESSMENT_TYPES,
    EXPERT_JUDGMENT,
    PROJECT,
    AgreementInput,
    CategoricalInput,
    CategoricalKind,
    ComponentScore,
    ExpertAssessmentInput,
    Rating,
    Scale,
    ScaleConvention,
    StructuredAssessment,
    SCALE_BOUNDS,
)

ORDINAL_MIDPOINT = Decimal("2.5")
FOUR_POINT_MIN = Decimal("1")
FOUR_POINT_MAX = Decimal("4")
QUANT = Decimal("0.0001")


def clamp(value: Decimal, lo: Decimal, hi: Decimal) -> Decimal:
    return max(lo, min(hi, value))


def clamp_to_scale(value: Decimal, scale: Scale) -> Decimal:
    lo, hi = SCALE_BOUNDS[scale]
    return clamp(value, lo, hi)


def to_four_point(score: Decimal) -> Decimal:
    """Continuous [0, 100] -> ordinal [1, 4]."""
    return clamp(Decimal("1") + Decimal("3") * to_decimal(score) / Decimal("100"), FOUR_POINT_MIN, FOUR_POINT_MAX)


def to_continuous(value: Decimal) -> Decimal:
    """Ordinal [1, 4] -> continuous [0, 100]."""
    return clamp((to_decimal(value) - Decimal("1")) * Decimal("100") / Decimal("3"), Decimal("0"), Decimal("100"))


def from_legacy_four_point(value: Decimal) -> Decimal:
    """Legacy records used 1 = best; the canonical direction is 4 = best."""
    return Decimal("5") - to_decimal(value)


def canonical_ordinal(value, convention: ScaleConvention) -> Decimal:
    v = clamp(to_decimal(value), FOUR_POINT_MIN, FOUR_POINT_MAX)
    if convention == ScaleConvention.LOW_IS_BEST:
        v = from_legacy_four_point(v)
    return v


def years_before(as_of: date, years: int) -> date:
    """Same calendar day ``years`` earlier; 29 Feb falls back to 28 Feb."""
    target_year = as_of.year - years
    day = min(as_of.day, calendar.monthrange(target_year, as_of.month)[1])
    return as_of.replace(year=target_year, day=day)


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def in_window(assessment_date: date, as_of: date, days: int) -> bool:
    return as_of - timedelta(days=days) <= assessment_date <= as_of


def _age(as_of: date, dates: list[date]) -> int | None:
    return (as_of - max(dates)).days if dates else None


def _q(value: Decimal) -> Decimal:
    return value.quantize(QUANT)


# ── Structured compliance ────────────────────────────────────────────────────

def score_structured(
    assessments: list[StructuredAssessment],
    policy: RatingPolicy,
    as_of: date,
    scale: Scale = Scale.CONTINUOUS,
) -> ComponentScore:
    in_range = [
        a for a in assessments
        if a.score is not None and in_window(a.assessment_date, as_of, policy.lookbacks.project_days)
    ]
    if not in_range:
        return ComponentScore(name=PROJECT)

    weighted = Decimal("0")
    total_weight = Decimal("0")
    by_type: dict[str, list[Decimal]] = defaultdict(list)

    for a in in_range:
        if a.assessment_type not in COMPLIANCE_ASSESSMENT_TYPES:
            raise ConfigurationError(f"Unknown assessment type '{a.assessment_type}'")
        weight = policy.compliance_type_weights.get(a.assessment_type)
        if weight is None:
            raise ConfigurationError(f"No weight configured for assessment type '{a.assessment_type}'")
        impact = Decimal("0")
        if a.severity_level is not None:
            impact = policy.severity_impacts.get((a.assessment_type, a.severity_level))
            if impact is None:
                raise ConfigurationError(
                    f"No severity mapping for {a.assessment_type} level {a.severity_level}"
                )
        effective = clamp(to_decimal(a.score) + impact, Decimal("0"), Decimal("100"))
        by_type[a.assessment_type].append(effective)
        weighted += effective * weight
        total_weight += weight

    if total_weight == 0:
        raise ConfigurationError("Structured assessment weights sum to zero")

    score = clamp(weighted / total_weight, Decimal("0"), Decimal("100"))
    if scale == Scale.FOUR_POINT:
        score = to_four_point(score)

    return ComponentScore(
        name=PROJECT,
        score=_q(score),
        count=len(in_range),
        latest_age_days=_age(as_of, [a.assessment_date for a in in_range]),
        breakdown={
            "by_type": {
                t: {"average": float(sum(v) / len(v)), "count": len(v)}
                for t, v in sorted(by_type.items())
            },
            "projects": len({a.project_id for a in in_range if a.project_id is not None}),
        },
    )


# ── Expert judgment ──────────────────────────────────────────────────────────

def expert_weight(a: ExpertAssessmentInput, as_of: date) -> Decimal:
    base = EXPERT_CONFIDENCE_BASE.get(a.confidence_level)
    if base is None:
        raise ConfigurationError(f"No expert weight configured for confidence level '{a.confidence_level}'")

    if a.accuracy_percentage is not None:
        reputation = to_decimal(a.accuracy_percentage) / Decimal("100")
    elif a.reputation_score is not None:
        reputation = to_decimal(a.reputation_score) / Decimal("100")
    else:
        reputation = EXPERT_DEFAULT_REPUTATION

    age = (as_of - a.assessment_date).days
    recency = EXPERT_RECENCY_FALLBACK
    for max_age, multiplier in EXPERT_RECENCY_BANDS:
        if age <= max_age:
            recency = multiplier
            break

    return max(EXPERT_MIN_WEIGHT, base * reputation * recency)


def score_expert(
    assessments: list[ExpertAssessmentInput],
    policy: RatingPolicy,
    as_of: date,
    scale: Scale = Scale.CONTINUOUS,
) -> ComponentScore:
    in_range = [a for a in assessments if in_window(a.assessment_date, as_of, policy.lookbacks.expert_days)]
    if not in_range:
        return ComponentScore(name=EXPERT_JUDGMENT)

    weighted = Decimal("0")
    total_weight = Decimal("0")
    for a in in_range:
        if scale == Scale.FOUR_POINT:
            value = (
                clamp(to_decimal(a.overall_score_4point), FOUR_POINT_MIN, FOUR_POINT_MAX)
                if a.overall_score_4point is not None
                else to_four_point(a.overall_score)
            )
        else:
            value = clamp(to_decimal(a.overall_score), Decimal("0"), Decimal("100"))
        w = expert_weight(a, as_of)
        weighted += value * w
        total_weight += w

    score = clamp_to_scale(weighted / total_weight, scale)
    return ComponentScore(
        name=EXPERT_JUDGMENT,
        score=_q(score),
        count=len(in_range),
        latest_age_days=_age(as_of, [a.assessment_date for a in in_range]),
        breakdown={"total_weight": float(total_weight)},
    )


# ── Agreement ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AgreementStatus:
    band: AgreementBand
    latest_certified: date | None = None
    record_count: int = 0

    @property
    def rating(self) -> Rating:
        return self.band.rating

    def to_dict(self) -> dict:
        return {
            "status": self.band.status,
            "rating": self.band.rating.value,
            "latest_certified": self.latest_certified.isoformat() if self.latest_certified else None,
            "record_count": self.record_count,
            "cap": self.band.cap.value if self.band.cap else None,
            "reason": self.band.reason,
        }


def agreement_status(records: list[AgreementInput], policy: RatingPolicy, as_of: date) -> AgreementStatus:
    if not records:
        return AgreementStatus(band=policy.agreement_none)

    certified = [r.certified_date for r in records if r.certified_date is not None and r.certified_date <= as_of]
    if not certified:
        return AgreementStatus(band=policy.agreement_not_certified, record_count=len(records))

    latest = max(certified)
    for band in policy.agreement_bands:
        if band.max_years is None or latest >= years_before(as_of, band.max_years):
            return AgreementStatus(band=band, latest_certified=latest, record_count=len(records))
    raise ConfigurationError(f"No agreement band covers certification date {latest}")


def score_agreement(
    records: list[AgreementInput],
    policy: RatingPolicy,
    as_of: date,
    scale: Scale = Scale.CONTINUOUS,
) -> tuple[ComponentScore, AgreementStatus]:
    status = agreement_status(records, policy, as_of)
    score = status.band.score
    if score is not None and scale == Scale.FOUR_POINT:
        score = to_four_point(score)
    component = ComponentScore(
        name=AGREEMENT,
        score=_q(score) if score is not None else None,
        count=status.record_count,
        latest_age_days=(as_of - status.latest_certified).days if status.latest_certified else None,
        confidence=status.band.confidence,
        rating=status.band.rating,
        breakdown=status.to_dict(),
    )
    return component, status


# ── Categorical (4-point) sub-assessments ────────────────────────────────────

def score_categorical(
    assessments: list[CategoricalInput],
    kind: CategoricalKind,
    policy: RatingPolicy,
    as_of: date,
    applicable: bool = True,
) -> ComponentScore:
    if not applicable:
        return ComponentScore(name=kind.value, applicable=False, breakdown={"reason": "not_applicable_for_role"})

    in_range = [
        a for a in assessments
        if a.kind == kind and in_window(a.assessment_date, as_of, policy.lookbacks.categorical_days)
    ]
    if not in_range:
        return ComponentScore(name=kind.value)

    try:
        criteria_weights = policy.criteria_weights[kind.value]
    except KeyError:
        raise ConfigurationError(f"No criterion weights configured for {kind.value}") from None

    observed: dict[str, list[Decimal]] = defaultdict(list)
    for a in in_range:
        for criterion, value in (a.criteria or {}).items():
            if value is None:
                continue
            if criterion not in criteria_weights:
                raise ConfigurationError(f"Unknown criterion '{criterion}' for {kind.value}")
            observed[criterion].append(canonical_ordinal(value, a.scale_convention))

    age = _age(as_of, [a.assessment_date for a in in_range])

    if not observed:
        overall = [canonical_ordinal(a.overall_value, a.scale_convention) for a in in_range if a.overall_value is not None]
        if not overall:
            return ComponentScore(name=kind.value, count=len(in_range), latest_age_days=age)
        score = clamp(sum(overall) / len(overall), FOUR_POINT_MIN, FOUR_POINT_MAX)
        return ComponentScore(
            name=kind.value,
            score=_q(score),
            count=len(in_range),
            latest_age_days=age,
            breakdown={"source": "overall_value"},
        )

    means: dict[str, Decimal] = {}
    weighted = Decimal("0")
    total_weight = Decimal("0")
    for criterion, weight in criteria_weights.items():
        values = observed.get(criterion)
        mean = sum(values) / len(values) if values else ORDINAL_MIDPOINT
        means[criterion] = mean
        weighted += mean * weight
        total_weight += weight

    if total_weight == 0:
        raise ConfigurationError(f"Criterion weights for {kind.value} sum to zero")

    score = clamp(weighted / total_weight, FOUR_POINT_MIN, FOUR_POINT_MAX)
    return ComponentScore(
        name=kind.value,
        score=_q(score),
        count=len(in_range),
        latest_age_days=age,
        breakdown={
            "source": "criteria",
            "criteria": {c: float(m) for c, m in means.items()},
            "defaulted": sorted(c for c in criteria_weights if c not in observed),
        },
    )


def count_projects(
    structured: list[StructuredAssessment],
    categorical: list[CategoricalInput],
    as_of: date,
    days: int,
) -> int:
    """Distinct projects with a project-level assessment in window.

    Assessments not tied to a project count together as one.
    """
    projects = {
        a.project_id
        for a in [*structured, *categorical]
        if in_window(a.assessment_date, as_of, days)
        and (a.score is not None if isinstance(a, StructuredAssessment) else True)
    }
    return len(projects)
