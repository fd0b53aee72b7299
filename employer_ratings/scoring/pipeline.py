"""
Rating Engine

Runs one organization's assessments through the pure stages:

  Normalizer -> Confidence -> Weighting -> Discrepancy -> Gates

and returns a ``RatingResult`` for the publisher. Gates run strictly after
aggregation; nothing they decide feeds back into the component scores.

Component layout per scale:

  continuous   project = structured compliance (0-100)
               expert_judgment = weighted expert scores (0-100)
  four_point   project = role-weighted categorical composite (1-4)
               expert_judgment = 4-point expert scores, converted if absent

Both scales blend project and expert judgment with the dynamic weights
(0.1 per distinct project in the last 12 months, capped at 0.9). The
agreement component carries the configured ``agreement_weight`` (0 by
default) and is the critical component for minimum_of_critical / hybrid.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from employer_ratings.scoring import confidence, normalizer
from employer_ratings.scoring.discrepancy import DiscrepancyResult, detect
from employer_ratings.scoring.gates import GateContext, GateResult, apply_gates
from employer_ratings.scoring.policy import RatingPolicy
from employer_ratings.scoring.types import (
    AGREEMENT,
    EXPERT_JUDGMENT,
    PROJECT,
    AssessmentBundle,
    CalculationMethod,
    CategoricalKind,
    ComponentScore,
    Confidence,
    Rating,
    Scale,
)
from employer_ratings.scoring.weighting import (
    WeightedComponent,
    WeightingResult,
    algorithm_for,
    dynamic_project_weights,
    role_weights,
)


@dataclass
class RatingResult:
    organization_id: int
    as_of: date
    scale: Scale
    method: CalculationMethod
    final_score: Decimal | None
    pre_gate_rating: Rating
    final_rating: Rating
    overall_confidence: Confidence
    confidence_value: Decimal
    components: dict[str, ComponentScore]
    weighting: WeightingResult
    discrepancy: DiscrepancyResult
    gates: GateResult
    project_count: int
    weights: dict[str, Decimal] = field(default_factory=dict)
    policy_versions: dict[str, int] = field(default_factory=dict)

    @property
    def review_required(self) -> bool:
        return self.discrepancy.requires_review

    @property
    def review_reason(self) -> str | None:
        if self.discrepancy.requires_review:
            return f"discrepancy_{self.discrepancy.level.value}"
        return None

    def components_dict(self) -> dict:
        out = {}
        for name, component in self.components.items():
            entry = component.to_dict()
            entry["weight"] = float(self.weights.get(name, Decimal("0")))
            entry["effective_weight"] = float(self.weighting.effective_weights.get(name, Decimal("0")))
            out[name] = entry
        return out

    def weights_dict(self) -> dict:
        return {
            "configured": {k: float(v) for k, v in self.weights.items()},
            "effective": {k: float(v) for k, v in self.weighting.effective_weights.items()},
            "excluded": self.weighting.excluded,
            "project_count": self.project_count,
        }

    def to_dict(self) -> dict:
        """The rating fields shared by a published row and a dry-run response."""
        gates = self.gates
        return {
            "scale": self.scale.value,
            "calculation_method": self.method.value,
            "final_score": self.final_score,
            "final_rating": self.final_rating.value,
            "pre_gate_rating": self.pre_gate_rating.value,
            "overall_confidence": self.overall_confidence.value,
            "components": self.components_dict(),
            "weights": self.weights_dict(),
            "discrepancy_detected": self.discrepancy.detected,
            "discrepancy_level": self.discrepancy.level.value,
            "discrepancy": self.discrepancy.to_dict(),
            "gate_applied": gates.gate_applied,
            "gate_reason": gates.gate_reason,
            "gate_trace": [o.to_dict() for o in gates.outcomes],
            "review_required": self.review_required,
            "review_reason": self.review_reason,
            "policy_versions": dict(self.policy_versions),
        }


class RatingEngine:
    """Pure rating calculation for one organization under one policy."""

    def __init__(self, policy: RatingPolicy):
        self.policy = policy

    # ── component construction ──

    def _continuous_components(self, bundle: AssessmentBundle, as_of: date):
        p = self.policy
        project = normalizer.score_structured(bundle.structured, p, as_of)
        project.confidence = confidence.grade(project.count, project.latest_age_days, p.project_tiers)
        return project

    def _four_point_components(self, bundle: AssessmentBundle, as_of: date):
        p = self.policy
        schedule = role_weights(bundle.organization.role_category, p.role_weights, p.role_specific_roles)

        kinds: dict[str, ComponentScore] = {}
        for kind in CategoricalKind:
            weight, applicable = schedule.get(kind.value, (Decimal("0"), True))
            component = normalizer.score_categorical(bundle.categorical, kind, p, as_of, applicable=applicable)
            tiers = p.categorical_tiers.get(kind.value, ())
            component.confidence = confidence.grade(component.count, component.latest_age_days, tiers)
            component.breakdown = {**component.breakdown, "role_weight": float(weight)}
            kinds[kind.value] = component

        parts = [
            WeightedComponent(name, c.score if c.has_data else None, schedule[name][0])
            for name, c in kinds.items()
            if name in schedule
        ]
        composite = algorithm_for(CalculationMethod.WEIGHTED_AVERAGE).combine(parts, Scale.FOUR_POINT)

        project = ComponentScore(
            name=PROJECT,
            score=composite.score.quantize(normalizer.QUANT) if composite.score is not None else None,
            count=sum(c.count for c in kinds.values()),
            latest_age_days=min(
                (c.latest_age_days for c in kinds.values() if c.latest_age_days is not None),
                default=None,
            ),
            breakdown={
                "role_category": bundle.organization.role_category.value,
                "kinds": {name: c.to_dict() for name, c in kinds.items()},
                "effective_weights": {k: float(v) for k, v in composite.effective_weights.items()},
            },
        )
        project.confidence, _ = confidence.blend([
            (kinds[name].confidence, w) for name, w in composite.effective_weights.items() if w > 0
        ])
        return project

    # ── main entry ──

    def calculate(
        self,
        bundle: AssessmentBundle,
        as_of: date,
        scale: Scale = Scale.CONTINUOUS,
        method: CalculationMethod = CalculationMethod.WEIGHTED_AVERAGE,
    ) -> RatingResult:
        p = self.policy
        thresholds = p.threshold_table(scale)

        if scale == Scale.FOUR_POINT:
            project = self._four_point_components(bundle, as_of)
        else:
            project = self._continuous_components(bundle, as_of)

        expert = normalizer.score_expert(bundle.expert, p, as_of, scale)
        expert.confidence = confidence.grade(expert.count, expert.latest_age_days, p.expert_tiers)

        agreement, agreement_status = normalizer.score_agreement(bundle.agreements, p, as_of, scale)

        for component in (project, expert):
            if component.has_data:
                component.rating = thresholds.classify(component.score)

        # Dynamic project-vs-expert weights
        project_count = normalizer.count_projects(
            bundle.structured, bundle.categorical, as_of, p.lookbacks.project_count_days,
        )
        project_weight, expert_weight = dynamic_project_weights(
            project_count,
            step=p.calculation_value("project_weight_step"),
            cap=p.calculation_value("project_weight_cap"),
        )
        weights = {
            PROJECT: project_weight,
            EXPERT_JUDGMENT: expert_weight,
            AGREEMENT: p.calculation.get("agreement_weight", Decimal("0")),
        }
        components = {PROJECT: project, EXPERT_JUDGMENT: expert, AGREEMENT: agreement}

        algorithm = algorithm_for(method, p.calculation.get("critical_weight", Decimal("0.3")))
        weighting = algorithm.combine(
            [
                WeightedComponent(
                    name,
                    c.score if c.has_data else None,
                    weights[name],
                    critical=name in p.critical_components,
                )
                for name, c in components.items()
            ],
            scale,
        )

        if weighting.score is None:
            final_score = None
            pre_gate = Rating.UNKNOWN
        else:
            final_score = weighting.score.quantize(Decimal("0.01"))
            pre_gate = thresholds.classify(final_score)

        overall, overall_value = confidence.blend([
            (components[name].confidence, w)
            for name, w in weighting.effective_weights.items()
            if w > 0
        ])

        discrepancy = detect(project, expert, thresholds, p.discrepancy_cutoffs[scale])

        gates = apply_gates(
            pre_gate,
            GateContext(
                as_of=as_of,
                agreement=agreement_status,
                integrity_flags=list(bundle.integrity_flags),
                integrity_cap=p.integrity_cap,
            ),
        )

        return RatingResult(
            organization_id=bundle.organization.id,
            as_of=as_of,
            scale=scale,
            method=method,
            final_score=final_score,
            pre_gate_rating=pre_gate,
            final_rating=gates.final_rating,
            overall_confidence=overall,
            confidence_value=overall_value,
            components=components,
            weighting=weighting,
            discrepancy=discrepancy,
            gates=gates,
            project_count=project_count,
            weights=weights,
            policy_versions=dict(p.versions),
        )
