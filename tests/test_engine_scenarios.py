"""End-to-end calculations through the pure rating engine."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.scoring.discrepancy import DiscrepancyLevel
from employer_ratings.scoring.pipeline import RatingEngine
from employer_ratings.scoring.types import (
    AgreementInput,
    AssessmentBundle,
    CalculationMethod,
    CategoricalInput,
    CategoricalKind,
    Confidence,
    ExpertAssessmentInput,
    IntegrityFlag,
    OrganizationSnapshot,
    Rating,
    RoleCategory,
    Scale,
    StructuredAssessment,
)

AS_OF = date(2026, 6, 30)


def days_ago(n: int) -> date:
    return AS_OF - timedelta(days=n)


def _bundle(role=RoleCategory.TRADE, **kwargs) -> AssessmentBundle:
    return AssessmentBundle(organization=OrganizationSnapshot(1, "Acme Formwork", role), **kwargs)


EXPERT_90 = ExpertAssessmentInput(Decimal("90"), days_ago(10), confidence_level="high")
AGREEMENT_TWO_YEARS = AgreementInput(certified_date=date(2024, 6, 30))


@pytest.fixture
def engine(policy) -> RatingEngine:
    return RatingEngine(policy)


# ── Reference scenarios ──────────────────────────────────────────────────────

class TestReferenceScenarios:
    def test_expert_only_with_recent_agreement(self, engine):
        result = engine.calculate(_bundle(expert=[EXPERT_90], agreements=[AGREEMENT_TWO_YEARS]), AS_OF)

        assert result.project_count == 0
        assert result.weights["project"] == Decimal("0")
        assert result.weights["expert_judgment"] == Decimal("1")
        assert result.final_score == Decimal("90.00")
        assert result.pre_gate_rating == Rating.GREEN
        assert result.final_rating == Rating.GREEN
        assert not result.gates.gate_applied
        assert result.gates.outcomes[0].evaluated
        assert result.overall_confidence == Confidence.MEDIUM

    def test_projects_dominate_and_integrity_gate_does_not_bind(self, engine):
        structured = [
            StructuredAssessment("cbus_status", Decimal("40"), days_ago(5 + i), project_id=i + 1)
            for i in range(10)
        ]
        flags = [IntegrityFlag("sham_contracting", days_ago(30))]
        result = engine.calculate(
            _bundle(structured=structured, expert=[EXPERT_90], agreements=[AGREEMENT_TWO_YEARS], integrity_flags=flags),
            AS_OF,
        )

        assert result.project_count == 10
        assert result.weights["project"] == Decimal("0.9")
        assert result.final_score == Decimal("45.00")
        assert result.pre_gate_rating == Rating.AMBER
        assert result.final_rating == Rating.AMBER

        integrity = result.gates.outcomes[1]
        assert integrity.gate == "integrity"
        assert integrity.evaluated
        assert not integrity.binding
        assert not result.gates.gate_applied

        # 40 vs 90 is far beyond the critical cutoff
        assert result.discrepancy.level == DiscrepancyLevel.CRITICAL
        assert result.review_required
        assert result.review_reason == "discrepancy_critical"

    def test_missing_agreement_caps_top_rating(self, engine):
        result = engine.calculate(_bundle(expert=[EXPERT_90]), AS_OF)

        assert result.pre_gate_rating == Rating.GREEN
        assert result.final_rating == Rating.AMBER
        assert result.gates.gate_applied
        assert result.gates.gate_reason == "no_agreement"

    def test_no_data_is_unknown_not_zero(self, engine):
        result = engine.calculate(_bundle(), AS_OF)

        assert result.final_score is None
        assert result.final_rating == Rating.UNKNOWN
        assert result.overall_confidence == Confidence.VERY_LOW
        assert not result.gates.gate_applied
        assert not any(o.evaluated for o in result.gates.outcomes)
        assert set(result.weighting.excluded) == {"project", "expert_judgment", "agreement"}


# ── Methods and scales ───────────────────────────────────────────────────────

class TestMethods:
    def test_minimum_of_critical_uses_agreement(self, engine):
        bundle = _bundle(expert=[EXPERT_90], agreements=[AgreementInput(certified_date=date(2021, 1, 1))])
        result = engine.calculate(bundle, AS_OF, method=CalculationMethod.MINIMUM_OF_CRITICAL)
        assert result.final_score == Decimal("35.00")
        assert result.final_rating == Rating.RED

    def test_hybrid_blends_critical_component(self, engine):
        bundle = _bundle(expert=[EXPERT_90], agreements=[AgreementInput(certified_date=date(2026, 1, 1))])
        result = engine.calculate(bundle, AS_OF, method=CalculationMethod.HYBRID)
        # 90 · 0.7 + 100 · 0.3
        assert result.final_score == Decimal("93.00")
        assert result.final_rating == Rating.GREEN

    def test_weighted_sum(self, engine):
        bundle = _bundle(expert=[EXPERT_90], agreements=[AGREEMENT_TWO_YEARS])
        result = engine.calculate(bundle, AS_OF, method=CalculationMethod.WEIGHTED_SUM)
        assert result.final_score == Decimal("90.00")


class TestFourPointScale:
    def test_role_weighted_categorical_composite(self, engine):
        categorical = [
            CategoricalInput(CategoricalKind.RELATIONSHIP_RESPECT, days_ago(10), {
                "right_of_entry": 3, "delegate_accommodation": 3,
                "access_to_information": 3, "access_to_inductions": 3,
            }, project_id=1),
            CategoricalInput(CategoricalKind.SAFETY, days_ago(12), {
                "hsr_respect": 4, "general_safety": 4, "safety_incidents": 4,
            }, project_id=2),
            CategoricalInput(CategoricalKind.SUBCONTRACTOR_USE, days_ago(14), {
                "usage": 2, "subcontractor_compliance": 2, "payment_practices": 2,
            }, project_id=3),
        ]
        result = engine.calculate(
            _bundle(categorical=categorical, agreements=[AGREEMENT_TWO_YEARS]), AS_OF, scale=Scale.FOUR_POINT,
        )

        # 3·0.35 + 4·0.35 + 2·0.30
        assert result.final_score == Decimal("3.05")
        assert result.final_rating == Rating.YELLOW
        assert result.project_count == 3
        kinds = result.components["project"].breakdown["kinds"]
        assert kinds["role_specific"]["status"] == "not_applicable"

    def test_builder_rates_role_specific(self, engine):
        categorical = [
            CategoricalInput(CategoricalKind.ROLE_SPECIFIC, days_ago(10), {
                "tender_consultation": 4, "open_communication": 4, "delegate_facilities": 4,
                "project_coordination": 4, "dispute_resolution": 4,
            }),
        ]
        result = engine.calculate(
            _bundle(role=RoleCategory.BUILDER, categorical=categorical, agreements=[AGREEMENT_TWO_YEARS]),
            AS_OF, scale=Scale.FOUR_POINT,
        )
        assert result.final_score == Decimal("4.00")
        assert result.final_rating == Rating.GREEN

    def test_expert_on_four_point_scale(self, engine):
        expert = ExpertAssessmentInput(Decimal("10"), days_ago(5), overall_score_4point=Decimal("2"))
        result = engine.calculate(
            _bundle(expert=[expert], agreements=[AGREEMENT_TWO_YEARS]), AS_OF, scale=Scale.FOUR_POINT,
        )
        assert result.final_score == Decimal("2.00")
        assert result.final_rating == Rating.AMBER


class TestConfigurationFailures:
    def test_unknown_assessment_type_fails_the_calculation(self, engine):
        structured = [StructuredAssessment("mystery_type", Decimal("80"), days_ago(3))]
        with pytest.raises(ConfigurationError):
            engine.calculate(_bundle(structured=structured), AS_OF)
