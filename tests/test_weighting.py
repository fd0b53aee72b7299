"""Tests for the weighting algorithms, weight schedules and confidence blending."""

from decimal import Decimal

import pytest

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.scoring import confidence
from employer_ratings.scoring.policy import EXPERT_CONFIDENCE_TIERS, PROJECT_CONFIDENCE_TIERS
from employer_ratings.scoring.types import CalculationMethod, Confidence, RoleCategory, Scale
from employer_ratings.scoring.weighting import (
    Hybrid,
    MinimumOfCritical,
    WeightedAverage,
    WeightedComponent,
    WeightedSum,
    algorithm_for,
    dynamic_project_weights,
    role_weights,
)
from employer_ratings.seed.reference_data import ROLE_SPECIFIC_APPLICABLE, ROLE_WEIGHTS


def _components(project=Decimal("80"), expert=Decimal("60"), agreement=None, agreement_weight=Decimal("0")):
    return [
        WeightedComponent("project", project, Decimal("0.6")),
        WeightedComponent("expert_judgment", expert, Decimal("0.4")),
        WeightedComponent("agreement", agreement, agreement_weight, critical=True),
    ]


# ── Algorithms ───────────────────────────────────────────────────────────────

class TestWeightedAverage:
    def test_normalized_mean(self):
        result = WeightedAverage().combine(_components(), Scale.CONTINUOUS)
        assert result.score == Decimal("72")
        assert result.excluded == ["agreement"]
        assert result.effective_weights["project"] == Decimal("0.6")
        assert result.effective_weights["agreement"] == Decimal("0")

    def test_missing_component_is_renormalized_not_zeroed(self):
        result = WeightedAverage().combine(_components(project=None), Scale.CONTINUOUS)
        assert result.score == Decimal("60")
        assert result.effective_weights["expert_judgment"] == Decimal("1")
        assert "project" in result.excluded

    def test_nothing_to_combine(self):
        result = WeightedAverage().combine(_components(project=None, expert=None), Scale.CONTINUOUS)
        assert result.score is None

    def test_four_point_scale(self):
        parts = [
            WeightedComponent("safety", Decimal("4"), Decimal("0.5")),
            WeightedComponent("relationship_respect", Decimal("2"), Decimal("0.5")),
        ]
        assert WeightedAverage().combine(parts, Scale.FOUR_POINT).score == Decimal("3")


class TestWeightedSum:
    def test_unnormalized_and_clamped(self):
        parts = [
            WeightedComponent("project", Decimal("80"), Decimal("1")),
            WeightedComponent("expert_judgment", Decimal("60"), Decimal("1")),
        ]
        result = WeightedSum().combine(parts, Scale.CONTINUOUS)
        assert result.score == Decimal("100")

    def test_partial_weights(self):
        result = WeightedSum().combine(_components(), Scale.CONTINUOUS)
        assert result.score == Decimal("72")


class TestMinimumOfCritical:
    def test_lowest_critical_component(self):
        result = MinimumOfCritical().combine(_components(agreement=Decimal("35")), Scale.CONTINUOUS)
        assert result.score == Decimal("35")
        assert result.effective_weights["agreement"] == Decimal("1")

    def test_no_critical_data(self):
        result = MinimumOfCritical().combine(_components(), Scale.CONTINUOUS)
        assert result.score is None


class TestHybrid:
    def test_blend_of_base_and_critical(self):
        result = Hybrid(Decimal("0.3")).combine(_components(agreement=Decimal("35")), Scale.CONTINUOUS)
        # 72 · 0.7 + 35 · 0.3
        assert result.score == Decimal("60.9")
        assert result.effective_weights["project"] == Decimal("0.42")
        assert result.effective_weights["agreement"] == Decimal("0.3")

    def test_falls_back_to_base_without_critical(self):
        result = Hybrid(Decimal("0.3")).combine(_components(), Scale.CONTINUOUS)
        assert result.score == Decimal("72")

    def test_critical_weight_out_of_range(self):
        with pytest.raises(ConfigurationError):
            Hybrid(Decimal("1.5"))


class TestAlgorithmSelection:
    @pytest.mark.parametrize("method,cls", [
        (CalculationMethod.WEIGHTED_AVERAGE, WeightedAverage),
        (CalculationMethod.WEIGHTED_SUM, WeightedSum),
        (CalculationMethod.MINIMUM_OF_CRITICAL, MinimumOfCritical),
        (CalculationMethod.HYBRID, Hybrid),
    ])
    def test_method_maps_to_algorithm(self, method, cls):
        algorithm = algorithm_for(method)
        assert isinstance(algorithm, cls)
        assert algorithm.method == method


# ── Weight schedules ─────────────────────────────────────────────────────────

class TestDynamicProjectWeights:
    def test_no_projects_defers_to_expert_judgment(self):
        assert dynamic_project_weights(0) == (Decimal("0"), Decimal("1"))

    def test_step_per_project(self):
        project, expert = dynamic_project_weights(3)
        assert project == Decimal("0.3")
        assert expert == Decimal("0.7")

    def test_cap(self):
        assert dynamic_project_weights(9)[0] == Decimal("0.9")
        assert dynamic_project_weights(25) == (Decimal("0.9"), Decimal("0.1"))


class TestRoleWeights:
    def test_trade_has_no_role_specific_weight(self):
        schedule = role_weights(RoleCategory.TRADE, ROLE_WEIGHTS, ROLE_SPECIFIC_APPLICABLE)
        assert schedule["role_specific"] == (Decimal("0"), False)
        assert schedule["safety"] == (Decimal("0.35"), True)

    def test_builder_rates_role_specific(self):
        schedule = role_weights(RoleCategory.BUILDER, ROLE_WEIGHTS, ROLE_SPECIFIC_APPLICABLE)
        assert schedule["role_specific"] == (Decimal("0.30"), True)

    def test_missing_role_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            role_weights(RoleCategory.BOTH, {"trade": ROLE_WEIGHTS["trade"]}, ROLE_SPECIFIC_APPLICABLE)


# ── Confidence ───────────────────────────────────────────────────────────────

class TestConfidenceGrade:
    def test_tiers_need_count_and_recency(self):
        assert confidence.grade(5, 10, PROJECT_CONFIDENCE_TIERS) == Confidence.HIGH
        assert confidence.grade(5, 45, PROJECT_CONFIDENCE_TIERS) == Confidence.MEDIUM
        assert confidence.grade(2, 45, PROJECT_CONFIDENCE_TIERS) == Confidence.LOW
        assert confidence.grade(10, 100, PROJECT_CONFIDENCE_TIERS) == Confidence.VERY_LOW

    def test_no_data(self):
        assert confidence.grade(0, None, PROJECT_CONFIDENCE_TIERS) == Confidence.VERY_LOW

    def test_single_recent_expert_is_medium(self):
        assert confidence.grade(1, 10, EXPERT_CONFIDENCE_TIERS) == Confidence.MEDIUM


class TestConfidenceBlend:
    def test_weighted_blend(self):
        level, value = confidence.blend([
            (Confidence.HIGH, Decimal("0.5")),
            (Confidence.LOW, Decimal("0.5")),
        ])
        assert value == Decimal("0.7")
        assert level == Confidence.MEDIUM

    def test_single_component(self):
        level, _ = confidence.blend([(Confidence.HIGH, Decimal("1"))])
        assert level == Confidence.HIGH

    def test_zero_weight_is_very_low(self):
        level, value = confidence.blend([])
        assert level == Confidence.VERY_LOW
        assert value == Decimal("0.3")
