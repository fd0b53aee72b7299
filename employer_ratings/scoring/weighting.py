"""
Weighting Engine

Combines component scores into one aggregate. The algorithm is a closed
set of strategies selected by ``CalculationMethod``:

  weighted_average     Σ(s·w) / Σw
  weighted_sum         Σ(s·w), unnormalized
  minimum_of_critical  min(s) over critical components only
  hybrid               base·(1 - cw) + critical·cw,
                       base = weighted average of non-critical components

Components without data are excluded and reported, never scored as zero.
Every result is clamped to the scale's bounds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.scoring.types import CalculationMethod, RoleCategory, Scale, SCALE_BOUNDS


@dataclass(frozen=True)
class WeightedComponent:
    name: str
    score: Decimal | None
    weight: Decimal
    critical: bool = False


@dataclass
class WeightingResult:
    method: CalculationMethod
    score: Decimal | None
    effective_weights: dict[str, Decimal] = field(default_factory=dict)
    excluded: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "method": self.method.value,
            "score": float(self.score) if self.score is not None else None,
            "effective_weights": {k: float(v) for k, v in self.effective_weights.items()},
            "excluded": self.excluded,
        }


def _clamp(value: Decimal, scale: Scale) -> Decimal:
    lo, hi = SCALE_BOUNDS[scale]
    return max(lo, min(hi, value))


def _weighted_mean(components: list[WeightedComponent]) -> tuple[Decimal | None, dict[str, Decimal]]:
    usable = [c for c in components if c.score is not None and c.weight > 0]
    total = sum((c.weight for c in usable), Decimal("0"))
    if total == 0:
        return None, {}
    score = sum((c.score * c.weight for c in usable), Decimal("0")) / total
    return score, {c.name: c.weight / total for c in usable}


class WeightingAlgorithm(ABC):
    method: CalculationMethod

    @abstractmethod
    def combine(self, components: list[WeightedComponent], scale: Scale) -> WeightingResult:
        pass

    def _result(self, components, score, weights, scale) -> WeightingResult:
        return WeightingResult(
            method=self.method,
            score=_clamp(score, scale) if score is not None else None,
            effective_weights={c.name: weights.get(c.name, Decimal("0")) for c in components},
            excluded=[c.name for c in components if c.score is None],
        )


class WeightedAverage(WeightingAlgorithm):
    method = CalculationMethod.WEIGHTED_AVERAGE

    def combine(self, components, scale):
        score, weights = _weighted_mean(components)
        return self._result(components, score, weights, scale)


class WeightedSum(WeightingAlgorithm):
    method = CalculationMethod.WEIGHTED_SUM

    def combine(self, components, scale):
        usable = [c for c in components if c.score is not None and c.weight > 0]
        if not usable:
            return self._result(components, None, {}, scale)
        score = sum((c.score * c.weight for c in usable), Decimal("0"))
        return self._result(components, score, {c.name: c.weight for c in usable}, scale)


class MinimumOfCritical(WeightingAlgorithm):
    method = CalculationMethod.MINIMUM_OF_CRITICAL

    def combine(self, components, scale):
        critical = [c for c in components if c.critical and c.score is not None]
        if not critical:
            return self._result(components, None, {}, scale)
        lowest = min(critical, key=lambda c: c.score)
        return self._result(components, lowest.score, {lowest.name: Decimal("1")}, scale)


class Hybrid(WeightingAlgorithm):
    method = CalculationMethod.HYBRID

    def __init__(self, critical_weight: Decimal):
        if not (Decimal("0") <= critical_weight <= Decimal("1")):
            raise ConfigurationError(f"Hybrid critical weight {critical_weight} outside [0, 1]")
        self.critical_weight = critical_weight

    def combine(self, components, scale):
        base, base_weights = _weighted_mean([c for c in components if not c.critical])
        critical = [c for c in components if c.critical and c.score is not None]
        critical_score = min(c.score for c in critical) if critical else None

        if base is None and critical_score is None:
            return self._result(components, None, {}, scale)
        if critical_score is None:
            return self._result(components, base, base_weights, scale)
        critical_name = min(critical, key=lambda c: c.score).name
        if base is None:
            return self._result(components, critical_score, {critical_name: Decimal("1")}, scale)

        cw = self.critical_weight
        score = base * (Decimal("1") - cw) + critical_score * cw
        weights = {name: w * (Decimal("1") - cw) for name, w in base_weights.items()}
        weights[critical_name] = cw
        return self._result(components, score, weights, scale)


def algorithm_for(method: CalculationMethod, critical_weight: Decimal = Decimal("0.3")) -> WeightingAlgorithm:
    if method == CalculationMethod.WEIGHTED_AVERAGE:
        return WeightedAverage()
    if method == CalculationMethod.WEIGHTED_SUM:
        return WeightedSum()
    if method == CalculationMethod.MINIMUM_OF_CRITICAL:
        return MinimumOfCritical()
    if method == CalculationMethod.HYBRID:
        return Hybrid(critical_weight)
    raise ConfigurationError(f"Unsupported calculation method: {method}")


# ── Weight schedules ─────────────────────────────────────────────────────────

def dynamic_project_weights(
    project_count: int,
    step: Decimal = Decimal("0.10"),
    cap: Decimal = Decimal("0.9"),
) -> tuple[Decimal, Decimal]:
    """(project_weight, expert_weight) for an organization with ``project_count`` projects.

    project_weight = min(cap, step·N); expert judgment takes the remainder.
    """
    project_weight = min(cap, step * Decimal(max(project_count, 0)))
    return project_weight, Decimal("1") - project_weight


def role_weights(
    role: RoleCategory,
    role_weight_table: dict[str, dict[str, Decimal]],
    applicable_roles: tuple[str, ...],
) -> dict[str, tuple[Decimal, bool]]:
    """Per-kind (weight, applicable) for a role category.

    Role-specific criteria are marked not applicable, with zero weight, for
    roles outside ``applicable_roles``.
    """
    try:
        weights = role_weight_table[role.value]
    except KeyError:
        raise ConfigurationError(f"No role weights configured for role '{role.value}'") from None
    result = {}
    for kind, weight in weights.items():
        applicable = kind != "role_specific" or role.value in applicable_roles
        result[kind] = (weight if applicable else Decimal("0"), applicable)
    return result
