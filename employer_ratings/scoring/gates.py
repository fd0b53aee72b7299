"""
Hard-Gate Evaluator

Gates cap the best achievable rating after aggregation. They only ever
downgrade, never act on an unknown rating, and run in a fixed order:

  1. agreement   no / uncertified / lapsed agreement caps the rating
  2. integrity   an active integrity finding caps below the best tier

Each gate's outcome is recorded so reviewers can see why an organization
is not rated higher.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date

from employer_ratings.scoring.normalizer import AgreementStatus
from employer_ratings.scoring.types import IntegrityFlag, Rating, RATING_RANK


def cap_rating(rating: Rating, cap: Rating | None) -> Rating:
    """Lower ``rating`` to ``cap`` if it sits above it. Unknown passes through."""
    if cap is None or rating == Rating.UNKNOWN:
        return rating
    return cap if RATING_RANK[rating] > RATING_RANK[cap] else rating


@dataclass
class GateOutcome:
    gate: str
    evaluated: bool
    binding: bool
    pre_rating: Rating
    post_rating: Rating
    cap: Rating | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "gate": self.gate,
            "evaluated": self.evaluated,
            "binding": self.binding,
            "pre_rating": self.pre_rating.value,
            "post_rating": self.post_rating.value,
            "cap": self.cap.value if self.cap else None,
            "reason": self.reason,
        }


@dataclass
class GateContext:
    as_of: date
    agreement: AgreementStatus
    integrity_flags: list[IntegrityFlag] = field(default_factory=list)
    integrity_cap: Rating = Rating.YELLOW


class Gate(ABC):
    name: str

    @abstractmethod
    def cap_for(self, ctx: GateContext) -> tuple[Rating | None, str | None]:
        """The cap this gate imposes in ``ctx`` and its reason, or (None, None)."""

    def evaluate(self, rating: Rating, ctx: GateContext) -> GateOutcome:
        if rating == Rating.UNKNOWN:
            return GateOutcome(self.name, evaluated=False, binding=False, pre_rating=rating, post_rating=rating)
        cap, reason = self.cap_for(ctx)
        post = cap_rating(rating, cap)
        binding = post != rating
        return GateOutcome(
            self.name,
            evaluated=True,
            binding=binding,
            pre_rating=rating,
            post_rating=post,
            cap=cap,
            reason=reason if binding else None,
        )


class AgreementGate(Gate):
    name = "agreement"

    def cap_for(self, ctx):
        band = ctx.agreement.band
        return band.cap, band.reason


class IntegrityGate(Gate):
    name = "integrity"

    def cap_for(self, ctx):
        if any(flag.is_active(ctx.as_of) for flag in ctx.integrity_flags):
            return ctx.integrity_cap, "integrity_violation"
        return None, None


GATE_ORDER: tuple[Gate, ...] = (AgreementGate(), IntegrityGate())


@dataclass
class GateResult:
    pre_gate_rating: Rating
    final_rating: Rating
    outcomes: list[GateOutcome]

    @property
    def gate_applied(self) -> bool:
        return any(o.binding for o in self.outcomes)

    @property
    def gate_reason(self) -> str | None:
        reason = None
        for outcome in self.outcomes:
            if outcome.binding:
                reason = outcome.reason
        return reason


def apply_gates(rating: Rating, ctx: GateContext, gates: tuple[Gate, ...] = GATE_ORDER) -> GateResult:
    current = rating
    outcomes = []
    for gate in gates:
        outcome = gate.evaluate(current, ctx)
        outcomes.append(outcome)
        current = outcome.post_rating
    return GateResult(pre_gate_rating=rating, final_rating=current, outcomes=outcomes)
