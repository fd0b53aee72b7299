"""
Pydantic schemas for API request/response models.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ── Ratings ──

class CalculateRatingRequest(BaseModel):
    as_of_date: date | None = None
    scale: str | None = Field(None, pattern="^(continuous|four_point)$")
    method: str | None = Field(None, pattern="^(weighted_average|weighted_sum|minimum_of_critical|hybrid)$")


class FinalRatingResponse(BaseModel):
    id: int
    organization_id: int
    rating_date: date
    scale: str
    calculation_method: str
    final_score: Decimal | None
    final_rating: str
    pre_gate_rating: str
    overall_confidence: str
    components: dict
    weights: dict
    discrepancy_detected: bool
    discrepancy_level: str
    discrepancy: dict
    gate_applied: bool
    gate_reason: str | None
    gate_trace: list
    review_required: bool
    review_reason: str | None
    policy_versions: dict
    next_review_date: date
    expiry_date: date

    model_config = {"from_attributes": True}


class PreviewRatingRequest(CalculateRatingRequest):
    # Candidate weight sets by name, each replacing the active set of that name
    weights: dict[str, dict[str, Decimal]] | None = None


class RatingPreviewResponse(BaseModel):
    organization_id: int
    as_of_date: date
    scale: str
    calculation_method: str
    final_score: Decimal | None
    final_rating: str
    pre_gate_rating: str
    overall_confidence: str
    components: dict
    weights: dict
    discrepancy_detected: bool
    discrepancy_level: str
    discrepancy: dict
    gate_applied: bool
    gate_reason: str | None
    gate_trace: list
    review_required: bool
    review_reason: str | None
    policy_versions: dict
    persisted: bool = False


class RatingHistoryItem(BaseModel):
    id: int
    rating_date: date
    previous_rating_date: date | None
    previous_rating: str | None
    new_rating: str
    previous_score: Decimal | None
    new_score: Decimal | None
    score_change: Decimal | None
    change_type: str
    change_magnitude: int
    crossed_boundary: bool
    is_significant: bool
    changed_inputs: list
    days_since_previous: int | None

    model_config = {"from_attributes": True}


class RatingHistoryResponse(BaseModel):
    organization_id: int
    window_days: int
    entries: list[RatingHistoryItem]


class RecalculateAllRequest(BaseModel):
    as_of_date: date | None = None
    organization_ids: list[int] | None = None
    role_categories: list[str] | None = None
    only_due: bool = False
    scale: str | None = Field(None, pattern="^(continuous|four_point)$")
    method: str | None = Field(None, pattern="^(weighted_average|weighted_sum|minimum_of_critical|hybrid)$")


class BatchSummaryResponse(BaseModel):
    as_of_date: date
    total: int
    succeeded: int
    failed: int
    by_rating: dict[str, int]
    failures: list[dict]
    failures_truncated: bool
    duration_seconds: float


# ── Field conflicts ──

class ConflictCheckRequest(BaseModel):
    changes: dict
    numeric_strategy: str = Field("prefer_larger", pattern="^(prefer_larger|prefer_latest)$")


class ConflictResponse(BaseModel):
    has_conflicts: bool
    suggested_action: str
    conflicts: list[dict]
    merged: dict


# ── Policy ──

class WeightSetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    weights: dict[str, Decimal]
    effective_from: date
    created_by: str = "admin"


class WeightSetResponse(BaseModel):
    id: int
    name: str
    version: int
    weights: dict
    effective_from: date
    is_active: bool
    created_by: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ThresholdBandIn(BaseModel):
    rating: str = Field(..., pattern="^(red|amber|yellow|green)$")
    min_score: Decimal
    max_score: Decimal


class ThresholdTableCreate(BaseModel):
    scale: str = Field(..., pattern="^(continuous|four_point)$")
    bands: list[ThresholdBandIn]
    effective_from: date
    created_by: str = "admin"


class PolicyVersionResponse(BaseModel):
    kind: str
    name: str
    version: int


class ActivePolicyResponse(BaseModel):
    as_of: date
    versions: dict[str, int]
    weight_sets: dict
    thresholds: dict
