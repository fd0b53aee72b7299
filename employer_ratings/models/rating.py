from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Integer, Boolean, Numeric, ForeignKey, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from employer_ratings.database import Base, JSONType


class FinalRating(Base):
    __tablename__ = "final_ratings"
    __table_args__ = (UniqueConstraint("organization_id", "rating_date", name="uq_final_ratings_org_date"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    rating_date: Mapped[date] = mapped_column(Date, index=True)
    scale: Mapped[str] = mapped_column(String(20))  # "continuous" | "four_point"
    calculation_method: Mapped[str] = mapped_column(String(30))
    final_score: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    final_rating: Mapped[str] = mapped_column(String(10), index=True)  # "red" | "amber" | "yellow" | "green" | "unknown"
    pre_gate_rating: Mapped[str] = mapped_column(String(10))
    overall_confidence: Mapped[str] = mapped_column(String(10))  # "high" | "medium" | "low" | "very_low"
    components: Mapped[dict] = mapped_column(JSONType, default=dict)
    weights: Mapped[dict] = mapped_column(JSONType, default=dict)
    discrepancy_detected: Mapped[bool] = mapped_column(Boolean, default=False)
    discrepancy_level: Mapped[str] = mapped_column(String(10), default="none")
    discrepancy: Mapped[dict] = mapped_column(JSONType, default=dict)
    gate_applied: Mapped[bool] = mapped_column(Boolean, default=False)
    gate_reason: Mapped[str | None] = mapped_column(String(40), nullable=True)
    gate_trace: Mapped[list] = mapped_column(JSONType, default=list)
    review_required: Mapped[bool] = mapped_column(Boolean, default=False)
    review_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    policy_versions: Mapped[dict] = mapped_column(JSONType, default=dict)
    next_review_date: Mapped[date] = mapped_column(Date)
    expiry_date: Mapped[date] = mapped_column(Date, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    calculated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    # Bumped by every write; an UPDATE against a superseded version raises StaleDataError
    row_version: Mapped[int] = mapped_column(Integer, default=1)

    __mapper_args__ = {"version_id_col": row_version, "version_id_generator": False}


class RatingHistoryEntry(Base):
    __tablename__ = "rating_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    final_rating_id: Mapped[int] = mapped_column(ForeignKey("final_ratings.id"), index=True)
    rating_date: Mapped[date] = mapped_column(Date, index=True)
    previous_rating_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    previous_rating: Mapped[str | None] = mapped_column(String(10), nullable=True)
    new_rating: Mapped[str] = mapped_column(String(10))
    previous_score: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    new_score: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    score_change: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    change_type: Mapped[str] = mapped_column(String(20))  # "first_rating" | "improvement" | "decline" | "maintained"
    change_magnitude: Mapped[int] = mapped_column(Integer, default=1)  # 1 - 5
    crossed_boundary: Mapped[bool] = mapped_column(Boolean, default=False)
    is_significant: Mapped[bool] = mapped_column(Boolean, default=False)
    changed_inputs: Mapped[list] = mapped_column(JSONType, default=list)
    days_since_previous: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)


class RatingDiscrepancy(Base):
    __tablename__ = "rating_discrepancies"

    id: Mapped[int] = mapped_column(primary_key=True)
    final_rating_id: Mapped[int] = mapped_column(ForeignKey("final_ratings.id"), index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    left_component: Mapped[str] = mapped_column(String(30))
    right_component: Mapped[str] = mapped_column(String(30))
    left_score: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    right_score: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    left_rating: Mapped[str] = mapped_column(String(10))
    right_rating: Mapped[str] = mapped_column(String(10))
    score_difference: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    level: Mapped[str] = mapped_column(String(10))  # "minor" | "moderate" | "major" | "critical"
    requires_review: Mapped[bool] = mapped_column(Boolean, default=False)
    strategy: Mapped[str] = mapped_column(String(30))
    resolution: Mapped[str] = mapped_column(String(20))  # "auto_resolved" | "deferred_to_human"
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
