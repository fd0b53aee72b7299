"""Versioned rating policy tables.

Rows are append-only: a new version is published, an old one is
deactivated, nothing is updated or deleted. Historical calculations record
the versions they used so they can be reconstructed.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Integer, Boolean, Numeric, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from employer_ratings.database import Base, JSONType


class WeightSet(Base):
    __tablename__ = "weight_sets"
    __table_args__ = (UniqueConstraint("name", "version", name="uq_weight_sets_name_version"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(60), index=True)
    version: Mapped[int] = mapped_column(Integer)
    weights: Mapped[dict] = mapped_column(JSONType, default=dict)  # key -> 0..10
    effective_from: Mapped[date] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str] = mapped_column(String(100), default="system")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SeverityLevel(Base):
    __tablename__ = "severity_levels"
    __table_args__ = (
        UniqueConstraint("assessment_type", "version", "severity_level", name="uq_severity_levels_type_version_level"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    assessment_type: Mapped[str] = mapped_column(String(40), index=True)
    version: Mapped[int] = mapped_column(Integer)
    severity_level: Mapped[int] = mapped_column(Integer)  # 1 - 5
    severity_name: Mapped[str] = mapped_column(String(60))
    score_impact: Mapped[Decimal] = mapped_column(Numeric(6, 2))  # -100 .. 100
    effective_from: Mapped[date] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str] = mapped_column(String(100), default="system")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ThresholdBand(Base):
    __tablename__ = "threshold_bands"
    __table_args__ = (UniqueConstraint("scale", "version", "rating", name="uq_threshold_bands_scale_version_rating"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    scale: Mapped[str] = mapped_column(String(20), index=True)  # "continuous" | "four_point"
    version: Mapped[int] = mapped_column(Integer)
    rating: Mapped[str] = mapped_column(String(10))  # "red" | "amber" | "yellow" | "green"
    min_score: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    max_score: Mapped[Decimal] = mapped_column(Numeric(6, 2))
    effective_from: Mapped[date] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str] = mapped_column(String(100), default="system")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
