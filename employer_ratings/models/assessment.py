"""Assessment records read by the rating engine.

Rows are written by upstream collaborators (field staff tooling, the
agreement register, document extraction). The engine only reads them.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Integer, Boolean, Numeric, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from employer_ratings.database import Base, JSONType


class ComplianceAssessment(Base):
    __tablename__ = "compliance_assessments"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    project_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    assessment_type: Mapped[str] = mapped_column(String(40))  # "cbus_status" | "eca_status" | "safety_incidents" | ...
    score: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)  # 0 - 100
    severity_level: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1 - 5
    confidence_level: Mapped[str] = mapped_column(String(10), default="medium")
    assessment_date: Mapped[date] = mapped_column(Date, index=True)
    assessed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ExpertAssessment(Base):
    __tablename__ = "expert_assessments"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    assessor_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    overall_score: Mapped[Decimal] = mapped_column(Numeric(6, 2))  # 0 - 100
    overall_score_4point: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)  # 1 - 4, 4 = good
    confidence_level: Mapped[str] = mapped_column(String(10), default="medium")
    assessment_date: Mapped[date] = mapped_column(Date, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class AssessorReputation(Base):
    __tablename__ = "assessor_reputations"

    id: Mapped[int] = mapped_column(primary_key=True)
    assessor_id: Mapped[str] = mapped_column(String(100), index=True)
    period_start: Mapped[date] = mapped_column(Date)
    period_end: Mapped[date] = mapped_column(Date)
    accuracy_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    reputation_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class AgreementRecord(Base):
    __tablename__ = "agreement_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    agreement_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    certified_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lodged_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    signed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vote_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class CategoricalAssessment(Base):
    __tablename__ = "categorical_assessments"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    project_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    kind: Mapped[str] = mapped_column(String(30))  # "relationship_respect" | "safety" | "subcontractor_use" | "role_specific"
    criteria: Mapped[dict] = mapped_column(JSONType, default=dict)  # criterion name -> 1..4
    overall_value: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)
    scale_convention: Mapped[str] = mapped_column(String(15), default="high_is_best")  # "high_is_best" | "low_is_best"
    assessment_date: Mapped[date] = mapped_column(Date, index=True)
    assessment_complete: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class IntegrityFinding(Base):
    __tablename__ = "integrity_findings"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), index=True)
    finding_type: Mapped[str] = mapped_column(String(40), default="sham_contracting")
    detected_date: Mapped[date] = mapped_column(Date)
    cleared_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
