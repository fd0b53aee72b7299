"""
Assessment Repository

Read-only access to the assessment records the engine consumes. The
``AssessmentRepository`` interface is what the engine depends on; the SQL
implementation reads the upstream tables directly.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.models import (
    AgreementRecord,
    AssessorReputation,
    CategoricalAssessment,
    ComplianceAssessment,
    ExpertAssessment,
    IntegrityFinding,
    Organization,
)
from employer_ratings.scoring.types import (
    AgreementInput,
    AssessmentBundle,
    CategoricalInput,
    CategoricalKind,
    ExpertAssessmentInput,
    IntegrityFlag,
    OrganizationSnapshot,
    RoleCategory,
    ScaleConvention,
    StructuredAssessment,
)

logger = logging.getLogger(__name__)


def _role(value: str | None) -> RoleCategory:
    try:
        return RoleCategory(value or "unknown")
    except ValueError:
        logger.warning("Unrecognised role category %r, treating as unknown", value)
        return RoleCategory.UNKNOWN


class AssessmentRepository(ABC):
    @abstractmethod
    async def get_organization(self, organization_id: int) -> OrganizationSnapshot | None:
        pass

    @abstractmethod
    async def load_bundle(
        self, organization: OrganizationSnapshot, as_of: date, lookback_days: int,
    ) -> AssessmentBundle:
        """All active assessments dated within ``lookback_days`` before ``as_of``.

        Agreement records and integrity findings are returned regardless of
        age; the engine decides how old is too old.
        """


class SqlAssessmentRepository(AssessmentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_organization(self, organization_id: int) -> OrganizationSnapshot | None:
        org = await self.session.get(Organization, organization_id)
        if org is None:
            return None
        return OrganizationSnapshot(id=org.id, name=org.name, role_category=_role(org.role_category))

    async def load_bundle(self, organization, as_of, lookback_days):
        since = as_of - timedelta(days=lookback_days)
        org_id = organization.id

        structured = await self.session.execute(
            select(ComplianceAssessment).where(
                ComplianceAssessment.organization_id == org_id,
                ComplianceAssessment.is_active.is_(True),
                ComplianceAssessment.assessment_date >= since,
                ComplianceAssessment.assessment_date <= as_of,
            )
        )
        expert_rows = list((await self.session.execute(
            select(ExpertAssessment).where(
                ExpertAssessment.organization_id == org_id,
                ExpertAssessment.is_active.is_(True),
                ExpertAssessment.assessment_date >= since,
                ExpertAssessment.assessment_date <= as_of,
            )
        )).scalars())
        agreements = await self.session.execute(
            select(AgreementRecord).where(
                AgreementRecord.organization_id == org_id,
                AgreementRecord.is_active.is_(True),
            )
        )
        categorical = await self.session.execute(
            select(CategoricalAssessment).where(
                CategoricalAssessment.organization_id == org_id,
                CategoricalAssessment.is_active.is_(True),
                CategoricalAssessment.assessment_complete.is_(True),
                CategoricalAssessment.assessment_date >= since,
                CategoricalAssessment.assessment_date <= as_of,
            )
        )
        findings = await self.session.execute(
            select(IntegrityFinding).where(IntegrityFinding.organization_id == org_id)
        )

        reputations = await self._reputations({e.assessor_id for e in expert_rows if e.assessor_id})

        return AssessmentBundle(
            organization=organization,
            structured=[
                StructuredAssessment(
                    assessment_type=a.assessment_type,
                    score=a.score,
                    assessment_date=a.assessment_date,
                    severity_level=a.severity_level,
                    confidence_level=a.confidence_level,
                    project_id=a.project_id,
                )
                for a in structured.scalars()
            ],
            expert=[self._expert_input(e, reputations.get(e.assessor_id, [])) for e in expert_rows],
            agreements=[
                AgreementInput(
                    certified_date=r.certified_date,
                    lodged_date=r.lodged_date,
                    signed_date=r.signed_date,
                    vote_date=r.vote_date,
                )
                for r in agreements.scalars()
            ],
            categorical=[
                CategoricalInput(
                    kind=CategoricalKind(c.kind),
                    assessment_date=c.assessment_date,
                    criteria=dict(c.criteria or {}),
                    overall_value=c.overall_value,
                    scale_convention=ScaleConvention(c.scale_convention),
                    project_id=c.project_id,
                )
                for c in categorical.scalars()
            ],
            integrity_flags=[
                IntegrityFlag(
                    finding_type=f.finding_type,
                    detected_date=f.detected_date,
                    cleared_date=f.cleared_date,
                )
                for f in findings.scalars()
            ],
        )

    async def _reputations(self, assessor_ids: set[str]) -> dict[str, list[AssessorReputation]]:
        if not assessor_ids:
            return {}
        result = await self.session.execute(
            select(AssessorReputation)
            .where(AssessorReputation.assessor_id.in_(assessor_ids))
            .order_by(AssessorReputation.period_end.desc())
        )
        by_assessor: dict[str, list[AssessorReputation]] = {}
        for rep in result.scalars():
            by_assessor.setdefault(rep.assessor_id, []).append(rep)
        return by_assessor

    @staticmethod
    def _expert_input(e: ExpertAssessment, reputations: list[AssessorReputation]) -> ExpertAssessmentInput:
        # Reputation for the period the assessment was made in; latest period wins
        rep = next(
            (r for r in reputations if r.period_start <= e.assessment_date <= r.period_end),
            None,
        )
        return ExpertAssessmentInput(
            overall_score=e.overall_score,
            assessment_date=e.assessment_date,
            confidence_level=e.confidence_level,
            overall_score_4point=e.overall_score_4point,
            assessor_id=e.assessor_id,
            accuracy_percentage=rep.accuracy_percentage if rep else None,
            reputation_score=rep.reputation_score if rep else None,
        )
