"""
Rating Service

The outbound operations of the engine:

  calculate_rating(organization_id, as_of)  -> FinalRating
  evaluate(organization_id, as_of)          -> RatingResult (dry run)
  get_current_rating(organization_id)       -> FinalRating | None
  get_rating_history(organization_id, days) -> [RatingHistoryEntry]

Reads assessments through the repository, loads the policy in force on the
calculation date, runs the pure engine, and hands the result to the
publisher. The current rating is a query (latest active, unexpired row),
never a cached field.
"""

import logging
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.config import settings
from employer_ratings.exceptions import OrganizationNotFoundError
from employer_ratings.models import FinalRating, RatingHistoryEntry
from employer_ratings.scoring.pipeline import RatingEngine, RatingResult
from employer_ratings.scoring.types import CalculationMethod, Scale
from employer_ratings.services.policy_store import PolicyStore
from employer_ratings.services.publisher import RatingPublisher
from employer_ratings.services.repository import AssessmentRepository, SqlAssessmentRepository

logger = logging.getLogger(__name__)


class RatingService:
    def __init__(
        self,
        session: AsyncSession,
        repository: AssessmentRepository | None = None,
        publisher: RatingPublisher | None = None,
    ):
        self.session = session
        self.repository = repository or SqlAssessmentRepository(session)
        self.policy_store = PolicyStore(session)
        self.publisher = publisher or RatingPublisher(session)

    async def evaluate(
        self,
        organization_id: int,
        as_of: date | None = None,
        scale: Scale | str | None = None,
        method: CalculationMethod | str | None = None,
        candidate_weights: dict[str, dict] | None = None,
    ) -> RatingResult:
        """Run the engine without publishing, optionally under candidate weight sets."""
        as_of = as_of or date.today()
        scale = Scale(scale or settings.default_scale)
        method = CalculationMethod(method or settings.default_method)

        organization = await self.repository.get_organization(organization_id)
        if organization is None:
            raise OrganizationNotFoundError(organization_id)

        policy = await self.policy_store.load_policy(as_of, candidate_weights)
        bundle = await self.repository.load_bundle(organization, as_of, policy.lookbacks.longest)
        return RatingEngine(policy).calculate(bundle, as_of, scale=scale, method=method)

    async def calculate_rating(
        self,
        organization_id: int,
        as_of: date | None = None,
        scale: Scale | str | None = None,
        method: CalculationMethod | str | None = None,
        actor: str = "system",
    ) -> FinalRating:
        result = await self.evaluate(organization_id, as_of, scale, method)
        return await self.publisher.publish(result, actor=actor)

    async def get_current_rating(self, organization_id: int, as_of: date | None = None) -> FinalRating | None:
        as_of = as_of or date.today()
        result = await self.session.execute(
            select(FinalRating)
            .where(
                FinalRating.organization_id == organization_id,
                FinalRating.is_active.is_(True),
                FinalRating.rating_date <= as_of,
                FinalRating.expiry_date > as_of,
            )
            .order_by(FinalRating.rating_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_rating_history(
        self,
        organization_id: int,
        window_days: int = 365,
        as_of: date | None = None,
    ) -> list[RatingHistoryEntry]:
        as_of = as_of or date.today()
        result = await self.session.execute(
            select(RatingHistoryEntry)
            .where(
                RatingHistoryEntry.organization_id == organization_id,
                RatingHistoryEntry.rating_date >= as_of - timedelta(days=window_days),
                RatingHistoryEntry.rating_date <= as_of,
            )
            .order_by(RatingHistoryEntry.rating_date.desc(), RatingHistoryEntry.id.desc())
        )
        return list(result.scalars())
