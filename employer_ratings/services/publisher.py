"""
Rating Publisher

Persists a ``RatingResult`` as the FinalRating row for its (organization,
date), appends a RatingHistoryEntry when the rating moved, records any
discrepancy, and writes an audit entry.

Recomputing the same date replaces that date's row in place. The history
diff is always taken against whichever row is present at write time: the
same-date row if one exists, otherwise the latest earlier row. A unique
constraint on (organization_id, rating_date) turns concurrent first writes
into an IntegrityError. Updates are guarded by ``row_version``: the
same-date row is re-read with FOR UPDATE and an UPDATE against a version
another writer has already replaced raises StaleDataError. Both are retried
against a fresh read.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.config import settings
from employer_ratings.exceptions import RatingConflictError
from employer_ratings.models import FinalRating, RatingDiscrepancy, RatingHistoryEntry
from employer_ratings.scoring.normalizer import add_months, to_continuous
from employer_ratings.scoring.pipeline import RatingResult
from employer_ratings.scoring.types import Confidence, Scale
from employer_ratings.services.audit_service import AuditService

logger = logging.getLogger(__name__)

SCORE_EPSILON = Decimal("0.000001")

REVIEW_INTERVAL_DAYS = {
    Confidence.VERY_LOW: 30,
    Confidence.LOW: 60,
}
DEFAULT_REVIEW_INTERVAL_DAYS = 90

# (minimum |Δ| on the 0-100 range, magnitude)
MAGNITUDE_BANDS = ((Decimal("30"), 5), (Decimal("20"), 4), (Decimal("10"), 3), (Decimal("5"), 2))
SIGNIFICANT_MAGNITUDE = 3


def next_review_date(as_of: date, confidence: Confidence) -> date:
    return as_of + timedelta(days=REVIEW_INTERVAL_DAYS.get(confidence, DEFAULT_REVIEW_INTERVAL_DAYS))


def change_magnitude(delta: Decimal, scale: str) -> int:
    size = abs(delta)
    if scale == Scale.FOUR_POINT.value:
        # Express four-point moves on the continuous range
        size = size * Decimal("100") / Decimal("3")
    for threshold, magnitude in MAGNITUDE_BANDS:
        if size >= threshold:
            return magnitude
    return 1


class _PriorSnapshot:
    """Values of the row a new rating is diffed against, captured before any write."""

    def __init__(self, row: FinalRating):
        self.rating_date = row.rating_date
        self.final_rating = row.final_rating
        self.final_score = row.final_score
        self.scale = row.scale
        self.components = dict(row.components or {})
        self.weights = dict(row.weights or {})
        self.policy_versions = dict(row.policy_versions or {})
        self.gate_reason = row.gate_reason


class RatingPublisher:
    def __init__(
        self,
        session: AsyncSession,
        retries: int | None = None,
        validity_months: int | None = None,
        audit: bool = True,
    ):
        self.session = session
        self.retries = retries or settings.publish_retries
        self.validity_months = validity_months or settings.rating_validity_months
        self.audit = audit

    async def publish(self, result: RatingResult, actor: str = "system") -> FinalRating:
        """Write ``result``; retry the read-diff-write cycle when another writer got there first."""
        for attempt in range(1, self.retries + 1):
            try:
                row, replaced = await self._write(result)
            except (IntegrityError, StaleDataError):
                await self.session.rollback()
                logger.warning(
                    "Rating write race for organization %s on %s (attempt %d/%d)",
                    result.organization_id, result.as_of, attempt, self.retries,
                )
                continue

            if self.audit:
                await AuditService(self.session).log_rating_published(
                    organization_id=result.organization_id,
                    rating_date=result.as_of,
                    final_rating=row.final_rating,
                    final_score=row.final_score,
                    gate_reason=row.gate_reason,
                    replaced=replaced,
                    actor=actor,
                )
            logger.info(
                "Published %s rating for organization %s on %s (score=%s, confidence=%s)",
                row.final_rating, result.organization_id, result.as_of,
                row.final_score, row.overall_confidence,
                extra={"organization_id": result.organization_id},
            )
            return row

        raise RatingConflictError(result.organization_id, result.as_of, self.retries)

    async def _load_prior(self, organization_id: int, as_of: date) -> tuple[FinalRating | None, FinalRating | None]:
        """(same-date row, latest earlier row)."""
        same_day = await self.session.execute(
            select(FinalRating)
            .where(
                FinalRating.organization_id == organization_id,
                FinalRating.rating_date == as_of,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        existing = same_day.scalar_one_or_none()

        earlier = await self.session.execute(
            select(FinalRating)
            .where(
                FinalRating.organization_id == organization_id,
                FinalRating.rating_date < as_of,
            )
            .order_by(FinalRating.rating_date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return existing, earlier.scalar_one_or_none()

    async def _write(self, result: RatingResult) -> tuple[FinalRating, bool]:
        existing, earlier = await self._load_prior(result.organization_id, result.as_of)
        prior_row = existing or earlier
        prior = _PriorSnapshot(prior_row) if prior_row is not None else None

        values = self._row_values(result)
        if existing is not None:
            values["row_version"] = existing.row_version + 1
            for key, value in values.items():
                setattr(existing, key, value)
            row = existing
            await self.session.execute(
                delete(RatingDiscrepancy).where(RatingDiscrepancy.final_rating_id == row.id)
            )
        else:
            row = FinalRating(
                organization_id=result.organization_id,
                rating_date=result.as_of,
                row_version=1,
                **values,
            )
            self.session.add(row)
        await self.session.flush()

        if result.discrepancy.detected:
            self.session.add(self._discrepancy_row(row, result))

        entry = self._history_entry(row, result, prior)
        if entry is not None:
            self.session.add(entry)
        await self.session.flush()
        return row, existing is not None

    def _row_values(self, result: RatingResult) -> dict:
        return {
            **result.to_dict(),
            "next_review_date": next_review_date(result.as_of, result.overall_confidence),
            "expiry_date": add_months(result.as_of, self.validity_months),
            "is_active": True,
        }

    @staticmethod
    def _discrepancy_row(row: FinalRating, result: RatingResult) -> RatingDiscrepancy:
        d = result.discrepancy
        return RatingDiscrepancy(
            final_rating_id=row.id,
            organization_id=result.organization_id,
            left_component=d.left,
            right_component=d.right,
            left_score=d.left_score,
            right_score=d.right_score,
            left_rating=d.left_rating.value,
            right_rating=d.right_rating.value,
            score_difference=d.score_difference,
            level=d.level.value,
            requires_review=d.requires_review,
            strategy=d.strategy.value,
            resolution=d.resolution.value,
        )

    @staticmethod
    def _changed_inputs(prior: _PriorSnapshot, row: FinalRating) -> list[str]:
        changed = []
        new_components = row.components or {}
        for name in sorted(set(prior.components) | set(new_components)):
            before = (prior.components.get(name) or {}).get("score")
            after = (new_components.get(name) or {}).get("score")
            if before != after:
                changed.append(name)
        if prior.weights.get("configured") != (row.weights or {}).get("configured"):
            changed.append("weights")
        if prior.policy_versions != (row.policy_versions or {}):
            changed.append("policy")
        if prior.gate_reason != row.gate_reason:
            changed.append("gates")
        if prior.scale != row.scale:
            changed.append("scale")
        return changed

    def _history_entry(
        self, row: FinalRating, result: RatingResult, prior: _PriorSnapshot | None,
    ) -> RatingHistoryEntry | None:
        new_score = result.final_score
        new_rating = result.final_rating.value

        if prior is None:
            return RatingHistoryEntry(
                organization_id=result.organization_id,
                final_rating_id=row.id,
                rating_date=result.as_of,
                new_rating=new_rating,
                new_score=new_score,
                change_type="first_rating",
                change_magnitude=1,
                crossed_boundary=False,
                is_significant=False,
                changed_inputs=[],
            )

        # Scores on different scales are compared on the continuous range
        before, after = prior.final_score, new_score
        if prior.scale != row.scale:
            if before is not None and prior.scale == Scale.FOUR_POINT.value:
                before = to_continuous(before)
            if after is not None and row.scale == Scale.FOUR_POINT.value:
                after = to_continuous(after)
            magnitude_scale = Scale.CONTINUOUS.value
        else:
            magnitude_scale = row.scale

        delta = None
        if before is not None and after is not None:
            delta = after - before

        crossed = prior.final_rating != new_rating
        score_moved = (
            (delta is not None and abs(delta) > SCORE_EPSILON)
            or ((before is None) != (after is None))
        )
        if not crossed and not score_moved:
            return None

        if delta is None or delta == 0:
            change_type = "maintained"
        elif delta > 0:
            change_type = "improvement"
        else:
            change_type = "decline"

        magnitude = change_magnitude(delta, magnitude_scale) if delta is not None else 1
        return RatingHistoryEntry(
            organization_id=result.organization_id,
            final_rating_id=row.id,
            rating_date=result.as_of,
            previous_rating_date=prior.rating_date,
            previous_rating=prior.final_rating,
            new_rating=new_rating,
            previous_score=prior.final_score,
            new_score=new_score,
            score_change=delta,
            change_type=change_type,
            change_magnitude=magnitude,
            crossed_boundary=crossed,
            is_significant=magnitude >= SIGNIFICANT_MAGNITUDE or crossed,
            changed_inputs=self._changed_inputs(prior, row),
            days_since_previous=(result.as_of - prior.rating_date).days,
        )
