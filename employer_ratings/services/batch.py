"""
Batch recalculation

Recalculates many organizations for one date. Each organization runs in
its own session and transaction, bounded by a semaphore; one failure never
aborts the batch. Per-organization audit entries are suppressed. The single
``batch_recalculated`` entry written at the end carries every organization's
outcome and every failure, untruncated, keeping the audit hash chain linear.

Summary shape::

    {
        "as_of_date": "2026-10-17",
        "total": 120, "succeeded": 118, "failed": 2,
        "by_rating": {"green": 40, "amber": 31, ...},
        "failures": [{"organization_id": 17, "error": "ConfigurationError", "detail": "..."}],
        "failures_truncated": false,
        "duration_seconds": 4.21
    }
"""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from employer_ratings.config import settings
from employer_ratings.database import async_session
from employer_ratings.models import FinalRating, Organization
from employer_ratings.services.audit_service import AuditService
from employer_ratings.services.publisher import RatingPublisher
from employer_ratings.services.rating_service import RatingService

logger = logging.getLogger(__name__)

# Failures listed in an API summary; the audit entry keeps all of them
MAX_REPORTED_FAILURES = 200


@dataclass
class BatchFilter:
    organization_ids: list[int] | None = None
    role_categories: list[str] | None = None
    only_due: bool = False  # only organizations with no rating or a review date on/before as_of


@dataclass
class BatchSummary:
    as_of: date
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    by_rating: Counter = field(default_factory=Counter)
    failures: list[dict] = field(default_factory=list)
    outcomes: list[dict] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "as_of_date": self.as_of.isoformat(),
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "by_rating": dict(self.by_rating),
            "failures": self.failures[:MAX_REPORTED_FAILURES],
            "failures_truncated": len(self.failures) > MAX_REPORTED_FAILURES,
            "duration_seconds": round(self.duration_seconds, 2),
        }

    def audit_details(self) -> dict:
        return {
            **self.to_dict(),
            "failures": sorted(self.failures, key=lambda f: f["organization_id"]),
            "failures_truncated": False,
            "outcomes": sorted(self.outcomes, key=lambda o: o["organization_id"]),
        }


async def select_organizations(session: AsyncSession, as_of: date, flt: BatchFilter) -> list[int]:
    query = select(Organization.id).where(Organization.is_active.is_(True)).order_by(Organization.id)
    if flt.organization_ids:
        query = query.where(Organization.id.in_(flt.organization_ids))
    if flt.role_categories:
        query = query.where(Organization.role_category.in_(flt.role_categories))
    ids = list((await session.execute(query)).scalars())

    if flt.only_due and ids:
        latest = await session.execute(
            select(FinalRating.organization_id, FinalRating.next_review_date, FinalRating.rating_date)
            .where(FinalRating.organization_id.in_(ids), FinalRating.rating_date <= as_of)
            .order_by(FinalRating.organization_id, FinalRating.rating_date)
        )
        review_dates: dict[int, date] = {}
        for org_id, review_date, _ in latest:
            review_dates[org_id] = review_date  # ascending, so the last one wins
        ids = [i for i in ids if i not in review_dates or review_dates[i] <= as_of]
    return ids


async def recalculate_all(
    as_of: date,
    flt: BatchFilter | None = None,
    session_factory: async_sessionmaker | None = None,
    concurrency: int | None = None,
    scale: str | None = None,
    method: str | None = None,
    actor: str = "batch",
) -> BatchSummary:
    """Recalculate every matching organization for ``as_of``."""
    flt = flt or BatchFilter()
    session_factory = session_factory or async_session
    semaphore = asyncio.Semaphore(concurrency or settings.batch_concurrency)
    summary = BatchSummary(as_of=as_of)
    started = time.time()

    async with session_factory() as session:
        org_ids = await select_organizations(session, as_of, flt)
    summary.total = len(org_ids)

    async def _one(org_id: int) -> None:
        async with semaphore:
            async with session_factory() as session:
                try:
                    service = RatingService(session, publisher=RatingPublisher(session, audit=False))
                    row = await service.calculate_rating(org_id, as_of, scale=scale, method=method, actor=actor)
                    outcome = {
                        "organization_id": org_id,
                        "final_rating": row.final_rating,
                        "final_score": row.final_score,
                        "gate_reason": row.gate_reason,
                    }
                    await session.commit()
                except Exception as exc:
                    await session.rollback()
                    logger.exception("Rating recalculation failed for organization %s", org_id)
                    summary.failed += 1
                    summary.failures.append({
                        "organization_id": org_id,
                        "error": type(exc).__name__,
                        "detail": str(exc),
                    })
                    return
        summary.succeeded += 1
        summary.by_rating[outcome["final_rating"]] += 1
        summary.outcomes.append(outcome)

    await asyncio.gather(*(_one(org_id) for org_id in org_ids))
    summary.duration_seconds = time.time() - started

    async with session_factory() as session:
        await AuditService(session).log_batch_recalculated(summary.audit_details(), actor=actor)
        await session.commit()

    logger.info(
        "Batch recalculation for %s: %d/%d succeeded in %.1fs",
        as_of, summary.succeeded, summary.total, summary.duration_seconds,
    )
    return summary
