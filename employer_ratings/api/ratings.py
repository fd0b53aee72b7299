"""
Ratings API Router: calculate, read and batch-recalculate organization ratings.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from employer_ratings.api.deps import get_actor, get_db, get_session_factory
from employer_ratings.models import Organization
from employer_ratings.schemas.schemas import (
    BatchSummaryResponse,
    CalculateRatingRequest,
    ConflictCheckRequest,
    ConflictResponse,
    FinalRatingResponse,
    PreviewRatingRequest,
    RatingHistoryResponse,
    RatingPreviewResponse,
    RecalculateAllRequest,
)
from employer_ratings.scoring.conflicts import detect_conflicts
from employer_ratings.services.batch import BatchFilter, recalculate_all
from employer_ratings.services.rating_service import RatingService

router = APIRouter(prefix="/api", tags=["ratings"])

ORGANIZATION_FIELDS = (
    "name", "abn", "role_category", "employer_type", "enterprise_agreement_status",
    "phone", "email", "website", "address", "suburb", "state", "postcode",
    "estimated_worker_count",
)


@router.post("/organizations/{organization_id}/ratings/calculate", response_model=FinalRatingResponse)
async def calculate_rating(
    organization_id: int,
    body: CalculateRatingRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Calculate and publish the rating for one organization."""
    body = body or CalculateRatingRequest()
    service = RatingService(db)
    return await service.calculate_rating(
        organization_id,
        as_of=body.as_of_date,
        scale=body.scale,
        method=body.method,
        actor=actor,
    )


@router.post("/organizations/{organization_id}/ratings/preview", response_model=RatingPreviewResponse)
async def preview_rating(
    organization_id: int,
    body: PreviewRatingRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Dry run: calculate under the active policy, or under candidate weight sets, without publishing."""
    body = body or PreviewRatingRequest()
    result = await RatingService(db).evaluate(
        organization_id,
        as_of=body.as_of_date,
        scale=body.scale,
        method=body.method,
        candidate_weights=body.weights,
    )
    return {
        "organization_id": result.organization_id,
        "as_of_date": result.as_of,
        **result.to_dict(),
        "persisted": False,
    }


@router.get("/organizations/{organization_id}/ratings/current", response_model=FinalRatingResponse)
async def get_current_rating(
    organization_id: int,
    as_of: date | None = None,
    db: AsyncSession = Depends(get_db),
):
    rating = await RatingService(db).get_current_rating(organization_id, as_of=as_of)
    if rating is None:
        raise HTTPException(status_code=404, detail="No current rating for this organization")
    return rating


@router.get("/organizations/{organization_id}/ratings/history", response_model=RatingHistoryResponse)
async def get_rating_history(
    organization_id: int,
    window_days: int = Query(365, ge=1, le=3650),
    as_of: date | None = None,
    db: AsyncSession = Depends(get_db),
):
    entries = await RatingService(db).get_rating_history(organization_id, window_days, as_of=as_of)
    return RatingHistoryResponse(organization_id=organization_id, window_days=window_days, entries=entries)


@router.post("/organizations/{organization_id}/conflicts", response_model=ConflictResponse)
async def check_conflicts(
    organization_id: int,
    body: ConflictCheckRequest,
    db: AsyncSession = Depends(get_db),
):
    """Classify the conflicts an incoming edit would have with the stored record."""
    org = await db.get(Organization, organization_id)
    if org is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    current = {f: getattr(org, f) for f in ORGANIZATION_FIELDS}
    return detect_conflicts(current, body.changes, body.numeric_strategy).to_dict()


@router.post("/ratings/recalculate-all", response_model=BatchSummaryResponse)
async def recalculate_all_ratings(
    body: RecalculateAllRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    actor: str = Depends(get_actor),
):
    summary = await recalculate_all(
        body.as_of_date or date.today(),
        BatchFilter(
            organization_ids=body.organization_ids,
            role_categories=body.role_categories,
            only_due=body.only_due,
        ),
        session_factory=session_factory,
        scale=body.scale,
        method=body.method,
        actor=actor,
    )
    return summary.to_dict()
