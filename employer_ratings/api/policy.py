"""
Policy API Router: publish and deactivate versioned weight sets and threshold tables.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.api.deps import get_actor, get_db
from employer_ratings.schemas.schemas import (
    ActivePolicyResponse,
    PolicyVersionResponse,
    ThresholdTableCreate,
    WeightSetCreate,
    WeightSetResponse,
)
from employer_ratings.scoring.types import Scale
from employer_ratings.services.policy_store import PolicyStore

router = APIRouter(prefix="/api/policy", tags=["policy"])


@router.get("/active", response_model=ActivePolicyResponse)
async def get_active_policy(as_of: date | None = None, db: AsyncSession = Depends(get_db)):
    """Return the policy in force on a date (today by default) with its versions."""
    return await PolicyStore(db).active_summary(as_of or date.today())


@router.post("/weight-sets", response_model=WeightSetResponse, status_code=201)
async def publish_weight_set(body: WeightSetCreate, db: AsyncSession = Depends(get_db)):
    return await PolicyStore(db).publish_weight_set(
        body.name, body.weights, body.effective_from, created_by=body.created_by,
    )


@router.get("/weight-sets/{name}/{version}", response_model=WeightSetResponse)
async def get_weight_set_version(name: str, version: int, db: AsyncSession = Depends(get_db)):
    row = await PolicyStore(db).get_weight_set_version(name, version)
    if row is None:
        raise HTTPException(status_code=404, detail="Weight set version not found")
    return row


@router.post("/weight-sets/{name}/{version}/deactivate", response_model=WeightSetResponse)
async def deactivate_weight_set(
    name: str,
    version: int,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    return await PolicyStore(db).deactivate_weight_set(name, version, actor=actor)


@router.post("/threshold-tables", response_model=PolicyVersionResponse, status_code=201)
async def publish_threshold_table(body: ThresholdTableCreate, db: AsyncSession = Depends(get_db)):
    version = await PolicyStore(db).publish_threshold_table(
        Scale(body.scale),
        [(b.rating, b.min_score, b.max_score) for b in body.bands],
        body.effective_from,
        created_by=body.created_by,
    )
    return PolicyVersionResponse(kind="threshold_table", name=body.scale, version=version)
