"""Shared test fixtures for rating engine tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

# Point the app at SQLite before anything imports the settings module
os.environ["DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'employer_ratings_app.db')}"
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from employer_ratings.database import Base  # noqa: E402
from employer_ratings.main import app  # noqa: E402
from employer_ratings.api.deps import get_db, get_session_factory  # noqa: E402
from employer_ratings.models import (  # noqa: E402
    AgreementRecord,
    CategoricalAssessment,
    ComplianceAssessment,
    ExpertAssessment,
    Organization,
)
from employer_ratings.scoring.policy import RatingPolicy  # noqa: E402
from employer_ratings.seed.reference_data import seed_default_policy  # noqa: E402

AS_OF = date(2026, 6, 30)


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """A fresh SQLite database per test, with the default policy seeded."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ratings.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_default_policy(session)
        await session.commit()

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def policy() -> RatingPolicy:
    return RatingPolicy.default()


def _override_db(session: AsyncSession):
    """Create a dependency override for get_db."""
    async def _get_db():
        yield session
    return _get_db


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, session_factory) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_db] = _override_db(db_session)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Data builders ────────────────────────────────────────────────────────────

async def make_organization(session: AsyncSession, name: str = "Acme Formwork", role_category: str = "trade", **kwargs) -> Organization:
    org = Organization(name=name, role_category=role_category, **kwargs)
    session.add(org)
    await session.flush()
    return org


async def add_structured(session: AsyncSession, org: Organization, score, assessment_date: date, project_id=None, assessment_type: str = "cbus_status", severity_level=None):
    session.add(ComplianceAssessment(
        organization_id=org.id,
        project_id=project_id,
        assessment_type=assessment_type,
        score=Decimal(str(score)) if score is not None else None,
        severity_level=severity_level,
        assessment_date=assessment_date,
    ))
    await session.flush()


async def add_expert(session: AsyncSession, org: Organization, score, assessment_date: date, confidence_level: str = "medium", score_4point=None):
    session.add(ExpertAssessment(
        organization_id=org.id,
        overall_score=Decimal(str(score)),
        overall_score_4point=Decimal(str(score_4point)) if score_4point is not None else None,
        confidence_level=confidence_level,
        assessment_date=assessment_date,
    ))
    await session.flush()


async def add_agreement(session: AsyncSession, org: Organization, certified_date: date | None):
    session.add(AgreementRecord(organization_id=org.id, agreement_name="Site EBA", certified_date=certified_date))
    await session.flush()


async def add_categorical(session: AsyncSession, org: Organization, kind: str, criteria: dict, assessment_date: date, project_id=None, scale_convention: str = "high_is_best", complete: bool = True):
    session.add(CategoricalAssessment(
        organization_id=org.id,
        project_id=project_id,
        kind=kind,
        criteria=criteria,
        scale_convention=scale_convention,
        assessment_date=assessment_date,
        assessment_complete=complete,
    ))
    await session.flush()
