"""Tests for rating publication, history tracking and current-rating reads."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from employer_ratings.exceptions import OrganizationNotFoundError, RatingConflictError
from employer_ratings.models import FinalRating, IntegrityFinding, Organization, RatingDiscrepancy, RatingHistoryEntry
from employer_ratings.services.audit_service import AuditService
from employer_ratings.services.publisher import RatingPublisher, change_magnitude, next_review_date
from employer_ratings.services.rating_service import RatingService
from employer_ratings.scoring.types import Confidence
from tests.conftest import AS_OF, add_agreement, add_expert, add_structured, make_organization

LATER = AS_OF + timedelta(days=30)


async def _rated_org(session):
    org = await make_organization(session)
    await add_expert(session, org, 90, AS_OF - timedelta(days=10), confidence_level="high")
    await add_agreement(session, org, date(2024, 6, 30))
    return org


async def _count(session, model, *criteria) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar()


# ── Helpers ──────────────────────────────────────────────────────────────────

class TestPublisherHelpers:
    def test_review_interval_follows_confidence(self):
        assert next_review_date(AS_OF, Confidence.VERY_LOW) == AS_OF + timedelta(days=30)
        assert next_review_date(AS_OF, Confidence.LOW) == AS_OF + timedelta(days=60)
        assert next_review_date(AS_OF, Confidence.HIGH) == AS_OF + timedelta(days=90)

    def test_change_magnitude_bands(self):
        assert change_magnitude(Decimal("-45"), "continuous") == 5
        assert change_magnitude(Decimal("12"), "continuous") == 3
        assert change_magnitude(Decimal("2"), "continuous") == 1
        # one full category step on the four-point scale
        assert change_magnitude(Decimal("1"), "four_point") == 5


# ── Publishing ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestPublish:
    async def test_first_rating(self, db_session):
        org = await _rated_org(db_session)
        row = await RatingService(db_session).calculate_rating(org.id, AS_OF)

        assert row.final_rating == "green"
        assert row.final_score == Decimal("90.00")
        assert row.overall_confidence == "medium"
        assert row.next_review_date == AS_OF + timedelta(days=90)
        assert row.expiry_date == date(2026, 12, 30)
        assert row.policy_versions["weights:calculation"] == 1
        assert row.components["expert_judgment"]["score"] == 90.0
        assert row.components["project"]["status"] == "no_data"

        entries = await RatingService(db_session).get_rating_history(org.id, as_of=AS_OF)
        assert len(entries) == 1
        assert entries[0].change_type == "first_rating"
        assert entries[0].previous_rating is None

        audit = AuditService(db_session)
        assert await audit.get_entry_count("rating_published") == 1

    async def test_recompute_same_date_replaces_in_place(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        first = await service.calculate_rating(org.id, AS_OF)
        second = await service.calculate_rating(org.id, AS_OF)

        assert first.id == second.id
        assert await _count(db_session, FinalRating, FinalRating.organization_id == org.id) == 1
        # Unchanged rating and score: no new history entry
        assert await _count(db_session, RatingHistoryEntry, RatingHistoryEntry.organization_id == org.id) == 1

        entries = await AuditService(db_session).get_entries(event_type="rating_published")
        assert len(entries) == 2
        assert entries[0].details["replaced"] is True

    async def test_rating_change_is_recorded(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        await service.calculate_rating(org.id, AS_OF)

        for project_id in range(1, 11):
            await add_structured(db_session, org, 40, LATER - timedelta(days=10), project_id=project_id)
        row = await service.calculate_rating(org.id, LATER)

        assert row.final_rating == "amber"
        assert row.final_score == Decimal("45.00")
        assert row.review_required
        assert row.review_reason == "discrepancy_critical"

        entries = await service.get_rating_history(org.id, as_of=LATER)
        assert len(entries) == 2
        latest = entries[0]
        assert latest.rating_date == LATER
        assert latest.previous_rating == "green"
        assert latest.new_rating == "amber"
        assert latest.score_change == Decimal("-45.00")
        assert latest.change_type == "decline"
        assert latest.change_magnitude == 5
        assert latest.crossed_boundary
        assert latest.is_significant
        assert latest.days_since_previous == 30
        assert "project" in latest.changed_inputs
        assert "weights" in latest.changed_inputs

        discrepancies = await _count(db_session, RatingDiscrepancy, RatingDiscrepancy.final_rating_id == row.id)
        assert discrepancies == 1

    async def test_integrity_finding_caps_published_rating(self, db_session):
        org = await _rated_org(db_session)
        db_session.add(IntegrityFinding(organization_id=org.id, detected_date=AS_OF - timedelta(days=5)))
        await db_session.flush()

        row = await RatingService(db_session).calculate_rating(org.id, AS_OF)
        assert row.pre_gate_rating == "green"
        assert row.final_rating == "yellow"
        assert row.gate_applied
        assert row.gate_reason == "integrity_violation"
        assert [g["gate"] for g in row.gate_trace] == ["agreement", "integrity"]

    async def test_unknown_organization(self, db_session):
        with pytest.raises(OrganizationNotFoundError):
            await RatingService(db_session).calculate_rating(4242, AS_OF)

    async def test_audit_chain_stays_valid(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        await service.calculate_rating(org.id, AS_OF)
        await service.calculate_rating(org.id, LATER)

        result = await AuditService(db_session).verify_chain_integrity()
        assert result["valid"]
        assert result["entries_checked"] == 2


@pytest.mark.asyncio
class TestWriteRace:
    async def test_retries_then_gives_up(self, db_session, monkeypatch):
        org = await _rated_org(db_session)
        result = await RatingService(db_session).evaluate(org.id, AS_OF)
        publisher = RatingPublisher(db_session, retries=2)
        calls = []

        async def _always_conflicts(_result):
            calls.append(1)
            raise IntegrityError("INSERT INTO final_ratings", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(publisher, "_write", _always_conflicts)
        with pytest.raises(RatingConflictError):
            await publisher.publish(result)
        assert len(calls) == 2

    async def test_succeeds_after_one_conflict(self, db_session, monkeypatch):
        org = await _rated_org(db_session)
        await db_session.commit()
        result = await RatingService(db_session).evaluate(org.id, AS_OF)
        publisher = RatingPublisher(db_session)
        real_write = publisher._write
        attempts = []

        async def _conflict_once(res):
            attempts.append(1)
            if len(attempts) == 1:
                raise IntegrityError("INSERT INTO final_ratings", {}, Exception("UNIQUE constraint failed"))
            return await real_write(res)

        monkeypatch.setattr(publisher, "_write", _conflict_once)
        row = await publisher.publish(result)
        assert row.final_rating == "green"
        assert len(attempts) == 2


async def _seed_rated_org(session_factory) -> int:
    async with session_factory() as session:
        org = await _rated_org(session)
        await session.commit()
        return org.id


async def _competing_decline(session_factory, org_id: int) -> None:
    """Another writer adds project data and publishes amber for the same date."""
    async with session_factory() as session:
        org = await session.get(Organization, org_id)
        for project_id in range(1, 11):
            await add_structured(session, org, 40, AS_OF - timedelta(days=10), project_id=project_id)
        await RatingService(session).calculate_rating(org_id, AS_OF, actor="competitor")
        await session.commit()


def _compete_after_first_read(publisher, session_factory, org_id, loads):
    real_load = publisher._load_prior

    async def _load_prior(organization_id, as_of):
        prior = await real_load(organization_id, as_of)
        loads.append(prior)
        if len(loads) == 1:
            await _competing_decline(session_factory, org_id)
        return prior

    return _load_prior


@pytest.mark.asyncio
class TestConcurrentWriters:
    async def test_same_date_update_is_retried_against_the_winner(self, session_factory, monkeypatch):
        org_id = await _seed_rated_org(session_factory)
        async with session_factory() as session:
            await RatingService(session).calculate_rating(org_id, AS_OF)
            await session.commit()

        loads = []
        async with session_factory() as session:
            result = await RatingService(session).evaluate(org_id, AS_OF)
            publisher = RatingPublisher(session)
            monkeypatch.setattr(publisher, "_load_prior", _compete_after_first_read(publisher, session_factory, org_id, loads))
            row = await publisher.publish(result)
            await session.commit()

        assert len(loads) == 2
        assert row.final_rating == "green"

        async with session_factory() as session:
            stored = (await session.execute(
                select(FinalRating).where(FinalRating.organization_id == org_id)
            )).scalars().all()
            assert len(stored) == 1
            assert stored[0].final_rating == "green"
            assert stored[0].final_score == Decimal("90.00")
            assert stored[0].row_version == 3

            entries = await RatingService(session).get_rating_history(org_id, as_of=AS_OF)
            assert [e.change_type for e in entries] == ["improvement", "decline", "first_rating"]
            # The retried diff is taken against the competitor's amber row
            assert entries[0].previous_rating == "amber"
            assert entries[0].previous_score == Decimal("45.00")

            assert (await AuditService(session).verify_chain_integrity())["valid"]

    async def test_first_write_collides_on_unique_constraint(self, session_factory, monkeypatch):
        org_id = await _seed_rated_org(session_factory)

        loads = []
        async with session_factory() as session:
            result = await RatingService(session).evaluate(org_id, AS_OF)
            publisher = RatingPublisher(session)
            monkeypatch.setattr(publisher, "_load_prior", _compete_after_first_read(publisher, session_factory, org_id, loads))
            row = await publisher.publish(result)
            await session.commit()

        assert loads[0] == (None, None)
        assert len(loads) == 2
        assert row.final_rating == "green"

        async with session_factory() as session:
            stored = (await session.execute(
                select(FinalRating).where(FinalRating.organization_id == org_id)
            )).scalars().all()
            assert len(stored) == 1
            assert stored[0].final_rating == "green"
            assert stored[0].row_version == 2

            entries = await RatingService(session).get_rating_history(org_id, as_of=AS_OF)
            assert [e.change_type for e in entries] == ["improvement", "first_rating"]
            assert entries[1].new_rating == "amber"
            assert entries[0].previous_rating == "amber"

    async def test_recompute_in_same_session_bumps_row_version(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        first = await service.calculate_rating(org.id, AS_OF)
        assert first.row_version == 1
        second = await service.calculate_rating(org.id, AS_OF)
        assert second.row_version == 2


# ── Current rating ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestCurrentRating:
    async def test_latest_unexpired_row(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        await service.calculate_rating(org.id, AS_OF)

        current = await service.get_current_rating(org.id, as_of=AS_OF + timedelta(days=1))
        assert current is not None
        assert current.rating_date == AS_OF

    async def test_expired_or_future_rating_is_not_current(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        await service.calculate_rating(org.id, AS_OF)

        assert await service.get_current_rating(org.id, as_of=date(2026, 12, 30)) is None
        assert await service.get_current_rating(org.id, as_of=AS_OF - timedelta(days=1)) is None

    async def test_history_window(self, db_session):
        org = await _rated_org(db_session)
        service = RatingService(db_session)
        await service.calculate_rating(org.id, AS_OF)

        assert await service.get_rating_history(org.id, window_days=30, as_of=AS_OF + timedelta(days=60)) == []
