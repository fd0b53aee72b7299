"""Tests for the versioned, effective-dated policy store."""

from datetime import date
from decimal import Decimal

import pytest

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.scoring.types import Rating, Scale
from employer_ratings.seed.reference_data import CALCULATION_WEIGHTS, seed_default_policy
from employer_ratings.services.audit_service import AuditService
from employer_ratings.services.policy_store import PolicyStore
from tests.conftest import AS_OF

JULY = date(2026, 7, 1)


def _calculation(**changes):
    weights = {k: str(v) for k, v in CALCULATION_WEIGHTS.items()}
    weights.update({k: str(v) for k, v in changes.items()})
    return weights


@pytest.mark.asyncio
class TestSeed:
    async def test_seed_is_idempotent(self, db_session):
        assert await seed_default_policy(db_session) == 0

    async def test_seeded_policy_loads(self, db_session):
        policy = await PolicyStore(db_session).load_policy(AS_OF)
        assert policy.versions["weights:calculation"] == 1
        assert policy.versions["severity:eca_status"] == 1
        assert policy.versions["thresholds:continuous"] == 1
        assert policy.severity_impacts[("eca_status", 5)] == Decimal("-40")
        assert policy.threshold_table(Scale.CONTINUOUS).classify(Decimal("65")) == Rating.YELLOW

    async def test_nothing_in_force_before_effective_date(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).load_policy(date(2019, 12, 31))


@pytest.mark.asyncio
class TestWeightSets:
    async def test_publish_creates_next_version(self, db_session):
        store = PolicyStore(db_session)
        row = await store.publish_weight_set("calculation", _calculation(agreement_weight="0.2"), JULY, created_by="analyst")

        assert row.version == 2
        assert row.weights["agreement_weight"] == "0.2"
        assert await AuditService(db_session).get_entry_count("policy_published") == 1

    async def test_effective_date_selects_version(self, db_session):
        store = PolicyStore(db_session)
        await store.publish_weight_set("calculation", _calculation(agreement_weight="0.2"), JULY)

        before = await store.load_policy(AS_OF)
        after = await store.load_policy(JULY)
        assert before.versions["weights:calculation"] == 1
        assert before.calculation["agreement_weight"] == Decimal("0")
        assert after.versions["weights:calculation"] == 2
        assert after.calculation["agreement_weight"] == Decimal("0.2")

    async def test_deactivation_falls_back_and_keeps_history(self, db_session):
        store = PolicyStore(db_session)
        await store.publish_weight_set("calculation", _calculation(agreement_weight="0.2"), JULY)
        row = await store.deactivate_weight_set("calculation", 2, actor="analyst")

        assert not row.is_active
        assert row.deactivated_at is not None
        policy = await store.load_policy(JULY)
        assert policy.versions["weights:calculation"] == 1

        kept = await store.get_weight_set_version("calculation", 2)
        assert kept is not None
        assert kept.weights["agreement_weight"] == "0.2"
        assert await AuditService(db_session).get_entry_count("policy_deactivated") == 1

    async def test_deactivating_unknown_version(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).deactivate_weight_set("calculation", 9)

    async def test_out_of_range_weight_is_rejected(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).publish_weight_set("calculation", {"project_weight_step": "11"}, JULY)


@pytest.mark.asyncio
class TestTables:
    async def test_publish_threshold_table(self, db_session):
        store = PolicyStore(db_session)
        version = await store.publish_threshold_table(
            Scale.CONTINUOUS,
            [
                ("red", Decimal("0"), Decimal("30")),
                ("amber", Decimal("30"), Decimal("60")),
                ("yellow", Decimal("60"), Decimal("85")),
                ("green", Decimal("85"), Decimal("100")),
            ],
            JULY,
        )
        assert version == 2

        policy = await store.load_policy(JULY)
        assert policy.versions["thresholds:continuous"] == 2
        assert policy.threshold_table(Scale.CONTINUOUS).classify(Decimal("82")) == Rating.YELLOW
        # four-point table untouched
        assert policy.versions["thresholds:four_point"] == 1

    async def test_threshold_table_with_gap_is_rejected(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).publish_threshold_table(
                Scale.CONTINUOUS,
                [("red", 0, 30), ("amber", 35, 60), ("yellow", 60, 85), ("green", 85, 100)],
                JULY,
            )

    async def test_publish_severity_table(self, db_session):
        store = PolicyStore(db_session)
        version = await store.publish_severity_table(
            "payment_issues",
            [(1, "None", 0), (2, "Late", -10), (3, "Repeated", -20), (4, "Systemic", -40), (5, "Wage theft", -60)],
            JULY,
        )
        assert version == 2
        policy = await store.load_policy(JULY)
        assert policy.severity_impacts[("payment_issues", 5)] == Decimal("-60")

    async def test_duplicate_severity_level_is_rejected(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).publish_severity_table(
                "payment_issues", [(1, "None", 0), (1, "Again", -5)], JULY,
            )

    async def test_active_summary(self, db_session):
        summary = await PolicyStore(db_session).active_summary(AS_OF)
        assert summary["versions"]["weights:role.trade"] == 1
        assert summary["weight_sets"]["roles"]["trade"]["safety"] == 0.35
        assert summary["thresholds"]["continuous"][0] == {"rating": "red", "min_score": 0.0, "max_score": 40.0}

    async def test_severity_table_for_unknown_type_is_rejected(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).publish_severity_table("toolbox_talk", [(1, "None", 0)], JULY)

    async def test_compliance_weights_for_unknown_type_are_rejected(self, db_session):
        with pytest.raises(ConfigurationError):
            await PolicyStore(db_session).publish_weight_set(
                "compliance_assessment_types", {"cbus_status": "3", "toolbox_talk": "1"}, JULY,
            )
