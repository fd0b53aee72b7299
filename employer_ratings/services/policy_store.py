"""
Policy Store

Append-only, effective-dated store for weight sets, severity tables and
threshold tables. Publishing creates a new version; deactivating flips
``is_active``. Nothing is edited or deleted, so any past calculation can be
reconstructed from the versions it recorded.

Active version of a named policy on a date = the active row with the
greatest ``effective_from`` on or before that date, highest version on ties.
"""

import logging
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.exceptions import ConfigurationError
from employer_ratings.models import WeightSet, SeverityLevel, ThresholdBand
from employer_ratings.scoring.policy import (
    RatingPolicy,
    ThresholdTable,
    to_decimal,
    validate_assessment_types,
    validate_weights,
)
from employer_ratings.scoring.types import Scale
from employer_ratings.services.audit_service import AuditService

logger = logging.getLogger(__name__)


def _latest_version_rows(rows, key):
    """Group rows by ``key`` and keep only the winning version's rows for each group."""
    grouped: dict[str, dict[int, list]] = defaultdict(lambda: defaultdict(list))
    effective: dict[tuple[str, int], date] = {}
    for row in rows:
        grouped[key(row)][row.version].append(row)
        effective[(key(row), row.version)] = row.effective_from

    winners = {}
    for group, versions in grouped.items():
        best = max(versions, key=lambda v: (effective[(group, v)], v))
        winners[group] = (best, versions[best])
    return winners


class PolicyStore:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    # ── Weight sets ──

    async def _next_version(self, column, *criteria) -> int:
        result = await self.session.execute(select(func.max(column)).where(*criteria))
        return (result.scalar() or 0) + 1

    async def publish_weight_set(
        self,
        name: str,
        weights: dict,
        effective_from: date,
        created_by: str = "system",
    ) -> WeightSet:
        validated = validate_weights(name, weights)
        if name == "compliance_assessment_types":
            validate_assessment_types(validated, f"Weight set '{name}'")
        version = await self._next_version(WeightSet.version, WeightSet.name == name)
        row = WeightSet(
            name=name,
            version=version,
            weights={k: str(v) for k, v in validated.items()},
            effective_from=effective_from,
            created_by=created_by,
        )
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        await self.audit.log_policy_published(
            "weight_set", name, version, created_by,
            {"weights": row.weights, "effective_from": effective_from},
        )
        logger.info("Published weight set %s v%d effective %s", name, version, effective_from)
        return row

    async def deactivate_weight_set(self, name: str, version: int, actor: str = "system") -> WeightSet:
        row = await self.get_weight_set_version(name, version)
        if row is None:
            raise ConfigurationError(f"Weight set '{name}' version {version} does not exist")
        if row.is_active:
            row.is_active = False
            row.deactivated_at = datetime.now()
            await self.session.flush()
            await self.audit.log_policy_deactivated("weight_set", name, version, actor)
        return row

    async def get_weight_set_version(self, name: str, version: int) -> WeightSet | None:
        """Any version, active or not: past calculations must stay reconstructable."""
        result = await self.session.execute(
            select(WeightSet).where(WeightSet.name == name, WeightSet.version == version)
        )
        return result.scalar_one_or_none()

    async def active_weight_sets(self, as_of: date) -> dict[str, WeightSet]:
        result = await self.session.execute(
            select(WeightSet).where(WeightSet.is_active.is_(True), WeightSet.effective_from <= as_of)
        )
        winners = {}
        for row in result.scalars():
            current = winners.get(row.name)
            if current is None or (row.effective_from, row.version) > (current.effective_from, current.version):
                winners[row.name] = row
        return winners

    # ── Severity tables ──

    async def publish_severity_table(
        self,
        assessment_type: str,
        levels: list[tuple[int, str, object]],
        effective_from: date,
        created_by: str = "system",
    ) -> int:
        validate_assessment_types([assessment_type], "Severity table")
        seen = set()
        for level, _name, impact in levels:
            if not (1 <= level <= 5) or level in seen:
                raise ConfigurationError(f"Invalid or duplicate severity level {level} for {assessment_type}")
            seen.add(level)
            if not (-100 <= to_decimal(impact) <= 100):
                raise ConfigurationError(f"Severity impact {impact} for {assessment_type} outside [-100, 100]")

        version = await self._next_version(SeverityLevel.version, SeverityLevel.assessment_type == assessment_type)
        self.session.add_all([
            SeverityLevel(
                assessment_type=assessment_type,
                version=version,
                severity_level=level,
                severity_name=level_name,
                score_impact=to_decimal(impact),
                effective_from=effective_from,
                created_by=created_by,
            )
            for level, level_name, impact in levels
        ])
        await self.session.flush()
        await self.audit.log_policy_published(
            "severity_table", assessment_type, version, created_by,
            {"levels": [list(level) for level in levels], "effective_from": effective_from},
        )
        return version

    # ── Threshold tables ──

    async def publish_threshold_table(
        self,
        scale: Scale,
        bands: list[tuple[str, object, object]],
        effective_from: date,
        created_by: str = "system",
    ) -> int:
        # Raises ConfigurationError unless the bands partition the domain
        ThresholdTable.from_rows(scale, bands)

        version = await self._next_version(ThresholdBand.version, ThresholdBand.scale == scale.value)
        self.session.add_all([
            ThresholdBand(
                scale=scale.value,
                version=version,
                rating=rating,
                min_score=to_decimal(lo),
                max_score=to_decimal(hi),
                effective_from=effective_from,
                created_by=created_by,
            )
            for rating, lo, hi in bands
        ])
        await self.session.flush()
        await self.audit.log_policy_published(
            "threshold_table", scale.value, version, created_by,
            {"bands": [list(b) for b in bands], "effective_from": effective_from},
        )
        return version

    # ── Policy assembly ──

    async def load_policy(self, as_of: date, candidate_weights: dict[str, dict] | None = None) -> RatingPolicy:
        """Build the ``RatingPolicy`` in force on ``as_of``.

        ``candidate_weights`` replaces named active weight sets for a dry run.
        A replaced set is recorded as version 0.
        """
        weight_sets = await self.active_weight_sets(as_of)

        severity = await self.session.execute(
            select(SeverityLevel).where(SeverityLevel.is_active.is_(True), SeverityLevel.effective_from <= as_of)
        )
        severity_winners = _latest_version_rows(severity.scalars(), key=lambda r: r.assessment_type)

        bands = await self.session.execute(
            select(ThresholdBand).where(ThresholdBand.is_active.is_(True), ThresholdBand.effective_from <= as_of)
        )
        band_winners = _latest_version_rows(bands.scalars(), key=lambda r: r.scale)

        versions: dict[str, int] = {f"weights:{name}": row.version for name, row in weight_sets.items()}
        versions.update({f"severity:{t}": v for t, (v, _) in severity_winners.items()})
        versions.update({f"thresholds:{s}": v for s, (v, _) in band_winners.items()})

        raw_weights = {name: row.weights for name, row in weight_sets.items()}
        for name, weights in (candidate_weights or {}).items():
            if name not in raw_weights:
                raise ConfigurationError(f"No active weight set '{name}' to replace")
            raw_weights[name] = weights
            versions[f"weights:{name}"] = 0

        return RatingPolicy.from_weight_sets(
            raw_weights,
            {
                t: [(r.severity_level, r.severity_name, r.score_impact) for r in rows]
                for t, (_, rows) in severity_winners.items()
            },
            {
                s: [(r.rating, r.min_score, r.max_score) for r in rows]
                for s, (_, rows) in band_winners.items()
            },
            versions=versions,
        )

    async def active_summary(self, as_of: date) -> dict:
        policy = await self.load_policy(as_of)
        return {
            "as_of": as_of,
            "versions": policy.versions,
            "weight_sets": {
                "compliance_assessment_types": {k: float(v) for k, v in policy.compliance_type_weights.items()},
                "calculation": {k: float(v) for k, v in policy.calculation.items()},
                "roles": {r: {k: float(v) for k, v in w.items()} for r, w in policy.role_weights.items()},
                "criteria": {c: {k: float(v) for k, v in w.items()} for c, w in policy.criteria_weights.items()},
            },
            "thresholds": {
                scale.value: [
                    {"rating": b.rating.value, "min_score": float(b.min_score), "max_score": float(b.max_score)}
                    for b in table.bands
                ]
                for scale, table in policy.thresholds.items()
            },
        }
