"""Default rating policy: weight sets, severity tables and threshold bands.

Loaded into the versioned policy tables by ``seed_default_policy``; the
pure scoring tests build a ``RatingPolicy`` straight from these constants.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.models import WeightSet, SeverityLevel, ThresholdBand

DEFAULT_EFFECTIVE_FROM = date(2020, 1, 1)

# ──────────────────────────────────────────────
# Weight sets (every value in [0, 10])
# ──────────────────────────────────────────────
COMPLIANCE_TYPE_WEIGHTS = {
    "cbus_status": Decimal("3.0"),
    "incolink_status": Decimal("2.5"),
    "site_visit_report": Decimal("2.0"),
    "delegate_report": Decimal("1.5"),
    "organiser_verbal_report": Decimal("1.0"),
    "organiser_written_report": Decimal("1.2"),
    "eca_status": Decimal("2.8"),
    "safety_incidents": Decimal("2.5"),
    "industrial_disputes": Decimal("3.0"),
    "payment_issues": Decimal("2.7"),
}

CRITERIA_WEIGHTS = {
    "relationship_respect": {
        "right_of_entry": Decimal("0.25"),
        "delegate_accommodation": Decimal("0.25"),
        "access_to_information": Decimal("0.25"),
        "access_to_inductions": Decimal("0.25"),
    },
    "safety": {
        "hsr_respect": Decimal("0.4"),
        "general_safety": Decimal("0.4"),
        "safety_incidents": Decimal("0.2"),
    },
    "subcontractor_use": {
        "usage": Decimal("0.5"),
        "subcontractor_compliance": Decimal("0.25"),
        "payment_practices": Decimal("0.25"),
    },
    "role_specific": {
        "tender_consultation": Decimal("0.2"),
        "open_communication": Decimal("0.2"),
        "delegate_facilities": Decimal("0.2"),
        "project_coordination": Decimal("0.2"),
        "dispute_resolution": Decimal("0.2"),
    },
}

# (relationship_respect, safety, subcontractor_use, role_specific)
ROLE_WEIGHTS = {
    "trade": {
        "relationship_respect": Decimal("0.35"),
        "safety": Decimal("0.35"),
        "subcontractor_use": Decimal("0.30"),
        "role_specific": Decimal("0"),
    },
    "builder": {
        "relationship_respect": Decimal("0.25"),
        "safety": Decimal("0.25"),
        "subcontractor_use": Decimal("0.20"),
        "role_specific": Decimal("0.30"),
    },
    "both": {
        "relationship_respect": Decimal("0.30"),
        "safety": Decimal("0.30"),
        "subcontractor_use": Decimal("0.20"),
        "role_specific": Decimal("0.20"),
    },
    "unknown": {
        "relationship_respect": Decimal("0.40"),
        "safety": Decimal("0.40"),
        "subcontractor_use": Decimal("0.20"),
        "role_specific": Decimal("0"),
    },
}

# Roles whose role-specific criteria are rated at all
ROLE_SPECIFIC_APPLICABLE = ("builder", "both")

CALCULATION_WEIGHTS = {
    "project_weight_step": Decimal("0.10"),
    "project_weight_cap": Decimal("0.9"),
    "agreement_weight": Decimal("0"),
    "critical_weight": Decimal("0.3"),
}

# ──────────────────────────────────────────────
# Severity tables: (level, name, score impact)
# ──────────────────────────────────────────────
ECA_SEVERITY_LEVELS = [
    (1, "Active", Decimal("20")),
    (2, "Expired <6 months", Decimal("5")),
    (3, "Expired 6-12 months", Decimal("-10")),
    (4, "Expired >12 months", Decimal("-25")),
    (5, "No history", Decimal("-40")),
]

GENERIC_SEVERITY_LEVELS = [
    (1, "Minimal", Decimal("0")),
    (2, "Low", Decimal("-5")),
    (3, "Moderate", Decimal("-15")),
    (4, "High", Decimal("-30")),
    (5, "Critical", Decimal("-50")),
]

SEVERITY_LEVELS = {
    assessment_type: (ECA_SEVERITY_LEVELS if assessment_type == "eca_status" else GENERIC_SEVERITY_LEVELS)
    for assessment_type in COMPLIANCE_TYPE_WEIGHTS
}

# ──────────────────────────────────────────────
# Threshold bands: (rating, min inclusive, max exclusive; top band inclusive)
# ──────────────────────────────────────────────
THRESHOLD_BANDS = {
    "continuous": [
        ("red", Decimal("0"), Decimal("40")),
        ("amber", Decimal("40"), Decimal("65")),
        ("yellow", Decimal("65"), Decimal("80")),
        ("green", Decimal("80"), Decimal("100")),
    ],
    "four_point": [
        ("red", Decimal("1"), Decimal("1.5")),
        ("amber", Decimal("1.5"), Decimal("2.5")),
        ("yellow", Decimal("2.5"), Decimal("3.5")),
        ("green", Decimal("3.5"), Decimal("4")),
    ],
}


def default_weight_sets() -> dict[str, dict]:
    """Every weight set the engine needs, keyed by weight-set name."""
    sets = {
        "compliance_assessment_types": COMPLIANCE_TYPE_WEIGHTS,
        "calculation": CALCULATION_WEIGHTS,
    }
    for kind, weights in CRITERIA_WEIGHTS.items():
        sets[f"criteria.{kind}"] = weights
    for role, weights in ROLE_WEIGHTS.items():
        sets[f"role.{role}"] = weights
    return sets


def _jsonable(weights: dict) -> dict:
    return {k: str(v) for k, v in weights.items()}


async def seed_default_policy(
    session: AsyncSession,
    effective_from: date = DEFAULT_EFFECTIVE_FROM,
    created_by: str = "system",
) -> int:
    """Insert version 1 of every default policy table. Skips when already seeded."""
    existing = await session.execute(select(WeightSet.id).limit(1))
    if existing.scalar() is not None:
        return 0

    rows: list = []
    for name, weights in default_weight_sets().items():
        rows.append(WeightSet(
            name=name,
            version=1,
            weights=_jsonable(weights),
            effective_from=effective_from,
            created_by=created_by,
        ))

    for assessment_type, levels in SEVERITY_LEVELS.items():
        for level, level_name, impact in levels:
            rows.append(SeverityLevel(
                assessment_type=assessment_type,
                version=1,
                severity_level=level,
                severity_name=level_name,
                score_impact=impact,
                effective_from=effective_from,
                created_by=created_by,
            ))

    for scale, bands in THRESHOLD_BANDS.items():
        for rating, min_score, max_score in bands:
            rows.append(ThresholdBand(
                scale=scale,
                version=1,
                rating=rating,
                min_score=min_score,
                max_score=max_score,
                effective_from=effective_from,
                created_by=created_by,
            ))

    session.add_all(rows)
    await session.flush()
    return len(rows)
