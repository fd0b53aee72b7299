from employer_ratings.models.organization import Organization  # noqa: F401
from employer_ratings.models.assessment import (  # noqa: F401
    ComplianceAssessment, ExpertAssessment, AssessorReputation,
    AgreementRecord, CategoricalAssessment, IntegrityFinding,
)
from employer_ratings.models.policy import WeightSet, SeverityLevel, ThresholdBand  # noqa: F401
from employer_ratings.models.rating import FinalRating, RatingHistoryEntry, RatingDiscrepancy  # noqa: F401
from employer_ratings.models.audit import AuditLog  # noqa: F401
