"""Domain errors raised by the rating engine and its services."""


class RatingEngineError(Exception):
    """Base class for every error the rating engine surfaces to callers."""


class ConfigurationError(RatingEngineError):
    """A weight, severity mapping or threshold needed by a calculation is missing or invalid.

    Fatal for the single organization being rated; never guessed around.
    """


class RatingConflictError(RatingEngineError):
    """Concurrent writers kept colliding on the same (organization, rating date)."""

    def __init__(self, organization_id: int, rating_date, attempts: int):
        self.organization_id = organization_id
        self.rating_date = rating_date
        self.attempts = attempts
        super().__init__(
            f"Could not publish rating for organization {organization_id} "
            f"on {rating_date} after {attempts} attempts"
        )


class OrganizationNotFoundError(RatingEngineError):
    def __init__(self, organization_id: int):
        self.organization_id = organization_id
        super().__init__(f"Organization {organization_id} not found")
