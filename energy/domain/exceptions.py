class DomainError(Exception):
    """Base class for business rule violations surfaced to API callers."""

    def __init__(self, message, **extra):
        self.message = message
        self.extra = extra
        super().__init__(message)


class InvalidInput(DomainError):
    """Raised when input is malformed, missing or contradictory."""


class NotFound(DomainError):
    """Raised when a resource does not exist or is not owned by the caller."""

    def __init__(self, message="not found", **extra):
        super().__init__(message, **extra)


class Conflict(DomainError):
    """Raised when a write would break a cross-row invariant."""


class OverlappingLimit(Conflict):
    """Raised when a limit range intersects another limit of the same period type."""

    def __init__(self, existing_limit_id):
        self.existing_limit_id = existing_limit_id
        super().__init__(
            "Overlapping limit exists for this period_type",
            existing_limit_id=existing_limit_id,
        )


class MultipleActiveTariffs(Conflict):
    """Raised when more than one active tariff is found for a user."""

    def __init__(self, tariff_ids):
        self.tariff_ids = list(tariff_ids)
        super().__init__(
            "More than one active tariff found. Please leave only one active tariff.",
            active_tariff_ids=self.tariff_ids,
        )


class LastAdminProtected(Conflict):
    """Raised when a change would leave no unblocked admin account."""

    def __init__(self, message, user_id):
        self.user_id = user_id
        super().__init__(message, user_id=user_id)
