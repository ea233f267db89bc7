"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400, context=None):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.context = context or {}

    @property
    def kind(self):
        """Return the name used to identify the error in API responses."""
        return type(self).__name__


class ValidationError(AppError):
    """Raised when input has the wrong shape or is out of range."""

    def __init__(self, message="Validation failed.", context=None):
        """Initialize the error."""
        super().__init__(message, 400, context)


class PreconditionError(AppError):
    """Raised when the tournament is not ready for the requested operation."""

    def __init__(self, message="Precondition failed.", context=None):
        """Initialize the error."""
        super().__init__(message, 412, context)


class InsufficientTeams(PreconditionError):
    """Raised when there are fewer teams than the groups need."""


class InvalidSeedCount(ValidationError):
    """Raised when a seed list cannot form a supported bracket."""


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found.", context=None):
        """Initialize the error."""
        super().__init__(message, 404, context)


class ConflictError(AppError):
    """Raised on an edit to an immutable artifact or an invalid transition."""

    def __init__(self, message="Conflict.", context=None):
        """Initialize the error."""
        super().__init__(message, 409, context)


class PermissionDeniedError(AppError):
    """Raised when the actor is not allowed to perform the action."""

    def __init__(self, message="Permission denied.", context=None):
        """Initialize the error."""
        super().__init__(message, 403, context)


class TransactionFailure(AppError):
    """Raised when an atomic store operation could not commit."""

    def __init__(self, message="Transaction failed.", context=None):
        """Initialize the error."""
        super().__init__(message, 503, context)


class FatalReconciliationError(AppError):
    """Raised when a transition failed and its automatic rollback failed too.

    The tournament may be in a partial state and must be reconciled by hand.
    """

    def __init__(self, message="Manual reconciliation required.", context=None):
        """Initialize the error."""
        super().__init__(message, 500, context)
