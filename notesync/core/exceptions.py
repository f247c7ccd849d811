"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class DatabaseError(ApplicationError):
    """Raised when a local replica operation fails."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message, code="SYS_DATABASE_ERROR")


class ExternalServiceError(ApplicationError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        message: str = "External service error",
        code: str = "SYS_EXTERNAL_SERVICE_ERROR",
    ) -> None:
        super().__init__(message, code=code)


class RemoteUnavailableError(ExternalServiceError):
    """Raised when the remote note service cannot be reached.

    Covers missing connectivity, timeouts, transport failures and an open
    circuit breaker. Always transient.
    """

    def __init__(self, message: str = "Remote note service unavailable") -> None:
        super().__init__(message, code="SYS_REMOTE_UNAVAILABLE")


class RemoteRejectedError(ExternalServiceError):
    """Raised when the remote note service answers with an error status."""

    def __init__(
        self,
        message: str = "Remote note service rejected the request",
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(message, code="SYS_REMOTE_REJECTED")


class InvalidTransitionError(ApplicationError):
    """Raised when an event is not allowed for a record's sync status."""

    def __init__(self, message: str = "Invalid sync transition") -> None:
        super().__init__(message, code="SYNC_INVALID_TRANSITION")


class PullFailedError(ApplicationError):
    """Raised when the pull phase of a sync cycle fails."""

    def __init__(self, message: str = "Pull phase failed") -> None:
        super().__init__(message, code="SYNC_PULL_FAILED")
