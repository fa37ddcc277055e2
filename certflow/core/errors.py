"""Error taxonomy shared by the progression, assessment and certificate core.

Every error carries a stable ``code`` used by the API layer to pick the HTTP
status. Feature modules subclass these with their own default messages.
"""

from fastapi import HTTPException, status


class DomainError(Exception):
    """Base error of the core."""

    code = "domain_error"
    default_message = "Operation failed"

    def __init__(self, message: str | None = None, **details: object):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed identifiers, answers or quiz definitions."""

    code = "validation_error"
    default_message = "Invalid input"

    def __init__(self, message: str | None = None, errors: list[str] | None = None):
        super().__init__(message, errors=errors or [])
        self.errors = errors or []


class NotFoundError(DomainError):
    code = "not_found"
    default_message = "Resource not found"


class DuplicateEnrollmentError(DomainError):
    code = "duplicate_enrollment"
    default_message = "User is already enrolled in this course"


class NotEligibleError(DomainError):
    code = "not_eligible"
    default_message = "All lessons must be completed before taking the assessment"


class AttemptLimitExceededError(DomainError):
    code = "attempt_limit_exceeded"
    default_message = "Maximum number of assessment attempts reached"


class AlreadySubmittedError(DomainError):
    code = "already_submitted"
    default_message = "Assessment attempt has already been submitted"


class InvalidAssessmentError(DomainError):
    code = "invalid_assessment"
    default_message = "Assessment has no scorable questions"


class UnauthorizedError(DomainError):
    code = "unauthorized"
    default_message = "Not authorized to access this resource"


class RevokedError(DomainError):
    code = "revoked"
    default_message = "Certificate has been revoked"


class PersistenceError(DomainError):
    """Transient storage failure, safe for the caller to retry."""

    code = "persistence_error"
    default_message = "Storage temporarily unavailable"


class NotificationFailure(DomainError):
    """Raised by publishers; logged by the dispatcher and never propagated."""

    code = "notification_failure"
    default_message = "Notification could not be delivered"


STATUS_BY_CODE: dict[str, int] = {
    ValidationError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError.code: status.HTTP_404_NOT_FOUND,
    DuplicateEnrollmentError.code: status.HTTP_409_CONFLICT,
    NotEligibleError.code: status.HTTP_403_FORBIDDEN,
    AttemptLimitExceededError.code: status.HTTP_409_CONFLICT,
    AlreadySubmittedError.code: status.HTTP_409_CONFLICT,
    InvalidAssessmentError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
    UnauthorizedError.code: status.HTTP_403_FORBIDDEN,
    RevokedError.code: status.HTTP_410_GONE,
    PersistenceError.code: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(error: DomainError) -> int:
    """HTTP status code for a domain error."""
    return STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class DomainHTTPException(HTTPException):
    """HTTPException that keeps the domain error code and details."""

    def __init__(self, error: DomainError):
        super().__init__(status_code=status_for(error), detail=error.message)
        self.code = error.code
        self.details = error.details


def handle_domain_error(error: DomainError) -> DomainHTTPException:
    """Convert a domain error to an HTTP exception.

    Args:
        error: Domain error

    Returns:
        HTTPException with appropriate status code
    """
    return DomainHTTPException(error)
