"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "internal_error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Missing, invalid or expired credentials."""

    code = "unauthorized"
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Could not validate credentials"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ConflictException(AppException):
    """Time slot or resource conflict exception."""

    code = "conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    code = "validation_error"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class InvalidStateTransitionException(AppException):
    """Appointment status change not allowed from its current state."""

    code = "invalid_state_transition"

    def __init__(self, message: str = "Invalid state transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


# error_code -> HTTP status, for results that carry a failure instead of raising
ERROR_STATUS_CODES: dict[str, int] = {
    NotFoundException.code: 404,
    ConflictException.code: 409,
    ValidationException.code: 422,
    InvalidStateTransitionException.code: 409,
}
