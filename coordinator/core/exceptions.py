"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Scheduling conflict: slot taken, interval violated or daily limit reached."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class PreconditionFailedException(AppException):
    """The appointment is not in a state that allows the requested action."""

    def __init__(self, message: str = "Precondition failed"):
        """Initialize with 412 status code."""
        super().__init__(message, status_code=412)


class TooEarlyException(AppException):
    """Action submitted before its time window opened."""

    def __init__(self, message: str = "Too early"):
        """Initialize with 425 status code."""
        super().__init__(message, status_code=425)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)


class StaleRecordError(Exception):
    """A versioned write matched no row because another writer got there first."""

    def __init__(self, table: str, row_id: object):
        self.table = table
        self.row_id = row_id
        super().__init__(f"Stale {table} row {row_id}")
