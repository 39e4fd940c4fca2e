"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Every exception carries the HTTP status it maps to, so the application
level handlers in agenda.main can render the `{"error": ...}` envelope
without endpoints repeating the mapping.
"""


class AgendaError(Exception):
    """Base exception for the event listing service."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class InvalidInputError(AgendaError):
    """Raised when request input is missing or malformed."""

    status_code = 400


class AuthenticationError(AgendaError):
    """Raised when a session, token or OAuth state is missing or invalid."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class PermissionDeniedError(AgendaError):
    """Raised when the caller does not own the resource or fails a gate."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(AgendaError):
    """Raised when a resource does not exist upstream or locally."""

    status_code = 404

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")


class RateLimitedError(AgendaError):
    """Raised by the fixed-window limiter when a client exceeds its quota."""

    status_code = 429

    def __init__(self, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__("Too many requests. Please try again later.")


class UpstreamError(AgendaError):
    """Raised when the backend API or a third-party service fails."""

    status_code = 500

    def __init__(self, service_name: str, original_error: Exception = None):
        self.service_name = service_name
        self.original_error = original_error
        super().__init__(f"Service '{service_name}' is unavailable")


class DatabaseError(AgendaError):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
