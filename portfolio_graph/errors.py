"""
Exception types raised by the portfolio graph and its orchestration service.
"""

from typing import Optional

from utils.portfolio.specialty_registry import ConfigurationError


class UnrecognizedEntryTypeError(ConfigurationError):
    """Raised when the model returns an entry-type code the registry does not know."""

    def __init__(self, entry_type: str, specialty: str):
        self.entry_type = entry_type
        message = f"Unknown entry type code '{entry_type}' for specialty '{specialty}'"
        super().__init__(message, specialty=specialty, code=entry_type)


class RepositoryError(Exception):
    """Raised when the message store cannot be read or written."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class GraphGuardError(Exception):
    """Base class for rejected start/resume/send requests."""

    status_code = 400
    default_code = "guard_violation"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class BadRequestError(GraphGuardError):
    """The request itself is malformed or premature."""

    status_code = 400
    default_code = "bad_request"


class ConflictError(GraphGuardError):
    """The request conflicts with the thread's current state."""

    status_code = 409
    default_code = "conflict"


__all__ = [
    "ConfigurationError",
    "UnrecognizedEntryTypeError",
    "RepositoryError",
    "GraphGuardError",
    "BadRequestError",
    "ConflictError",
]
