"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class PlannerError(Exception):
    """Base exception for lifeplanner."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(PlannerError):
    """Resource not found."""

    pass


class DuplicateError(PlannerError):
    """Duplicate resource detected."""

    pass


class ValidationError(PlannerError):
    """Validation error."""

    pass
