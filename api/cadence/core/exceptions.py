"""
Custom exceptions for the application.
"""


class CadenceException(Exception):
    """Base exception for all Cadence application exceptions."""
    pass


class ValidationError(CadenceException):
    """Raised when validation fails."""
    pass


class NotFoundError(CadenceException):
    """Raised when a requested resource is not found or belongs to another user."""
    pass


class ConflictError(CadenceException):
    """Raised when there's a conflict (e.g., duplicate entry)."""
    pass


class AuthorizationError(CadenceException):
    """Raised when authorization fails."""
    pass


class InvalidMemoryStateError(ValidationError):
    """Raised when a malformed memory state would reach the review scheduler.

    This is a programming error, not a user-facing condition.
    """
    pass


class StatsInvariantError(CadenceException):
    """Raised when a stats delta would drive a counter below zero."""
    pass
