"""Exceptions raised by the collection and Bangumi workflows."""

from typing import Optional


class BangumoeError(Exception):
    """Base class for all application errors."""


class ValidationError(BangumoeError):
    """Local input validation failed; nothing was sent to the backend."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class ServiceError(BangumoeError):
    """A backend call failed (network, HTTP status or malformed payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StateError(BangumoeError):
    """An operation was invoked from a state that does not allow it."""
