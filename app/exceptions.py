"""
Application error taxonomy.

ValidationError and NotFoundError go straight back to the caller and are
never retried. TransientDeliveryError and PersistenceConflict are retried
internally by the component that raised them.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors surfaced through the API."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed input, e.g. answering scenario 2 before scenario 1."""

    status_code = 400


class NotFoundError(AppError):
    """Requested content does not exist (no scenarios, unknown user, ...)."""

    status_code = 404


class TransientDeliveryError(AppError):
    """Email/push delivery failed in a way that is worth retrying."""

    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PersistenceConflict(AppError):
    """A concurrent writer changed the row first; re-read and reapply."""

    status_code = 409
