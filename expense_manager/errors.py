"""
Expense Manager - Domain Errors

PURPOSE: Error kinds surfaced by the data layer
SCOPE: Exception hierarchy and translation of SQLite failures
DEPENDENCIES: sqlite3
"""

import sqlite3
import logging

logger = logging.getLogger(__name__)


class ExpenseTrackerError(Exception):
    """Base class for all domain errors."""
    status_code = 400
    kind = 'error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class AuthenticationError(ExpenseTrackerError):
    """Missing, invalid or expired credentials."""
    status_code = 401
    kind = 'authentication_required'


class AuthorizationDeniedError(ExpenseTrackerError):
    """The record belongs to another user."""
    status_code = 403
    kind = 'authorization_denied'


class NotFoundError(ExpenseTrackerError):
    """The referenced record does not exist."""
    status_code = 404
    kind = 'not_found'


class DefaultCategoryProtectedError(ExpenseTrackerError):
    """The default category cannot be deleted."""
    status_code = 409
    kind = 'default_category_protected'


class ConstraintViolationError(ExpenseTrackerError):
    """The change violates a storage constraint."""
    status_code = 409
    kind = 'constraint_violation'


class DuplicateDefaultCategoryError(ConstraintViolationError):
    """A default category already exists for this user."""


class MissingDefaultCategoryError(ConstraintViolationError):
    """No default category exists to receive the expenses."""


class StorageUnavailableError(ExpenseTrackerError):
    """The storage layer is temporarily unavailable."""
    status_code = 503
    kind = 'storage_unavailable'


# Messages raised by the triggers in database.py
DEFAULT_PROTECTED_MESSAGE = 'Cannot delete default category'
NO_DEFAULT_MESSAGE = 'No default category'


def translate_storage_error(exc: Exception) -> ExpenseTrackerError:
    """Map a sqlite3 failure onto a domain error kind."""
    message = str(exc)

    if isinstance(exc, sqlite3.IntegrityError):
        if DEFAULT_PROTECTED_MESSAGE in message:
            return DefaultCategoryProtectedError()
        if NO_DEFAULT_MESSAGE in message:
            return MissingDefaultCategoryError()
        if 'UNIQUE constraint failed: categories.user_id' in message:
            return DuplicateDefaultCategoryError()
        if 'CHECK constraint failed' in message:
            return ConstraintViolationError(f"Value rejected by storage: {message}")
        if 'FOREIGN KEY constraint failed' in message:
            return ConstraintViolationError("Referenced record does not exist")
        return ConstraintViolationError(message)

    if isinstance(exc, sqlite3.OperationalError):
        logger.error(f"Storage failure: {exc}")
        return StorageUnavailableError(message)

    return ExpenseTrackerError(message)
