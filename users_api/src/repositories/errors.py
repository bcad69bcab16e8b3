"""
Error taxonomy shared by every repository backend.

Callers react to these kinds only; backend-native failures (driver errors,
lock faults) are translated into one of them before leaving a repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID


class RepositoryError(Exception):
    """Base class for all repository errors."""

    status_code: int = 500
    error_type: str = "repository_error"

    def __init__(
        self,
        message: str,
        user_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.user_id = user_id
        self.details = details or {}
        if user_id is not None:
            self.details.setdefault("user_id", str(user_id))
        super().__init__(self.message)


class AlreadyExistsError(RepositoryError):
    """Raised by `create` when a user with the same id is already stored."""

    error_type = "already_exists"

    def __init__(self, user_id: UUID):
        super().__init__(f"User {user_id} already exists", user_id=user_id)


class DoesNotExistError(RepositoryError):
    """Raised by `update` when no user has the given id."""

    status_code = 404
    error_type = "does_not_exist"

    def __init__(self, user_id: UUID):
        super().__init__(f"User {user_id} does not exist", user_id=user_id)


class InvalidIdError(RepositoryError):
    """Raised by `get` when the id resolves to no record."""

    status_code = 404
    error_type = "invalid_id"

    def __init__(self, user_id: UUID):
        super().__init__(f"Invalid user id: {user_id}", user_id=user_id)


class StorageError(RepositoryError):
    """Infrastructure fault: connection loss, timeout, driver failure."""

    error_type = "storage_error"

    def __init__(
        self,
        operation: str,
        reason: Optional[str] = None,
        user_id: Optional[UUID] = None,
    ):
        message = f"Storage {operation} failed"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            user_id=user_id,
            details={"operation": operation, "reason": reason},
        )
        self.operation = operation


class LockError(StorageError):
    """The in-memory store could not acquire or safely use its lock."""

    error_type = "lock_error"
