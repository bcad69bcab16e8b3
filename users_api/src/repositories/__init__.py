"""
Repository layer for user records.

UserRepository is the storage-agnostic contract; InMemoryUserRepository and
SqlUserRepository implement it with identical results and error kinds.
"""

from .base import UserRepository, utc_now
from .errors import (
    AlreadyExistsError,
    DoesNotExistError,
    InvalidIdError,
    LockError,
    RepositoryError,
    StorageError,
)
from .memory import InMemoryUserRepository, ReadWriteLock
from .sql import SqlUserRepository

__all__ = [
    "UserRepository",
    "utc_now",
    "RepositoryError",
    "AlreadyExistsError",
    "DoesNotExistError",
    "InvalidIdError",
    "StorageError",
    "LockError",
    "InMemoryUserRepository",
    "ReadWriteLock",
    "SqlUserRepository",
]
