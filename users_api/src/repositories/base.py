from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

from src.schemas.user import User

from .errors import InvalidIdError

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class UserRepository(ABC):
    """
    Storage-agnostic contract for user records.

    Every backend stamps `created_at`/`updated_at` itself through `clock`
    right before handing a record to storage, so results are identical
    regardless of backend. All operations are safe to call concurrently.

    Errors raised are limited to the kinds in src.repositories.errors.
    """

    backend_name: str = "abstract"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or utc_now

    @abstractmethod
    async def get(self, user_id: UUID) -> User:
        """Return the stored user or raise InvalidIdError."""

    @abstractmethod
    async def create(self, user: User) -> User:
        """Store a new user or raise AlreadyExistsError / StorageError."""

    @abstractmethod
    async def update(self, user: User) -> User:
        """Replace a stored user or raise DoesNotExistError / StorageError."""

    @abstractmethod
    async def delete(self, user_id: UUID) -> UUID:
        """Remove the user if present and return its id."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored users."""

    async def exists(self, user_id: UUID) -> bool:
        try:
            await self.get(user_id)
        except InvalidIdError:
            return False
        return True

    async def close(self) -> None:
        """Release backend resources. No-op unless a backend owns any."""

    async def __aenter__(self) -> "UserRepository":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _creation_stamp(self) -> datetime:
        return self._normalize(self.clock())

    def _update_stamp(self, created_at: Optional[datetime] = None) -> datetime:
        """Current time, bumped if needed to stay strictly after created_at."""
        return self._after_creation(self._normalize(self.clock()), created_at)

    @staticmethod
    def _after_creation(now: datetime, created_at: Optional[datetime]) -> datetime:
        if created_at is not None and now <= created_at:
            return created_at + _TICK
        return now

    @staticmethod
    def _normalize(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
