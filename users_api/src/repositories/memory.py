from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional
from uuid import UUID

from src.schemas.user import User
from .base import Clock, UserRepository
from .errors import (
    AlreadyExistsError,
    DoesNotExistError,
    InvalidIdError,
    LockError,
    RepositoryError,
)

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Writer-preferring reader/writer lock.

    Any number of readers may hold the lock at once; a writer holds it alone.
    Waiting writers block new readers so writes are not starved. Works across
    OS threads and asyncio tasks alike, as long as the holder never awaits.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_locked(self) -> bool:
        return self._writer

    @contextmanager
    def read(self, timeout: Optional[float] = None) -> Iterator[None]:
        self._acquire_read(timeout)
        try:
            yield
        finally:
            self._release_read()

    @contextmanager
    def write(self, timeout: Optional[float] = None) -> Iterator[None]:
        self._acquire_write(timeout)
        try:
            yield
        finally:
            self._release_write()

    def _acquire_read(self, timeout: Optional[float]) -> None:
        with self._cond:
            ok = self._cond.wait_for(
                lambda: not self._writer and self._waiting_writers == 0, timeout
            )
            if not ok:
                raise LockError("acquire read lock", f"timed out after {timeout}s")
            self._readers += 1

    def _release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def _acquire_write(self, timeout: Optional[float]) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                ok = self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0, timeout
                )
            finally:
                self._waiting_writers -= 1
            if not ok:
                # readers held back by this writer may proceed now
                self._cond.notify_all()
                raise LockError("acquire write lock", f"timed out after {timeout}s")
            self._writer = True

    def _release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


# PUBLIC_INTERFACE
class InMemoryUserRepository(UserRepository):
    """
    Process-local user store guarded by a reader/writer lock.

    Reads run concurrently; every mutation is a single write-held section, so
    the existence check and the insert in `create` are atomic. Callers only
    ever receive copies of stored records.

    A write section that fails unexpectedly is rolled back and reported as
    LockError. The lock is released on every exit path and stays usable.
    """

    backend_name = "memory"

    def __init__(
        self,
        seed: Optional[Iterable[User]] = None,
        *,
        clock: Optional[Clock] = None,
        lock_timeout: Optional[float] = 5.0,
    ) -> None:
        super().__init__(clock)
        self.lock_timeout = lock_timeout
        self._lock = ReadWriteLock()
        self._users: List[User] = []
        for user in seed or ():
            stored = user.stamped(created_at=self._creation_stamp(), updated_at=None)
            if self._find(stored.id) is not None:
                raise AlreadyExistsError(stored.id)
            self._users.append(stored)

    def _find(self, user_id: UUID) -> Optional[User]:
        return next((u for u in self._users if u.id == user_id), None)

    @contextmanager
    def _writing(self, operation: str, user_id: UUID) -> Iterator[List[User]]:
        with self._lock.write(self.lock_timeout):
            snapshot = list(self._users)
            try:
                yield self._users
            except RepositoryError:
                self._users[:] = snapshot
                raise
            except Exception as exc:
                self._users[:] = snapshot
                logger.error("In-memory %s of %s failed mid-write: %s", operation, user_id, exc)
                raise LockError(operation, str(exc), user_id=user_id) from exc

    async def get(self, user_id: UUID) -> User:
        with self._lock.read(self.lock_timeout):
            found = self._find(user_id)
            if found is None:
                raise InvalidIdError(user_id)
            return found.model_copy(deep=True)

    async def create(self, user: User) -> User:
        with self._writing("create", user.id) as users:
            # one clock read per call, whether or not the id is taken
            created_at = self._creation_stamp()
            if self._find(user.id) is not None:
                raise AlreadyExistsError(user.id)
            stored = user.stamped(created_at=created_at, updated_at=None)
            users.append(stored)
        logger.debug("Created user %s", user.id)
        return stored.model_copy(deep=True)

    async def update(self, user: User) -> User:
        with self._writing("update", user.id) as users:
            now = self._update_stamp()
            current = self._find(user.id)
            if current is None:
                raise DoesNotExistError(user.id)
            stored = user.stamped(
                created_at=current.created_at,
                updated_at=self._after_creation(now, current.created_at),
            )
            users[:] = [u for u in users if u.id != user.id]
            users.append(stored)
        logger.debug("Updated user %s", user.id)
        return stored.model_copy(deep=True)

    async def delete(self, user_id: UUID) -> UUID:
        with self._writing("delete", user_id) as users:
            before = len(users)
            users[:] = [u for u in users if u.id != user_id]
            removed = before - len(users)
        logger.debug("Deleted user %s (%d removed)", user_id, removed)
        return user_id

    async def count(self) -> int:
        with self._lock.read(self.lock_timeout):
            return len(self._users)

