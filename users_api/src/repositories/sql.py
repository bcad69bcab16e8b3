from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.db.config import Settings
from src.db.models.user import UserRecord
from src.db.session import (
    create_engine_from_settings,
    create_session_maker,
    ensure_schema,
    session_scope,
)
from src.schemas.user import User
from .base import Clock, UserRepository
from .errors import (
    AlreadyExistsError,
    DoesNotExistError,
    InvalidIdError,
    StorageError,
)

logger = logging.getLogger(__name__)

users_table = UserRecord.__table__

# Driver faults that reach us unwrapped (e.g. asyncpg connect refusals) are OSErrors.
_DRIVER_ERRORS = (SQLAlchemyError, OSError)


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User.model_validate(dict(row))


# PUBLIC_INTERFACE
class SqlUserRepository(UserRepository):
    """
    Relational user store.

    Every operation opens its own session and runs a single parameterized
    statement in its own transaction; no in-process lock is held across I/O.
    Driver and connection failures surface as StorageError.
    """

    backend_name = "sql"

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        clock: Optional[Clock] = None,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        owns_engine: bool = True,
    ) -> None:
        super().__init__(clock)
        self.engine = engine
        self.session_maker = session_maker or create_session_maker(engine)
        self.owns_engine = owns_engine

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, *, clock: Optional[Clock] = None
    ) -> "SqlUserRepository":
        return cls(create_engine_from_settings(settings), clock=clock)

    async def create_schema(self) -> None:
        try:
            await ensure_schema(self.engine)
        except _DRIVER_ERRORS as exc:
            raise self._storage_error("create schema", exc) from exc

    async def close(self) -> None:
        if self.owns_engine:
            await self.engine.dispose()

    def _storage_error(
        self, operation: str, exc: BaseException, user_id: Optional[UUID] = None
    ) -> StorageError:
        logger.error("Database %s failed for user %s: %s", operation, user_id, exc)
        return StorageError(operation, exc.__class__.__name__, user_id=user_id)

    async def get(self, user_id: UUID) -> User:
        stmt = select(users_table).where(users_table.c.id == user_id)
        try:
            async with session_scope(self.session_maker) as session:
                row = (await session.execute(stmt)).mappings().one_or_none()
        except _DRIVER_ERRORS as exc:
            raise self._storage_error("get", exc, user_id) from exc
        if row is None:
            raise InvalidIdError(user_id)
        return _row_to_user(row)

    async def create(self, user: User) -> User:
        stmt = (
            insert(users_table)
            .values(
                id=user.id,
                created_at=self._creation_stamp(),
                updated_at=None,
                **user.storage_values(),
            )
            .returning(*users_table.c)
        )
        try:
            async with session_scope(self.session_maker) as session:
                row = (await session.execute(stmt)).mappings().one()
        except IntegrityError as exc:
            logger.info("Insert of user %s rejected: %s", user.id, exc.orig)
            raise AlreadyExistsError(user.id) from exc
        except _DRIVER_ERRORS as exc:
            raise self._storage_error("create", exc, user.id) from exc
        logger.debug("Created user %s", user.id)
        return _row_to_user(row)

    async def update(self, user: User) -> User:
        now = self._update_stamp()
        stmt = (
            update(users_table)
            .where(users_table.c.id == user.id)
            .values(updated_at=now, **user.storage_values())
            .returning(*users_table.c)
        )
        try:
            async with session_scope(self.session_maker) as session:
                row = (await session.execute(stmt)).mappings().one_or_none()
                if row is not None and row["updated_at"] <= row["created_at"]:
                    # clock did not advance past creation; keep updated_at strictly later
                    bump = (
                        update(users_table)
                        .where(users_table.c.id == user.id)
                        .values(updated_at=row["created_at"] + timedelta(microseconds=1))
                        .returning(*users_table.c)
                    )
                    row = (await session.execute(bump)).mappings().one()
        except _DRIVER_ERRORS as exc:
            raise self._storage_error("update", exc, user.id) from exc
        if row is None:
            raise DoesNotExistError(user.id)
        logger.debug("Updated user %s", user.id)
        return _row_to_user(row)

    async def delete(self, user_id: UUID) -> UUID:
        stmt = delete(users_table).where(users_table.c.id == user_id)
        try:
            async with session_scope(self.session_maker) as session:
                result = await session.execute(stmt)
        except _DRIVER_ERRORS as exc:
            raise self._storage_error("delete", exc, user_id) from exc
        logger.debug("Deleted user %s (%s removed)", user_id, result.rowcount)
        return user_id

    async def count(self) -> int:
        stmt = select(func.count()).select_from(users_table)
        try:
            async with session_scope(self.session_maker) as session:
                return int((await session.execute(stmt)).scalar_one())
        except _DRIVER_ERRORS as exc:
            raise self._storage_error("count", exc) from exc
