"""
Seeding utilities for the default user record.

Seeds:
- Rob (born 1977-03-10, custom_data.random = 1)

Usage:
  python -m src.db.seed          # uses REPOSITORY_BACKEND=sql settings
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List
from uuid import UUID

from src.repositories.base import UserRepository
from src.repositories.errors import AlreadyExistsError
from src.schemas.user import CustomData, User

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = UUID("5c0ff2a4-1f3c-4e7e-9a5e-2b6d7d2c9f10")


def default_users() -> List[User]:
    """Reference users inserted by seed_all."""
    return [
        User(
            id=DEFAULT_USER_ID,
            name="Rob",
            birth_date=date(1977, 3, 10),
            custom_data=CustomData(random=1),
        )
    ]


# PUBLIC_INTERFACE
async def seed_all(repository: UserRepository) -> int:
    """
    Insert the default users through the repository contract.

    Records that already exist are left untouched. Returns the number of
    users created.
    """
    created = 0
    for user in default_users():
        try:
            await repository.create(user)
            created += 1
        except AlreadyExistsError:
            logger.info("Seed user %s already present; skipping", user.id)
    return created


async def _main() -> None:
    from src.core.logging import configure_logging
    from src.repositories.sql import SqlUserRepository

    configure_logging()
    async with SqlUserRepository.from_settings() as repo:
        await repo.create_schema()
        created = await seed_all(repo)
    logger.info("Seeding completed (%d created).", created)


if __name__ == "__main__":
    asyncio.run(_main())
