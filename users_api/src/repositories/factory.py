from __future__ import annotations

import logging
from typing import Optional

from src.core.settings import AppSettings
from src.db.config import Settings
from .base import Clock, UserRepository
from .memory import InMemoryUserRepository
from .sql import SqlUserRepository

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def build_repository(
    settings: AppSettings,
    db_settings: Optional[Settings] = None,
    *,
    clock: Optional[Clock] = None,
) -> UserRepository:
    """
    Construct the backend selected by REPOSITORY_BACKEND.

    The instance is created once per app and shared by every request.
    """
    if settings.REPOSITORY_BACKEND == "sql":
        logger.info("Using relational user repository")
        return SqlUserRepository.from_settings(db_settings, clock=clock)
    logger.info("Using in-memory user repository")
    return InMemoryUserRepository(clock=clock, lock_timeout=settings.LOCK_TIMEOUT_SECONDS)
