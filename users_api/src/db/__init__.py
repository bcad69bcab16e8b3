"""
Database package exposing configuration, engine/session helpers and the
declarative base for the relational user repository.
"""

from .base import Base
from .config import get_settings, Settings
from .session import (
    create_engine_from_settings,
    create_session_maker,
    ensure_schema,
    session_scope,
)

# Import models so they are registered with SQLAlchemy metadata
# when the db package is imported.
from . import models as models  # noqa: F401

__all__ = [
    "Base",
    "Settings",
    "get_settings",
    "create_engine_from_settings",
    "create_session_maker",
    "ensure_schema",
    "session_scope",
    "models",
]
