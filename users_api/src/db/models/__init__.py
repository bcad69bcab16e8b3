"""
ORM models for the relational user repository.

Importing this package registers every mapped class with the Base metadata
used by src.db.session.ensure_schema.
"""

from .user import UserRecord  # noqa: F401
