"""
Public Pydantic schemas used by FastAPI routes, repositories, and tests.

The user entity lives in .user; standard responses and the error envelope
live in .common.
"""

from .common import ErrorResponse, MessageResponse  # noqa: F401
from .user import CustomData, User  # noqa: F401
