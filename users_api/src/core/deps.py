from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, Request, status

from src.core.logging import bind_user
from src.repositories.base import UserRepository

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def get_repository(request: Request) -> UserRepository:
    """
    Return the repository shared by the whole app.

    Handlers depend on the UserRepository contract only; the concrete backend
    is chosen at startup (see src.repositories.factory).

    Raises:
        HTTPException: 500 if the app was started without a repository.
    """
    repo = getattr(request.app.state, "repository", None)
    if repo is None:
        logger.error("No repository configured on the application")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No repository configured",
        )
    return repo


# PUBLIC_INTERFACE
def get_worker_id(request: Request) -> int:
    """Index of the app instance serving the request."""
    return request.app.state.worker_id


# PUBLIC_INTERFACE
async def bind_user_id(user_id: UUID) -> UUID:
    """Expose the target user id to log records for the rest of the request."""
    bind_user(user_id)
    return user_id
