from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from src.core.deps import get_worker_id
from src.schemas.common import MessageResponse

router = APIRouter(tags=["Health"])


# PUBLIC_INTERFACE
@router.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
)
def health_check(response: Response, worker_id: int = Depends(get_worker_id)) -> MessageResponse:
    """
    Basic liveness health check endpoint.

    The `thread-id` response header carries the index of the app instance
    that served the request.
    """
    response.headers["thread-id"] = str(worker_id)
    return MessageResponse(message="Healthy")
