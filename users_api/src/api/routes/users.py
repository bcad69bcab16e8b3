from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse

from src.core.deps import bind_user_id, get_repository
from src.core.logging import bind_user
from src.repositories.base import UserRepository
from src.schemas.user import User

router = APIRouter(prefix="/user", tags=["Users"])


# PUBLIC_INTERFACE
@router.get(
    "/{user_id}",
    response_model=User,
    summary="Get user",
    responses={404: {"description": "User not found"}},
)
async def get_user(
    user_id: UUID = Depends(bind_user_id),
    repo: UserRepository = Depends(get_repository),
) -> User:
    return await repo.get(user_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Store a new user. The store sets created_at; updated_at stays empty.",
    responses={500: {"description": "Id already taken or storage failure"}},
)
async def create_user(
    payload: User,
    repo: UserRepository = Depends(get_repository),
) -> User:
    bind_user(payload.id)
    return await repo.create(payload)


# PUBLIC_INTERFACE
@router.put(
    "",
    response_model=User,
    summary="Replace user",
    description="Replace every mutable field of an existing user. created_at is preserved.",
    responses={404: {"description": "User not found"}},
)
async def update_user(
    payload: User,
    repo: UserRepository = Depends(get_repository),
) -> User:
    bind_user(payload.id)
    return await repo.update(payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{user_id}",
    response_class=PlainTextResponse,
    summary="Delete user",
    description="Remove the user if present. Returns the id either way.",
)
async def delete_user(
    user_id: UUID = Depends(bind_user_id),
    repo: UserRepository = Depends(get_repository),
) -> PlainTextResponse:
    deleted = await repo.delete(user_id)
    return PlainTextResponse(str(deleted))
