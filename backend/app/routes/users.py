"""
DoggyClub Backend — User Route Handlers
=========================================

What:  POST /api/users, GET /api/users/{id}, PATCH /api/users/{id}/visibility,
       and GET /api/users/{id}/dogs.
How:   Thin handlers; all rules live in UserService / DogService.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.dog import DogListResponse
from app.schemas.user import UserCreate, UserResponse, VisibilityUpdate
from app.services.dog_service import dog_service
from app.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Username or email taken", "model": ErrorResponse},
    },
    summary="Register a dog owner",
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.create_user(db=db, payload=payload)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user by ID",
)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.get_user(db=db, user_id=user_id)


@router.patch(
    "/{user_id}/visibility",
    response_model=UserResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Make a user's dogs visible or hidden in nearby searches",
)
async def update_visibility(
    user_id: UUID,
    payload: VisibilityUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.update_visibility(
        db=db, user_id=user_id, visibility=payload.visibility
    )


@router.get(
    "/{user_id}/dogs",
    response_model=DogListResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="List a user's dogs",
)
async def list_user_dogs(
    user_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> DogListResponse:
    result = await dog_service.list_dogs_for_user(db=db, owner_id=user_id)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result
