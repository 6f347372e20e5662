"""
DoggyClub Backend — Dog Route Handlers
========================================

What:  Dog profile CRUD plus the per-dog location and encounter history
       reads (GET /api/dogs/{id}/location, GET /api/dogs/{id}/encounters).
Who:   Called by the mobile app.

Mutations need the X-User-ID header (see app/auth.py). A dog that belongs
to someone else answers 404 on update/delete, same as a missing dog.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user_id
from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.dog import DogCreate, DogResponse, DogUpdate
from app.schemas.encounter import DeviceLocationResponse, EncounterListResponse
from app.services.dog_service import dog_service
from app.services.encounter_service import MAX_PAGE_SIZE, encounter_service
from app.services.location_service import location_service

router = APIRouter(prefix="/api/dogs", tags=["Dogs"])


@router.post(
    "",
    response_model=DogResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Missing or malformed X-User-ID", "model": ErrorResponse},
        404: {"description": "Owner not found", "model": ErrorResponse},
    },
    summary="Create a dog profile for the caller",
)
async def create_dog(
    payload: DogCreate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> DogResponse:
    return await dog_service.create_dog(db=db, owner_id=user_id, payload=payload)


@router.get(
    "/{dog_id}",
    response_model=DogResponse,
    responses={404: {"description": "Dog not found", "model": ErrorResponse}},
    summary="Get a dog profile",
)
async def get_dog(
    dog_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DogResponse:
    return await dog_service.get_dog(db=db, dog_id=dog_id)


@router.patch(
    "/{dog_id}",
    response_model=DogResponse,
    responses={404: {"description": "Dog not found or not yours", "model": ErrorResponse}},
    summary="Update a dog profile",
)
async def update_dog(
    dog_id: UUID,
    payload: DogUpdate,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> DogResponse:
    return await dog_service.update_dog(db=db, dog_id=dog_id, owner_id=user_id, payload=payload)


@router.delete(
    "/{dog_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Dog not found or not yours", "model": ErrorResponse}},
    summary="Delete a dog profile with its location and encounters",
)
async def delete_dog(
    dog_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await dog_service.delete_dog(db=db, dog_id=dog_id, owner_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{dog_id}/location",
    response_model=DeviceLocationResponse,
    responses={404: {"description": "Dog or location not found", "model": ErrorResponse}},
    summary="Get a dog's last known position",
)
async def get_dog_location(
    dog_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> DeviceLocationResponse:
    # Positions change constantly; never let an intermediary cache them
    response.headers["Cache-Control"] = "no-store"
    return await location_service.get_current_location(db=db, dog_id=dog_id)


@router.get(
    "/{dog_id}/encounters",
    response_model=EncounterListResponse,
    responses={404: {"description": "Dog not found", "model": ErrorResponse}},
    summary="List a dog's encounters, newest first",
)
async def list_dog_encounters(
    dog_id: UUID,
    response: Response,
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
    offset: int = Query(default=0, ge=0, description="Items to skip"),
    db: AsyncSession = Depends(get_db_session),
) -> EncounterListResponse:
    result = await encounter_service.list_encounters(
        db=db, dog_id=dog_id, limit=limit, offset=offset
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result
