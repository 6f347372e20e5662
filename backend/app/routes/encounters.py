"""
DoggyClub Backend — Encounter Route Handlers
==============================================

What:  POST /api/encounters/detect (GPS), POST /api/encounters/bluetooth,
       and GET /api/encounters/nearby.
How:   Extract the request, delegate to EncounterService, return JSON.

Status codes:
    detect     → 200 even when nothing new was found (count = 0)
    bluetooth  → 201 Created, or 409 if the pair met within the dedup window
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.encounter import (
    BluetoothEncounterRequest,
    DetectionRequest,
    EncounterDetectionResponse,
    EncounterResponse,
    NearbyDogsResponse,
)
from app.services.encounter_service import encounter_service

router = APIRouter(prefix="/api/encounters", tags=["Encounters"])


@router.post(
    "/detect",
    response_model=EncounterDetectionResponse,
    responses={
        400: {"description": "Radius out of range", "model": ErrorResponse},
        404: {"description": "Dog has no reported location", "model": ErrorResponse},
    },
    summary="Detect GPS encounters around a dog",
    description=(
        "Creates an encounter with every dog whose fresh position lies within "
        "radius_meters of the requesting dog's last known position, skipping pairs "
        "that already met within the dedup window. Returns only new encounters."
    ),
)
async def detect_encounters(
    payload: DetectionRequest,
    db: AsyncSession = Depends(get_db_session),
) -> EncounterDetectionResponse:
    return await encounter_service.detect(
        db=db, dog_id=payload.dog_id, radius_meters=payload.radius_meters
    )


@router.post(
    "/bluetooth",
    response_model=EncounterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid request", "model": ErrorResponse},
        404: {"description": "Dog not found", "model": ErrorResponse},
        409: {"description": "Encounter already recorded recently", "model": ErrorResponse},
    },
    summary="Record an encounter from a Bluetooth beacon sighting",
)
async def record_bluetooth_encounter(
    payload: BluetoothEncounterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> EncounterResponse:
    return await encounter_service.record_bluetooth_encounter(
        db=db,
        dog_id=payload.dog_id,
        other_dog_id=payload.other_dog_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        metadata=payload.metadata,
    )


@router.get(
    "/nearby",
    response_model=NearbyDogsResponse,
    responses={
        400: {"description": "Invalid coordinates or radius", "model": ErrorResponse},
        404: {"description": "Dog not found", "model": ErrorResponse},
    },
    summary="Find public dogs near a point",
)
async def nearby_dogs(
    dog_id: UUID = Query(description="The asking dog; excluded from results"),
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    radius_meters: float = Query(
        default=1000.0,
        gt=0,
        le=settings.max_detection_radius_meters,
    ),
    db: AsyncSession = Depends(get_db_session),
) -> NearbyDogsResponse:
    return await encounter_service.nearby_dogs(
        db=db,
        dog_id=dog_id,
        latitude=latitude,
        longitude=longitude,
        radius_meters=radius_meters,
    )
