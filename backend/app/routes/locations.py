"""
DoggyClub Backend — Location Report Route
===========================================

What:  PUT /api/locations, the periodic position report from a dog's device.
Why:   PUT rather than POST: the report replaces the dog's single stored
       position, so repeating it leaves the same state behind.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.encounter import DeviceLocationResponse, LocationReport
from app.services.location_service import location_service

router = APIRouter(prefix="/api", tags=["Locations"])


@router.put(
    "/locations",
    response_model=DeviceLocationResponse,
    responses={
        400: {"description": "Coordinates out of range", "model": ErrorResponse},
        404: {"description": "Dog not found", "model": ErrorResponse},
    },
    summary="Report a dog's current position",
)
async def report_location(
    payload: LocationReport,
    db: AsyncSession = Depends(get_db_session),
) -> DeviceLocationResponse:
    return await location_service.report_location(
        db=db,
        dog_id=payload.dog_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
