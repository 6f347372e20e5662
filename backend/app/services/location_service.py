"""
DoggyClub Backend — Device Location Service
=============================================

What:  Keeps each dog's last known position and purges stale ones.
Who:   PUT /api/locations, GET /api/dogs/{id}/location, and the
       `doggyclub-cleanup` maintenance command.

Upsert Flow:
    ┌──────────────┐  row exists   ┌──────────────────────┐
    │ SELECT by    │──────────────▶│ overwrite point +    │
    │ dog_id       │               │ updated_at           │
    └──────┬───────┘               └──────────────────────┘
           │ no row                           ▲
           ▼                                  │ IntegrityError
    ┌──────────────┐                          │ (a concurrent first
    │ INSERT in a  │──────────────────────────┘  report won the race)
    │ SAVEPOINT    │
    └──────────────┘

    The UNIQUE constraint on device_locations.dog_id is what makes the
    race safe: the slower writer cannot create a second row, it rolls back
    to its savepoint and overwrites the winner's row instead. The outcome
    is last-write-wins either way.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import DatabaseError, DoggyClubError, NotFoundError, ValidationError
from app.models.location import DeviceLocation
from app.schemas.encounter import DeviceLocationResponse
from app.services.dog_service import dog_service
from app.services.geo import validate_coordinates

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from stores that drop the offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LocationService:
    """
    Device location lifecycle: report (upsert), read, and retention cleanup.

    A location is "fresh" while it is younger than the freshness window
    (LOCATION_FRESHNESS_MINUTES, 60 by default). Stale rows are kept until
    cleanup() removes them, but detection and nearby searches ignore them.
    """

    async def get_location_model(
        self, db: AsyncSession, dog_id: UUID
    ) -> Optional[DeviceLocation]:
        result = await db.execute(
            select(DeviceLocation).where(DeviceLocation.dog_id == dog_id)
        )
        return result.scalar_one_or_none()

    def is_fresh(self, location: DeviceLocation, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return as_utc(location.updated_at) >= now - settings.freshness_window

    def to_response(self, location: DeviceLocation, now: Optional[datetime] = None) -> DeviceLocationResponse:
        return DeviceLocationResponse(
            dog_id=location.dog_id,
            latitude=location.latitude,
            longitude=location.longitude,
            updated_at=as_utc(location.updated_at),
            is_fresh=self.is_fresh(location, now),
        )

    async def report_location(
        self,
        db: AsyncSession,
        dog_id: UUID,
        latitude: float,
        longitude: float,
    ) -> DeviceLocationResponse:
        """
        Record a dog's current position, replacing any earlier one.

        Args:
            db: Async database session
            dog_id: Dog whose device is reporting
            latitude: Degrees, [-90, 90]
            longitude: Degrees, [-180, 180]

        Returns:
            The stored location (always fresh)

        Raises:
            ValidationError: coordinates out of range
            NotFoundError: dog does not exist
            DatabaseError: the write failed
        """
        validate_coordinates(latitude, longitude)
        now = utc_now()

        try:
            await dog_service.get_dog_model(db, dog_id)

            location = await self.get_location_model(db, dog_id)
            if location is not None:
                location.move_to(latitude, longitude, now)
                await db.flush()
            else:
                location = DeviceLocation(
                    dog_id=dog_id,
                    latitude=latitude,
                    longitude=longitude,
                    updated_at=now,
                )
                try:
                    async with db.begin_nested():
                        db.add(location)
                        await db.flush()
                except IntegrityError:
                    logger.info("Concurrent first report for dog %s; overwriting", dog_id)
                    location = await self.get_location_model(db, dog_id)
                    if location is None:
                        raise
                    location.move_to(latitude, longitude, now)
                    await db.flush()

            logger.debug("Location for dog %s set to (%.6f, %.6f)", dog_id, latitude, longitude)
            return self.to_response(location, now)

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error storing location for dog %s: %s", dog_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not store the location. Please try again.",
                context={"dog_id": str(dog_id)},
            )

    async def get_current_location(self, db: AsyncSession, dog_id: UUID) -> DeviceLocationResponse:
        """The dog's last known position, stale or not; NotFoundError if none."""
        try:
            await dog_service.get_dog_model(db, dog_id)
            location = await self.get_location_model(db, dog_id)
            if location is None:
                raise NotFoundError(resource="location", resource_id=str(dog_id))
            return self.to_response(location)

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching location for dog %s: %s", dog_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the location. Please try again.",
                context={"dog_id": str(dog_id)},
            )

    async def cleanup(self, db: AsyncSession, older_than: timedelta) -> int:
        """
        Delete every location last updated before now - older_than.

        Returns:
            Number of rows deleted
        """
        if older_than <= timedelta(0):
            raise ValidationError(
                message="Retention period must be positive",
                field="older_than",
            )

        cutoff = utc_now() - older_than
        try:
            result = await db.execute(
                delete(DeviceLocation)
                .where(DeviceLocation.updated_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount or 0
            logger.info("Location cleanup removed %d row(s) older than %s", deleted, cutoff.isoformat())
            return deleted

        except SQLAlchemyError as e:
            logger.error("Database error during location cleanup: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Location cleanup failed.",
                context={"cutoff": cutoff.isoformat()},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
location_service = LocationService()
