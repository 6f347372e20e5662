"""
DoggyClub Backend — Encounter Service
=======================================

What:  Turns device locations and Bluetooth reports into encounters, and
       answers history and nearby-dog queries.
Who:   Called by the /api/encounters routes and GET /api/dogs/{id}/encounters.

GPS Detection Flow (POST /api/encounters/detect):
    ┌─────────────┐    ┌──────────────────┐    ┌──────────────────┐
    │ Own location│───▶│ Bounding box SQL │───▶│ Haversine filter │
    │ (404 if     │    │ + freshness      │    │ (exact radius)   │
    │  missing)   │    └──────────────────┘    └────────┬─────────┘
    └─────────────┘                                     │ per candidate
                                                        ▼
                          ┌──────────────────────────────────────────┐
                          │ SAVEPOINT: recent pair encounter? skip    │
                          │            otherwise INSERT gps encounter │
                          └──────────────────────────────────────────┘

    A failure inside one candidate's savepoint is logged and that candidate
    is skipped; the other candidates still get their encounters. The caller
    receives only the encounters created by this call.

Dedup:
    An encounter between the same unordered pair inside the dedup window
    (ENCOUNTER_DEDUP_WINDOW_MINUTES, 30 by default) is suppressed. GPS
    detection skips it silently; a Bluetooth report gets a ConflictError.
    The unique (pair_low_id, pair_high_id, dedup_bucket) constraint on the
    table catches the concurrent case the read-then-insert check cannot.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import desc, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    ConflictError,
    DatabaseError,
    DoggyClubError,
    NotFoundError,
    ValidationError,
)
from app.models.dog import Dog
from app.models.encounter import DetectionMethod, Encounter, canonical_pair
from app.models.location import DeviceLocation
from app.models.user import User, Visibility
from app.schemas.dog import DogResponse
from app.schemas.encounter import (
    EncounterDetectionResponse,
    EncounterListResponse,
    EncounterResponse,
    NearbyDog,
    NearbyDogsResponse,
)
from app.services.dog_service import dog_service
from app.services.geo import BoundingBox, haversine_meters, validate_coordinates
from app.services.location_service import as_utc, location_service, utc_now

logger = logging.getLogger(__name__)

# (location, dog, distance in meters)
Candidate = Tuple[DeviceLocation, Dog, float]

MAX_PAGE_SIZE = 100


def validate_radius(radius_meters: float) -> None:
    limit = settings.max_detection_radius_meters
    if radius_meters is None or not 0 < radius_meters <= limit:
        raise ValidationError(
            message=f"Radius must be greater than 0 and at most {limit:g} meters",
            field="radius_meters",
        )


class EncounterService:
    """
    Encounter creation and querying.

    Responsibilities:
        - detect(): GPS proximity detection for one dog
        - record_bluetooth_encounter(): encounter reported by a beacon sighting
        - list_encounters(): a dog's encounter history, newest first
        - nearby_dogs(): public dogs with fresh positions around a point
    """

    # ── Shared queries ────────────────────────────────────────────────────

    async def _recent_encounter_exists(
        self,
        db: AsyncSession,
        dog_a: UUID,
        dog_b: UUID,
        now: datetime,
    ) -> bool:
        """True if the pair (either order) met within the dedup window."""
        low, high = canonical_pair(dog_a, dog_b)
        result = await db.execute(
            select(Encounter.id)
            .where(
                Encounter.pair_low_id == low,
                Encounter.pair_high_id == high,
                Encounter.timestamp > now - settings.dedup_window,
            )
            .limit(1)
        )
        return result.first() is not None

    async def _find_candidates(
        self,
        db: AsyncSession,
        latitude: float,
        longitude: float,
        radius_meters: float,
        exclude_dog_id: UUID,
        now: datetime,
        public_only: bool = False,
    ) -> List[Candidate]:
        """
        Fresh locations of other dogs within radius_meters of a point,
        nearest first.

        The bounding box keeps the SQL on the (latitude, longitude) index;
        the haversine pass drops the box corners that lie outside the circle.
        """
        box = BoundingBox.around(latitude, longitude, radius_meters)

        query = (
            select(DeviceLocation, Dog)
            .join(Dog, Dog.id == DeviceLocation.dog_id)
            .where(
                DeviceLocation.dog_id != exclude_dog_id,
                DeviceLocation.updated_at >= now - settings.freshness_window,
                DeviceLocation.latitude.between(box.min_lat, box.max_lat),
                or_(*[
                    DeviceLocation.longitude.between(lo, hi)
                    for lo, hi in box.lng_ranges
                ]),
            )
        )
        if public_only:
            query = query.join(User, User.id == Dog.user_id).where(
                User.visibility == Visibility.PUBLIC.value
            )

        result = await db.execute(query)

        candidates: List[Candidate] = []
        for location, dog in result.all():
            distance = haversine_meters(latitude, longitude, location.latitude, location.longitude)
            if distance <= radius_meters:
                candidates.append((location, dog, distance))

        candidates.sort(key=lambda c: c[2])
        return candidates

    # ── GPS detection ─────────────────────────────────────────────────────

    async def _record_gps_encounter(
        self,
        db: AsyncSession,
        dog_id: UUID,
        other_dog_id: UUID,
        latitude: float,
        longitude: float,
        now: datetime,
    ) -> Optional[Encounter]:
        if await self._recent_encounter_exists(db, dog_id, other_dog_id, now):
            return None
        encounter = Encounter.record(
            dog1_id=dog_id,
            dog2_id=other_dog_id,
            latitude=latitude,
            longitude=longitude,
            method=DetectionMethod.GPS,
            at=now,
            window=settings.dedup_window,
        )
        db.add(encounter)
        await db.flush()
        return encounter

    async def detect(
        self,
        db: AsyncSession,
        dog_id: UUID,
        radius_meters: float,
    ) -> EncounterDetectionResponse:
        """
        Create GPS encounters between a dog and every dog near its last
        known position.

        Each new encounter has dog1 = the querying dog, and the querying
        dog's position as its location. Calling this twice in a row without
        anybody moving creates nothing the second time.

        Args:
            db: Async database session
            dog_id: The dog running detection
            radius_meters: Search radius, (0, MAX_DETECTION_RADIUS_METERS]

        Returns:
            Only the encounters created by this call

        Raises:
            ValidationError: radius out of range
            NotFoundError: the dog has no reported location
            DatabaseError: the candidate search itself failed
        """
        validate_radius(radius_meters)
        now = utc_now()

        try:
            own = await location_service.get_location_model(db, dog_id)
            if own is None:
                raise NotFoundError(resource="location", resource_id=str(dog_id))
            # Plain values: a rolled-back savepoint below may expire ORM state
            latitude, longitude = own.latitude, own.longitude

            candidates = await self._find_candidates(
                db, latitude, longitude, radius_meters, exclude_dog_id=dog_id, now=now
            )
            candidate_ids = [location.dog_id for location, _, _ in candidates]
        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error searching candidates for dog %s: %s", dog_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not run encounter detection. Please try again.",
                context={"dog_id": str(dog_id)},
            )

        created: List[EncounterResponse] = []
        for other_dog_id in candidate_ids:
            try:
                async with db.begin_nested():
                    encounter = await self._record_gps_encounter(
                        db, dog_id, other_dog_id, latitude, longitude, now
                    )
            except SQLAlchemyError as e:
                logger.warning(
                    "Skipping encounter %s <-> %s: %s: %s",
                    dog_id, other_dog_id, type(e).__name__, str(e),
                )
                continue

            if encounter is not None:
                created.append(EncounterResponse.model_validate(encounter))

        logger.info(
            "GPS detection for dog %s: %d candidate(s), %d new encounter(s)",
            dog_id, len(candidate_ids), len(created),
        )
        return EncounterDetectionResponse(encounters=created, count=len(created))

    # ── Bluetooth ─────────────────────────────────────────────────────────

    async def record_bluetooth_encounter(
        self,
        db: AsyncSession,
        dog_id: UUID,
        other_dog_id: UUID,
        latitude: float,
        longitude: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> EncounterResponse:
        """
        Record an encounter reported by a device that picked up another
        dog's beacon.

        Raises:
            ValidationError: same dog on both sides, or bad coordinates
            NotFoundError: either dog does not exist
            ConflictError: the pair already met within the dedup window
        """
        if dog_id == other_dog_id:
            raise ValidationError(
                message="A dog cannot encounter itself",
                field="other_dog_id",
            )
        validate_coordinates(latitude, longitude)
        now = utc_now()

        try:
            await dog_service.get_dog_model(db, dog_id)
            await dog_service.get_dog_model(db, other_dog_id)

            if await self._recent_encounter_exists(db, dog_id, other_dog_id, now):
                raise ConflictError(
                    message="Encounter already recorded recently",
                    context={"dog_id": str(dog_id), "other_dog_id": str(other_dog_id)},
                )

            encounter = Encounter.record(
                dog1_id=dog_id,
                dog2_id=other_dog_id,
                latitude=latitude,
                longitude=longitude,
                method=DetectionMethod.BLUETOOTH,
                at=now,
                window=settings.dedup_window,
                beacon_metadata=metadata or {},
            )
            try:
                async with db.begin_nested():
                    db.add(encounter)
                    await db.flush()
            except IntegrityError:
                # Lost the race against a concurrent report for the same pair
                raise ConflictError(
                    message="Encounter already recorded recently",
                    context={"dog_id": str(dog_id), "other_dog_id": str(other_dog_id)},
                )

            logger.info("Bluetooth encounter recorded: %s <-> %s (%s)", dog_id, other_dog_id, encounter.id)
            return EncounterResponse.model_validate(encounter)

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error recording bluetooth encounter: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not record the encounter. Please try again.",
                context={"dog_id": str(dog_id), "other_dog_id": str(other_dog_id)},
            )

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_encounters(
        self,
        db: AsyncSession,
        dog_id: UUID,
        limit: int = 20,
        offset: int = 0,
    ) -> EncounterListResponse:
        """
        A dog's encounters (as either participant), newest first.

        Query plan:
            WHERE dog1_id = :id OR dog2_id = :id ORDER BY timestamp DESC
            → BitmapOr over idx_encounters_dog1_id / idx_encounters_dog2_id
        """
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                message=f"Limit must be between 1 and {MAX_PAGE_SIZE}",
                field="limit",
            )
        if offset < 0:
            raise ValidationError(message="Offset must not be negative", field="offset")

        try:
            await dog_service.get_dog_model(db, dog_id)

            involves_dog = or_(Encounter.dog1_id == dog_id, Encounter.dog2_id == dog_id)
            result = await db.execute(
                select(Encounter)
                .where(involves_dog)
                .order_by(desc(Encounter.timestamp), desc(Encounter.id))
                .limit(limit)
                .offset(offset)
            )
            encounters = list(result.scalars().all())

            count_result = await db.execute(
                select(func.count(Encounter.id)).where(involves_dog)
            )
            total_count = count_result.scalar() or 0

            return EncounterListResponse(
                encounters=[EncounterResponse.model_validate(e) for e in encounters],
                total_count=total_count,
                limit=limit,
                offset=offset,
                has_more=offset + len(encounters) < total_count,
            )

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error listing encounters for dog %s: %s", dog_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve encounters. Please try again.",
                context={"dog_id": str(dog_id)},
            )

    async def nearby_dogs(
        self,
        db: AsyncSession,
        dog_id: UUID,
        latitude: float,
        longitude: float,
        radius_meters: float,
    ) -> NearbyDogsResponse:
        """
        Dogs with a fresh position within radius_meters of a point, nearest
        first. The asking dog and dogs of private owners are left out.
        """
        validate_coordinates(latitude, longitude)
        validate_radius(radius_meters)
        now = utc_now()

        try:
            await dog_service.get_dog_model(db, dog_id)

            candidates = await self._find_candidates(
                db,
                latitude,
                longitude,
                radius_meters,
                exclude_dog_id=dog_id,
                now=now,
                public_only=True,
            )
            nearby = [
                NearbyDog(
                    dog=DogResponse.model_validate(dog),
                    distance_meters=round(distance, 2),
                    last_seen=as_utc(location.updated_at),
                )
                for location, dog, distance in candidates
            ]
            return NearbyDogsResponse(dogs=nearby, count=len(nearby))

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error in nearby search for dog %s: %s", dog_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not search for nearby dogs. Please try again.",
                context={"dog_id": str(dog_id)},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
encounter_service = EncounterService()
