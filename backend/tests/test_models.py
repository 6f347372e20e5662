"""
DoggyClub Backend — Table Constraint Tests
============================================

What:  Rows that bypass the services must still be rejected by the table
       definitions the app creates (same constraints as the migration).
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.models import DetectionMethod, DeviceLocation, Encounter, User


def _encounter(dog1, dog2, **overrides) -> Encounter:
    encounter = Encounter.record(
        dog1_id=dog1.id,
        dog2_id=dog2.id,
        latitude=0.0,
        longitude=0.0,
        method=DetectionMethod.GPS,
        at=datetime.now(timezone.utc),
        window=settings.dedup_window,
    )
    for field, value in overrides.items():
        setattr(encounter, field, value)
    return encounter


class TestEncounterConstraints:

    @pytest.mark.asyncio
    async def test_dog_cannot_meet_itself(self, db_session, dog_factory):
        dog = await dog_factory()
        db_session.add(_encounter(dog, dog))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_pair_must_be_ordered(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()
        encounter = _encounter(a, b)
        encounter.pair_low_id, encounter.pair_high_id = encounter.pair_high_id, encounter.pair_low_id
        db_session.add(encounter)
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_unknown_detection_method(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()
        db_session.add(_encounter(a, b, detection_method="wifi"))
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestLocationAndUserConstraints:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat,lng", [(90.5, 0.0), (0.0, -180.5)])
    async def test_coordinates_out_of_range(self, db_session, dog_factory, lat, lng):
        dog = await dog_factory()
        db_session.add(DeviceLocation(
            dog_id=dog.id, latitude=lat, longitude=lng, updated_at=datetime.now(timezone.utc),
        ))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_unknown_visibility(self, db_session):
        db_session.add(User(username="odd_one", email="odd@example.com", visibility="friends"))
        with pytest.raises(IntegrityError):
            await db_session.flush()
