"""
DoggyClub Backend — Encounter Service Tests
=============================================

What:  Detection, Bluetooth reports, history and nearby search against a real
       (SQLite) database.

What we test:
    ✅ Two dogs ~14 m apart: one GPS encounter, then nothing on repeat
    ✅ Dedup holds for either pair order and is backed by the unique bucket
    ✅ Stale and out-of-radius locations are ignored
    ✅ One failing candidate is logged and skipped, the rest still recorded
    ✅ Bluetooth: 409 inside the window, success after it, self-encounter rejected
    ✅ History is newest first and paginated
    ✅ Nearby hides private owners, stale positions and the asking dog
"""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import DetectionMethod, Encounter, Visibility
from app.services.encounter_service import EncounterService

A_LAT, A_LNG = 37.7749, -122.4194
B_LAT, B_LNG = 37.7750, -122.4195

# ~1 m of latitude, in degrees
METER = 1 / 111_195


async def _encounter_count(db_session) -> int:
    result = await db_session.execute(select(func.count(Encounter.id)))
    return result.scalar()


def _existing(dog1, dog2, ago: timedelta, method=DetectionMethod.GPS) -> Encounter:
    at = datetime.now(timezone.utc) - ago
    return Encounter.record(
        dog1_id=dog1.id,
        dog2_id=dog2.id,
        latitude=A_LAT,
        longitude=A_LNG,
        method=method,
        at=at,
        window=settings.dedup_window,
    )


class TestDetect:

    def setup_method(self):
        self.service = EncounterService()

    @pytest.mark.asyncio
    async def test_neighbours_meet_once(self, db_session, dog_factory, location_factory):
        a, b = await dog_factory(), await dog_factory()
        await location_factory(a, A_LAT, A_LNG)
        await location_factory(b, B_LAT, B_LNG)

        first = await self.service.detect(db_session, a.id, 50)

        assert first.count == 1
        encounter = first.encounters[0]
        assert encounter.dog1_id == a.id
        assert encounter.dog2_id == b.id
        assert encounter.detection_method == DetectionMethod.GPS
        assert (encounter.latitude, encounter.longitude) == (A_LAT, A_LNG)
        assert encounter.metadata is None

        second = await self.service.detect(db_session, a.id, 50)
        assert second.count == 0
        assert second.encounters == []
        assert await _encounter_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_dedup_ignores_pair_order(self, db_session, dog_factory, location_factory):
        a, b = await dog_factory(), await dog_factory()
        await location_factory(a, A_LAT, A_LNG)
        await location_factory(b, B_LAT, B_LNG)

        await self.service.detect(db_session, a.id, 50)
        from_b = await self.service.detect(db_session, b.id, 50)

        assert from_b.count == 0
        assert await _encounter_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_pair_meets_again_after_window(self, db_session, dog_factory, location_factory):
        a, b = await dog_factory(), await dog_factory()
        await location_factory(a, A_LAT, A_LNG)
        await location_factory(b, B_LAT, B_LNG)
        db_session.add(_existing(b, a, ago=timedelta(minutes=31)))
        await db_session.flush()

        result = await self.service.detect(db_session, a.id, 50)

        assert result.count == 1
        assert await _encounter_count(db_session) == 2

    @pytest.mark.asyncio
    async def test_stale_and_distant_dogs_ignored(self, db_session, dog_factory, location_factory):
        a, stale, far, near = [await dog_factory() for _ in range(4)]
        await location_factory(a, A_LAT, A_LNG)
        await location_factory(stale, B_LAT, B_LNG, age=timedelta(minutes=61))
        await location_factory(far, A_LAT + 200 * METER, A_LNG)
        await location_factory(near, A_LAT + 40 * METER, A_LNG)

        result = await self.service.detect(db_session, a.id, 50)

        assert [e.dog2_id for e in result.encounters] == [near.id]

    @pytest.mark.asyncio
    async def test_every_dog_in_range_gets_an_encounter(self, db_session, dog_factory, location_factory):
        a = await dog_factory()
        others = [await dog_factory() for _ in range(3)]
        await location_factory(a, A_LAT, A_LNG)
        for i, dog in enumerate(others):
            await location_factory(dog, A_LAT + (10 + 10 * i) * METER, A_LNG)

        result = await self.service.detect(db_session, a.id, 100)

        assert result.count == 3
        assert {e.dog2_id for e in result.encounters} == {d.id for d in others}

    @pytest.mark.asyncio
    async def test_neighbours_across_the_antimeridian(self, db_session, dog_factory, location_factory):
        a, b, opposite = [await dog_factory() for _ in range(3)]
        await location_factory(a, -17.7, 179.9999)
        await location_factory(b, -17.7, -179.9999)
        await location_factory(opposite, -17.7, 0.0)

        result = await self.service.detect(db_session, a.id, 50)

        assert [e.dog2_id for e in result.encounters] == [b.id]

    @pytest.mark.asyncio
    async def test_dog_without_location(self, db_session, dog_factory):
        dog = await dog_factory()
        with pytest.raises(NotFoundError):
            await self.service.detect(db_session, dog.id, 50)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("radius", [0, -5, settings.max_detection_radius_meters + 1])
    async def test_radius_out_of_range(self, db_session, dog_factory, location_factory, radius):
        dog = await dog_factory()
        await location_factory(dog, A_LAT, A_LNG)
        with pytest.raises(ValidationError):
            await self.service.detect(db_session, dog.id, radius)

    @pytest.mark.asyncio
    async def test_failing_candidate_is_skipped(self, db_session, dog_factory, location_factory, caplog):
        a, good, bad = [await dog_factory() for _ in range(3)]
        await location_factory(a, A_LAT, A_LNG)
        await location_factory(good, A_LAT + 10 * METER, A_LNG)
        await location_factory(bad, A_LAT + 20 * METER, A_LNG)

        real_check = self.service._recent_encounter_exists

        async def fail_for_bad(db, dog_a, dog_b, now):
            if dog_b == bad.id:
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
            return await real_check(db, dog_a, dog_b, now)

        with patch.object(self.service, "_recent_encounter_exists", side_effect=fail_for_bad), \
             caplog.at_level(logging.WARNING, logger="app.services.encounter_service"):
            result = await self.service.detect(db_session, a.id, 50)

        assert [e.dog2_id for e in result.encounters] == [good.id]
        assert await _encounter_count(db_session) == 1
        assert any("Skipping encounter" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unique_bucket_stops_a_racing_duplicate(self, db_session, dog_factory, location_factory):
        """If the window check misses a concurrent insert, the constraint still holds."""
        a, b = await dog_factory(), await dog_factory()
        await location_factory(a, A_LAT, A_LNG)
        await location_factory(b, B_LAT, B_LNG)
        fixed_now = datetime.now(timezone.utc)

        with patch("app.services.encounter_service.utc_now", return_value=fixed_now):
            await self.service.detect(db_session, a.id, 50)
            with patch.object(self.service, "_recent_encounter_exists", return_value=False):
                raced = await self.service.detect(db_session, b.id, 50)

        assert raced.count == 0
        assert await _encounter_count(db_session) == 1


class TestBluetooth:

    def setup_method(self):
        self.service = EncounterService()

    @pytest.mark.asyncio
    async def test_records_encounter_with_metadata(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()

        result = await self.service.record_bluetooth_encounter(
            db_session, a.id, b.id, A_LAT, A_LNG, metadata={"rssi": -67, "beacon_id": "fd6f"}
        )

        assert result.dog1_id == a.id
        assert result.dog2_id == b.id
        assert result.detection_method == DetectionMethod.BLUETOOTH
        assert result.metadata == {"rssi": -67, "beacon_id": "fd6f"}

    @pytest.mark.asyncio
    async def test_duplicate_within_window_conflicts(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()
        db_session.add(_existing(a, b, ago=timedelta(minutes=5), method=DetectionMethod.BLUETOOTH))
        await db_session.flush()

        with pytest.raises(ConflictError):
            await self.service.record_bluetooth_encounter(db_session, b.id, a.id, A_LAT, A_LNG)
        assert await _encounter_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_gps_encounter_also_blocks_bluetooth(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()
        db_session.add(_existing(a, b, ago=timedelta(minutes=1)))
        await db_session.flush()

        with pytest.raises(ConflictError):
            await self.service.record_bluetooth_encounter(db_session, a.id, b.id, A_LAT, A_LNG)

    @pytest.mark.asyncio
    async def test_allowed_again_after_window(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()
        db_session.add(_existing(a, b, ago=timedelta(minutes=31), method=DetectionMethod.BLUETOOTH))
        await db_session.flush()

        result = await self.service.record_bluetooth_encounter(db_session, a.id, b.id, A_LAT, A_LNG)

        assert result.dog1_id == a.id
        assert await _encounter_count(db_session) == 2

    @pytest.mark.asyncio
    async def test_constraint_race_reported_as_conflict(self, db_session, dog_factory):
        a, b = await dog_factory(), await dog_factory()
        fixed_now = datetime.now(timezone.utc)
        db_session.add(Encounter.record(
            dog1_id=a.id, dog2_id=b.id, latitude=A_LAT, longitude=A_LNG,
            method=DetectionMethod.BLUETOOTH, at=fixed_now, window=settings.dedup_window,
        ))
        await db_session.flush()

        with patch("app.services.encounter_service.utc_now", return_value=fixed_now), \
             patch.object(self.service, "_recent_encounter_exists", return_value=False):
            with pytest.raises(ConflictError):
                await self.service.record_bluetooth_encounter(db_session, b.id, a.id, A_LAT, A_LNG)

        assert await _encounter_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_self_encounter_rejected(self, db_session, dog_factory):
        a = await dog_factory()
        with pytest.raises(ValidationError):
            await self.service.record_bluetooth_encounter(db_session, a.id, a.id, A_LAT, A_LNG)

    @pytest.mark.asyncio
    async def test_unknown_other_dog(self, db_session, dog_factory):
        a = await dog_factory()
        with pytest.raises(NotFoundError):
            await self.service.record_bluetooth_encounter(db_session, a.id, uuid4(), A_LAT, A_LNG)


class TestListEncounters:

    def setup_method(self):
        self.service = EncounterService()

    @pytest.mark.asyncio
    async def test_newest_first_either_side(self, db_session, dog_factory):
        a, b, c, d = [await dog_factory() for _ in range(4)]
        db_session.add_all([
            _existing(a, b, ago=timedelta(hours=3)),
            _existing(c, a, ago=timedelta(hours=1)),
            _existing(a, d, ago=timedelta(hours=2)),
            _existing(b, c, ago=timedelta(minutes=10)),  # not involving a
        ])
        await db_session.flush()

        result = await self.service.list_encounters(db_session, a.id)

        assert result.total_count == 3
        assert [(e.dog1_id, e.dog2_id) for e in result.encounters] == [
            (c.id, a.id),
            (a.id, d.id),
            (a.id, b.id),
        ]
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_pagination(self, db_session, dog_factory):
        a = await dog_factory()
        for hours in range(1, 6):
            db_session.add(_existing(a, await dog_factory(), ago=timedelta(hours=hours)))
        await db_session.flush()

        page1 = await self.service.list_encounters(db_session, a.id, limit=2, offset=0)
        page3 = await self.service.list_encounters(db_session, a.id, limit=2, offset=4)

        assert page1.total_count == 5
        assert len(page1.encounters) == 2
        assert page1.has_more is True
        assert len(page3.encounters) == 1
        assert page3.has_more is False
        assert page1.encounters[0].timestamp > page3.encounters[0].timestamp

    @pytest.mark.asyncio
    async def test_unknown_dog(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.list_encounters(db_session, uuid4())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (10, -1)])
    async def test_bad_paging(self, db_session, dog_factory, limit, offset):
        a = await dog_factory()
        with pytest.raises(ValidationError):
            await self.service.list_encounters(db_session, a.id, limit=limit, offset=offset)


class TestNearbyDogs:

    def setup_method(self):
        self.service = EncounterService()

    @pytest.mark.asyncio
    async def test_public_fresh_dogs_nearest_first(
        self, db_session, user_factory, dog_factory, location_factory
    ):
        private_owner = await user_factory(visibility=Visibility.PRIVATE)
        asking = await dog_factory()
        far = await dog_factory(name="Far")
        close = await dog_factory(name="Close")
        hidden = await dog_factory(owner=private_owner)
        stale = await dog_factory()
        outside = await dog_factory()

        await location_factory(asking, A_LAT, A_LNG)
        await location_factory(far, A_LAT + 300 * METER, A_LNG)
        await location_factory(close, A_LAT + 100 * METER, A_LNG)
        await location_factory(hidden, A_LAT + 50 * METER, A_LNG)
        await location_factory(stale, A_LAT + 20 * METER, A_LNG, age=timedelta(hours=2))
        await location_factory(outside, A_LAT + 700 * METER, A_LNG)

        result = await self.service.nearby_dogs(db_session, asking.id, A_LAT, A_LNG, 500)

        assert result.count == 2
        assert [n.dog.name for n in result.dogs] == ["Close", "Far"]
        assert result.dogs[0].distance_meters == pytest.approx(100, abs=1)
        assert result.dogs[1].distance_meters == pytest.approx(300, abs=1)

    @pytest.mark.asyncio
    async def test_point_need_not_be_the_dogs_own_location(self, db_session, dog_factory, location_factory):
        asking, other = await dog_factory(), await dog_factory()
        await location_factory(other, 51.5074, -0.1278)

        result = await self.service.nearby_dogs(db_session, asking.id, 51.5075, -0.1278, 100)

        assert [n.dog.id for n in result.dogs] == [other.id]

    @pytest.mark.asyncio
    async def test_unknown_dog(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.nearby_dogs(db_session, uuid4(), A_LAT, A_LNG, 100)

    @pytest.mark.asyncio
    async def test_invalid_point(self, db_session, dog_factory):
        dog = await dog_factory()
        with pytest.raises(ValidationError):
            await self.service.nearby_dogs(db_session, dog.id, 95.0, A_LNG, 100)
