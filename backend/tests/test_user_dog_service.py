"""
DoggyClub Backend — User & Dog Service Tests
==============================================

What we test:
    ✅ Duplicate username/email raise ConflictError
    ✅ Visibility changes
    ✅ Dogs need an existing owner; update/delete need the right owner
    ✅ A null for a required dog field is a client error, not a failed flush
    ✅ Deleting a dog removes its location and encounters
"""

from datetime import datetime, timezone
from uuid import uuid4

import pydantic
import pytest
from sqlalchemy import func, select

from app.config import settings
from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import DetectionMethod, DeviceLocation, Encounter, Visibility
from app.schemas.dog import DogCreate, DogUpdate
from app.schemas.user import UserCreate
from app.services.dog_service import DogService
from app.services.user_service import UserService


class TestUserService:

    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_create_and_get(self, db_session):
        created = await self.service.create_user(
            db_session, UserCreate(username="rex_owner", email="rex@example.com")
        )

        fetched = await self.service.get_user(db_session, created.id)

        assert fetched.username == "rex_owner"
        assert fetched.visibility == Visibility.PUBLIC

    @pytest.mark.asyncio
    async def test_duplicate_username(self, db_session, user_factory):
        await user_factory(username="taken")
        with pytest.raises(ConflictError) as exc_info:
            await self.service.create_user(
                db_session, UserCreate(username="taken", email="new@example.com")
            )
        assert exc_info.value.context["field"] == "username"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session, user_factory):
        existing = await user_factory()
        with pytest.raises(ConflictError) as exc_info:
            await self.service.create_user(
                db_session, UserCreate(username="someone_else", email=existing.email)
            )
        assert exc_info.value.context["field"] == "email"

    @pytest.mark.asyncio
    async def test_update_visibility(self, db_session, user_factory):
        user = await user_factory()

        result = await self.service.update_visibility(db_session, user.id, Visibility.PRIVATE)

        assert result.visibility == Visibility.PRIVATE
        assert user.visibility == "private"

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.get_user(db_session, uuid4())


class TestDogService:

    def setup_method(self):
        self.service = DogService()

    @pytest.mark.asyncio
    async def test_create_for_owner(self, db_session, user_factory):
        owner = await user_factory()

        dog = await self.service.create_dog(
            db_session, owner.id, DogCreate(name="Biscuit", breed="Corgi", age=2)
        )

        assert dog.user_id == owner.id
        assert dog.bio == ""
        listed = await self.service.list_dogs_for_user(db_session, owner.id)
        assert listed.total_count == 1
        assert listed.dogs[0].name == "Biscuit"

    @pytest.mark.asyncio
    async def test_create_for_missing_owner(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.create_dog(
                db_session, uuid4(), DogCreate(name="Ghost", breed="Husky", age=4)
            )

    @pytest.mark.asyncio
    async def test_partial_update(self, db_session, dog_factory, user_factory):
        owner = await user_factory()
        dog = await dog_factory(owner=owner, name="Max")

        result = await self.service.update_dog(
            db_session, dog.id, owner.id, DogUpdate(bio="Loves the beach")
        )

        assert result.name == "Max"
        assert result.bio == "Loves the beach"

    @pytest.mark.asyncio
    async def test_update_by_someone_else_looks_missing(self, db_session, dog_factory, user_factory):
        dog = await dog_factory()
        stranger = await user_factory()

        with pytest.raises(NotFoundError):
            await self.service.update_dog(db_session, dog.id, stranger.id, DogUpdate(name="Mine"))
        with pytest.raises(NotFoundError):
            await self.service.delete_dog(db_session, dog.id, stranger.id)

    @pytest.mark.asyncio
    async def test_delete_cascades(self, db_session, dog_factory, user_factory, location_factory):
        owner = await user_factory()
        dog, friend = await dog_factory(owner=owner), await dog_factory()
        await location_factory(dog, 10.0, 10.0)
        db_session.add(Encounter.record(
            dog1_id=dog.id, dog2_id=friend.id, latitude=10.0, longitude=10.0,
            method=DetectionMethod.GPS, at=datetime.now(timezone.utc),
            window=settings.dedup_window,
        ))
        await db_session.flush()

        await self.service.delete_dog(db_session, dog.id, owner.id)

        locations = await db_session.execute(
            select(func.count(DeviceLocation.id)).where(DeviceLocation.dog_id == dog.id)
        )
        encounters = await db_session.execute(select(func.count(Encounter.id)))
        assert locations.scalar() == 0
        assert encounters.scalar() == 0
        with pytest.raises(NotFoundError):
            await self.service.get_dog(db_session, dog.id)

    @pytest.mark.asyncio
    async def test_null_for_required_field_rejected(self, db_session, dog_factory, user_factory):
        owner = await user_factory()
        dog = await dog_factory(owner=owner, name="Max")

        with pytest.raises(ValidationError) as exc_info:
            await self.service.update_dog(
                db_session, dog.id, owner.id, DogUpdate.model_construct(name=None)
            )

        assert exc_info.value.field == "name"
        assert dog.name == "Max"

    @pytest.mark.parametrize("field", ["name", "breed", "age", "bio"])
    def test_update_schema_rejects_null(self, field):
        with pytest.raises(pydantic.ValidationError):
            DogUpdate(**{field: None})

    def test_update_schema_allows_clearing_photo(self):
        assert DogUpdate(photo_url=None).model_dump(exclude_unset=True) == {"photo_url": None}
