"""
DoggyClub Backend — Dog Service
=================================

What:  CRUD for dog profiles.
Who:   Called by the /api/dogs routes; EncounterService and LocationService
       use get_dog_model() to resolve the dogs they operate on.

Ownership:
    Update and delete are scoped to the caller: somebody else's dog looks
    exactly like a dog that does not exist (404, not 403), so the API never
    confirms which dog ids are valid.
"""

import logging
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, DoggyClubError, NotFoundError, ValidationError
from app.models.dog import Dog
from app.schemas.dog import (
    REQUIRED_DOG_FIELDS,
    DogCreate,
    DogListResponse,
    DogResponse,
    DogUpdate,
)
from app.services.user_service import user_service

logger = logging.getLogger(__name__)


class DogService:

    async def get_dog_model(self, db: AsyncSession, dog_id: UUID) -> Dog:
        """Load a dog row or raise NotFoundError."""
        dog = await db.get(Dog, dog_id)
        if dog is None:
            raise NotFoundError(resource="dog", resource_id=str(dog_id))
        return dog

    async def _get_owned_dog(self, db: AsyncSession, dog_id: UUID, owner_id: UUID) -> Dog:
        dog = await self.get_dog_model(db, dog_id)
        if not dog.is_owned_by(owner_id):
            logger.info("User %s tried to modify dog %s owned by %s", owner_id, dog_id, dog.user_id)
            raise NotFoundError(resource="dog", resource_id=str(dog_id))
        return dog

    async def create_dog(
        self, db: AsyncSession, owner_id: UUID, payload: DogCreate
    ) -> DogResponse:
        """
        Create a dog profile for an existing owner.

        Raises:
            NotFoundError: owner does not exist
        """
        try:
            await user_service.get_user_model(db, owner_id)

            dog = Dog(user_id=owner_id, **payload.model_dump())
            db.add(dog)
            await db.flush()
            logger.info("Dog created: %s (%s) for user %s", dog.id, dog.name, owner_id)
            return DogResponse.model_validate(dog)

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating dog: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the dog. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_dog(self, db: AsyncSession, dog_id: UUID) -> DogResponse:
        try:
            return DogResponse.model_validate(await self.get_dog_model(db, dog_id))
        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching dog %s: %s", dog_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the dog. Please try again.",
                context={"dog_id": str(dog_id)},
            )

    async def list_dogs_for_user(self, db: AsyncSession, owner_id: UUID) -> DogListResponse:
        """All dogs of one owner, newest profile first."""
        try:
            await user_service.get_user_model(db, owner_id)

            result = await db.execute(
                select(Dog).where(Dog.user_id == owner_id).order_by(desc(Dog.created_at))
            )
            dogs = list(result.scalars().all())

            count_result = await db.execute(
                select(func.count(Dog.id)).where(Dog.user_id == owner_id)
            )
            total_count = count_result.scalar() or 0

            return DogListResponse(
                dogs=[DogResponse.model_validate(dog) for dog in dogs],
                total_count=total_count,
            )

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error listing dogs for %s: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve dogs. Please try again.",
                context={"user_id": str(owner_id)},
            )

    async def update_dog(
        self, db: AsyncSession, dog_id: UUID, owner_id: UUID, payload: DogUpdate
    ) -> DogResponse:
        """Apply the fields present in `payload` to a dog the caller owns."""
        try:
            dog = await self._get_owned_dog(db, dog_id, owner_id)

            changes = payload.model_dump(exclude_unset=True)
            for field in REQUIRED_DOG_FIELDS:
                if field in changes and changes[field] is None:
                    raise ValidationError(message=f"{field} cannot be null", field=field)
            for field, value in changes.items():
                setattr(dog, field, value)
            if changes:
                await db.flush()
                logger.info("Dog %s updated: %s", dog_id, ", ".join(sorted(changes)))

            return DogResponse.model_validate(dog)

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating dog %s: %s", dog_id, str(e))
            raise DatabaseError(
                message="Could not update the dog. Please try again.",
                context={"dog_id": str(dog_id)},
            )

    async def delete_dog(self, db: AsyncSession, dog_id: UUID, owner_id: UUID) -> None:
        """Delete a dog the caller owns, with its location and encounters."""
        try:
            dog = await self._get_owned_dog(db, dog_id, owner_id)
            await db.delete(dog)
            await db.flush()
            logger.info("Dog %s deleted by user %s", dog_id, owner_id)

        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error deleting dog %s: %s", dog_id, str(e))
            raise DatabaseError(
                message="Could not delete the dog. Please try again.",
                context={"dog_id": str(dog_id)},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
dog_service = DogService()
