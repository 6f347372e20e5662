"""
DoggyClub Backend — User Service
==================================

What:  Create and read dog owners, and change their visibility.
Who:   Called by the /api/users routes; DogService relies on get_user_model()
       to check ownership targets exist.

Visibility is the only user attribute the encounter subsystem reads: a
private owner's dogs are left out of other owners' nearby searches.
"""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, DatabaseError, DoggyClubError, NotFoundError
from app.models.user import User, Visibility
from app.schemas.user import UserCreate, UserResponse

logger = logging.getLogger(__name__)


class UserService:
    """Stateless user operations; every call receives its own session."""

    async def get_user_model(self, db: AsyncSession, user_id: UUID) -> User:
        """Load a user row or raise NotFoundError."""
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def create_user(self, db: AsyncSession, payload: UserCreate) -> UserResponse:
        """
        Register a new owner.

        Raises:
            ConflictError: username or email already taken
        """
        try:
            result = await db.execute(
                select(User).where(
                    or_(User.username == payload.username, User.email == payload.email)
                )
            )
            existing = result.scalars().first()
            if existing is not None:
                field = "username" if existing.username == payload.username else "email"
                raise ConflictError(
                    message=f"A user with this {field} already exists",
                    context={"field": field},
                )

            user = User(
                username=payload.username,
                email=payload.email,
                visibility=payload.visibility.value,
            )
            db.add(user)
            # Flush inside a savepoint so a racing duplicate surfaces as a
            # conflict without discarding the request's transaction
            async with db.begin_nested():
                await db.flush()
            logger.info("User created: %s (%s)", user.id, user.username)
            return UserResponse.model_validate(user)

        except IntegrityError:
            raise ConflictError(message="A user with this username or email already exists")
        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_user(self, db: AsyncSession, user_id: UUID) -> UserResponse:
        try:
            return UserResponse.model_validate(await self.get_user_model(db, user_id))
        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the user. Please try again.",
                context={"user_id": str(user_id)},
            )

    async def update_visibility(
        self, db: AsyncSession, user_id: UUID, visibility: Visibility
    ) -> UserResponse:
        """Switch a user between public and private."""
        try:
            user = await self.get_user_model(db, user_id)
            if user.visibility != visibility.value:
                user.visibility = visibility.value
                await db.flush()
                logger.info("User %s visibility set to %s", user_id, visibility.value)
            return UserResponse.model_validate(user)
        except DoggyClubError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not update the user. Please try again.",
                context={"user_id": str(user_id)},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
