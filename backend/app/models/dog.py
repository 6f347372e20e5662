"""
DoggyClub Backend — Dog SQLAlchemy Model
==========================================

What:  ORM model representing the `dogs` table.
Why:   The dog, not the user, is the actor of the encounter subsystem: it
       owns a device location and takes part in encounters.

Deleting a dog cascades to its device location and to every encounter it
took part in (ON DELETE CASCADE on the child foreign keys).
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.location import DeviceLocation
    from app.models.user import User


class Dog(Base):
    """A dog profile owned by exactly one user."""

    __tablename__ = "dogs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    breed: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    age: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    photo_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    owner: Mapped["User"] = relationship(back_populates="dogs")

    device_location: Mapped[Optional["DeviceLocation"]] = relationship(
        back_populates="dog",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_dogs_user_id", "user_id"),
        Index("idx_dogs_created_at", created_at.desc()),
    )

    def is_owned_by(self, user_id: uuid.UUID) -> bool:
        return self.user_id == user_id

    def __repr__(self) -> str:
        return f"<Dog(id={self.id}, name='{self.name}', user_id={self.user_id})>"
