"""
DoggyClub Backend — User SQLAlchemy Model
===========================================

What:  ORM model representing the `users` table.
Why:   Dogs belong to users, and a user's visibility decides whether their
       dogs show up in other owners' nearby searches.

Credentials are deliberately absent: authentication is handled upstream and
requests arrive with an already-verified user id.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.dog import Dog


class Visibility(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class User(Base):
    """A dog owner."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    email: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    # Stored as a short string rather than a native enum so new values
    # don't need an ALTER TYPE migration
    visibility: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Visibility.PUBLIC.value,
        server_default=text("'public'"),
        comment="public: dogs appear in nearby searches; private: hidden",
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    dogs: Mapped[List["Dog"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("visibility IN ('public', 'private')", name="ck_users_visibility"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', visibility='{self.visibility}')>"
