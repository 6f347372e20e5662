"""
DoggyClub Backend — DeviceLocation SQLAlchemy Model
=====================================================

What:  ORM model representing the `device_locations` table.
Why:   Encounter detection needs every dog's last known position.
How:   One row per dog, overwritten on each report (upsert). No history.

Table Design Rationale:
    - dog_id UNIQUE: enforces "at most one live location per dog" in the
      store itself; a racing first insert fails instead of duplicating
    - latitude/longitude as plain floats: the radius query is a bounding-box
      prefilter on these two columns plus an exact haversine check, so no
      spatial extension is required
    - composite (latitude, longitude) index: serves the bounding-box prefilter
    - updated_at index: serves both the freshness filter and the retention
      cleanup (DELETE ... WHERE updated_at < :cutoff)
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.dog import Dog


class DeviceLocation(Base):
    """
    The most recently reported position for a dog.

    Lifecycle:
        1. Created on the dog's first location report
        2. Overwritten (point + updated_at) on every later report
        3. Deleted by the retention cleanup once older than the retention period
    """

    __tablename__ = "device_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    dog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("dogs.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    dog: Mapped["Dog"] = relationship(back_populates="device_location")

    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_device_locations_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_device_locations_longitude"),
        Index("idx_device_locations_lat_lng", "latitude", "longitude"),
        Index("idx_device_locations_updated_at", "updated_at"),
    )

    def move_to(self, latitude: float, longitude: float, at: datetime) -> None:
        """Overwrite the point and timestamp in place (the update half of the upsert)."""
        self.latitude = latitude
        self.longitude = longitude
        self.updated_at = at

    def __repr__(self) -> str:
        return (
            f"<DeviceLocation(dog_id={self.dog_id}, "
            f"lat={self.latitude}, lng={self.longitude}, updated_at='{self.updated_at}')>"
        )
