"""
DoggyClub Backend — Encounter SQLAlchemy Model
================================================

What:  ORM model representing the `encounters` table.
Why:   An encounter is the product's core event: two dogs were in the same
       place at the same time.
How:   Rows are created by GPS detection or a Bluetooth report and are never
       updated afterwards.

Dedup Constraint:
    The service checks for an encounter between the same pair inside the
    dedup window before inserting. On its own that check races: two
    concurrent detections can both see "nothing recent" and both insert.

    Each row therefore also stores the pair in canonical order
    (pair_low_id < pair_high_id) and the dedup bucket its timestamp falls
    into (epoch seconds // window seconds). A unique constraint over those
    three columns makes the second of two racing inserts fail. Two rows
    for one pair in the same bucket are always less than one window apart,
    so the constraint can only ever reject a row the window check would
    have rejected too.
"""

import enum
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class DetectionMethod(str, enum.Enum):
    GPS = "gps"
    BLUETOOTH = "bluetooth"


def canonical_pair(a: uuid.UUID, b: uuid.UUID) -> Tuple[uuid.UUID, uuid.UUID]:
    """Order a pair of dog ids so {A, B} and {B, A} map to the same key."""
    return (a, b) if a <= b else (b, a)


def dedup_bucket(at: datetime, window: timedelta) -> int:
    """Index of the fixed-width window that `at` falls into."""
    return int(at.timestamp() // window.total_seconds())


class Encounter(Base):
    """
    A recorded co-location event between two dogs.

    dog1 is the initiating dog (the one that ran GPS detection or reported
    the Bluetooth contact); dog2 is the dog it met.
    """

    __tablename__ = "encounters"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    dog1_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("dogs.id", ondelete="CASCADE"),
        nullable=False,
    )
    dog2_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("dogs.id", ondelete="CASCADE"),
        nullable=False,
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    detection_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="gps | bluetooth",
    )

    timestamp: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # Beacon payload for Bluetooth reports (RSSI, beacon id, ...); NULL for GPS.
    # Attribute name differs from the column because `metadata` is reserved
    # on declarative classes.
    beacon_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )

    # ── Dedup key (see module docstring) ──────────────────────────────────
    pair_low_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    pair_high_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    dedup_bucket: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("dog1_id <> dog2_id", name="ck_encounters_distinct_dogs"),
        CheckConstraint("pair_low_id < pair_high_id", name="ck_encounters_pair_order"),
        CheckConstraint(
            "detection_method IN ('gps', 'bluetooth')",
            name="ck_encounters_detection_method",
        ),
        UniqueConstraint(
            "pair_low_id", "pair_high_id", "dedup_bucket",
            name="uq_encounters_pair_bucket",
        ),
        Index("idx_encounters_pair_timestamp", "pair_low_id", "pair_high_id", "timestamp"),
        Index("idx_encounters_dog1_id", "dog1_id"),
        Index("idx_encounters_dog2_id", "dog2_id"),
        Index("idx_encounters_timestamp", timestamp.desc()),
    )

    @classmethod
    def record(
        cls,
        dog1_id: uuid.UUID,
        dog2_id: uuid.UUID,
        latitude: float,
        longitude: float,
        method: DetectionMethod,
        at: datetime,
        window: timedelta,
        beacon_metadata: Optional[Dict[str, Any]] = None,
    ) -> "Encounter":
        """Build an encounter with its dedup key filled in."""
        low, high = canonical_pair(dog1_id, dog2_id)
        return cls(
            dog1_id=dog1_id,
            dog2_id=dog2_id,
            latitude=latitude,
            longitude=longitude,
            detection_method=method.value,
            timestamp=at,
            beacon_metadata=beacon_metadata,
            pair_low_id=low,
            pair_high_id=high,
            dedup_bucket=dedup_bucket(at, window),
        )

    def __repr__(self) -> str:
        return (
            f"<Encounter(id={self.id}, dog1={self.dog1_id}, dog2={self.dog2_id}, "
            f"method='{self.detection_method}', timestamp='{self.timestamp}')>"
        )
