"""
DoggyClub Backend — Location & Encounter Schemas
==================================================

What:  Request and response models for location reports, encounter
       detection (GPS and Bluetooth), encounter history and nearby dogs.

Coordinate and radius bounds are enforced here for HTTP callers and again in
the services for everyone else.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.config import settings
from app.models.encounter import DetectionMethod
from app.schemas.dog import DogResponse


# ══════════════════════════════════════════════════════════════════════════
# Device Locations
# ══════════════════════════════════════════════════════════════════════════


class LocationReport(BaseModel):
    dog_id: uuid.UUID
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class DeviceLocationResponse(BaseModel):
    """
    A dog's last known position.

    is_fresh tells the client whether the position is still recent enough to
    take part in detection and nearby searches.
    """
    dog_id: uuid.UUID
    latitude: float
    longitude: float
    updated_at: datetime
    is_fresh: bool = True


# ══════════════════════════════════════════════════════════════════════════
# Encounters
# ══════════════════════════════════════════════════════════════════════════


class DetectionRequest(BaseModel):
    dog_id: uuid.UUID
    radius_meters: float = Field(
        gt=0,
        le=settings.max_detection_radius_meters,
        description="Search radius around the dog's last known position",
    )


class BluetoothEncounterRequest(BaseModel):
    dog_id: uuid.UUID = Field(description="Dog whose device picked up the beacon")
    other_dog_id: uuid.UUID = Field(description="Dog whose beacon was seen")
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw beacon details (RSSI, beacon id, ...), stored as-is",
    )


class EncounterResponse(BaseModel):
    id: uuid.UUID
    dog1_id: uuid.UUID
    dog2_id: uuid.UUID
    latitude: float
    longitude: float
    detection_method: DetectionMethod
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="beacon_metadata")

    model_config = {"from_attributes": True}


class EncounterDetectionResponse(BaseModel):
    """Only encounters created by this detection pass; existing ones are not repeated."""
    encounters: List[EncounterResponse]
    count: int


class EncounterListResponse(BaseModel):
    encounters: List[EncounterResponse]
    total_count: int
    limit: int
    offset: int
    has_more: bool


# ══════════════════════════════════════════════════════════════════════════
# Nearby Dogs
# ══════════════════════════════════════════════════════════════════════════


class NearbyDog(BaseModel):
    dog: DogResponse
    distance_meters: float
    last_seen: datetime


class NearbyDogsResponse(BaseModel):
    dogs: List[NearbyDog]
    count: int
