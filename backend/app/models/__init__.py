"""
DoggyClub Backend — ORM Models Package
========================================

What:  SQLAlchemy models for every table the service owns.
Why:   Importing the package registers all tables on `Base.metadata`, which
       Alembic autogenerate and the test fixtures rely on.

Tables:
    users             ← dog owners (visibility gates the nearby query)
    dogs              ← dog profiles, one owner each
    device_locations  ← last known position, exactly one row per dog
    encounters        ← immutable co-location events between two dogs
"""

from app.models.user import User, Visibility
from app.models.dog import Dog
from app.models.location import DeviceLocation
from app.models.encounter import DetectionMethod, Encounter

__all__ = [
    "User",
    "Visibility",
    "Dog",
    "DeviceLocation",
    "DetectionMethod",
    "Encounter",
]
