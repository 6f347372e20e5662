"""
DoggyClub Backend — Dog Profile Schemas
=========================================

Field bounds mirror the columns in app/models/dog.py so an accepted request
can never fail on a column length at flush time.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

# Columns that are NOT NULL in the dogs table; photo_url is the only nullable one
REQUIRED_DOG_FIELDS = ("name", "breed", "age", "bio")


class DogCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    breed: str = Field(min_length=1, max_length=50)
    age: int = Field(ge=0, le=30)
    photo_url: Optional[str] = Field(default=None, max_length=255)
    bio: str = Field(default="", max_length=500)


class DogUpdate(BaseModel):
    """Partial update: only the fields present in the request body are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    breed: Optional[str] = Field(default=None, min_length=1, max_length=50)
    age: Optional[int] = Field(default=None, ge=0, le=30)
    photo_url: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = Field(default=None, max_length=500)

    @field_validator(*REQUIRED_DOG_FIELDS)
    @classmethod
    def reject_null(cls, v, info):
        """Omitting a field leaves it unchanged; an explicit null is an error."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class DogResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    breed: str
    age: int
    photo_url: Optional[str] = None
    bio: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DogListResponse(BaseModel):
    dogs: List[DogResponse]
    total_count: int
