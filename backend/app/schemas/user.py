"""
DoggyClub Backend — User Schemas
==================================
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.user import Visibility


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr = Field(max_length=100)
    visibility: Visibility = Field(default=Visibility.PUBLIC)


class VisibilityUpdate(BaseModel):
    visibility: Visibility


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    visibility: Visibility
    created_at: datetime

    model_config = {"from_attributes": True}
