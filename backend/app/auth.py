"""
DoggyClub Backend — Caller Identity
=====================================

What:  FastAPI dependency that yields the id of the calling user.
Why:   Token verification happens upstream (API gateway); by the time a
       request reaches this service the verified user id travels in the
       X-User-ID header. Only ownership checks (dog update/delete) and
       dog creation need it.
"""

from typing import Optional
from uuid import UUID

from fastapi import Header

from app.exceptions import ValidationError

USER_ID_HEADER = "X-User-ID"


def parse_user_id(value: Optional[str]) -> Optional[UUID]:
    """The header value as a UUID, or None when it is absent or malformed."""
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
) -> UUID:
    """Parse the caller's user id; a missing or malformed header is a 400."""
    if not x_user_id:
        raise ValidationError(
            message=f"Missing {USER_ID_HEADER} header",
            field=USER_ID_HEADER,
        )
    user_id = parse_user_id(x_user_id)
    if user_id is None:
        raise ValidationError(
            message=f"{USER_ID_HEADER} must be a UUID",
            field=USER_ID_HEADER,
        )
    return user_id
