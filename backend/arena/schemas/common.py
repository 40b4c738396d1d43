"""
Response envelope and request fragments shared by several routers.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field

from arena.core.exceptions import ValidationError
from arena.domain.purchaser import Purchaser

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Every client-facing response carries success + message."""

    success: bool = True
    message: str = ""
    data: Optional[T] = None


class GuestContactIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)


def resolve_purchaser(user, guest: Optional[GuestContactIn]) -> Purchaser:
    """
    Authenticated callers always act as themselves; anonymous callers must
    supply guest contact details.
    """
    if user is not None:
        return Purchaser.for_user(user.id)
    if guest is None:
        raise ValidationError("Guest contact details are required when not signed in")
    return Purchaser.for_guest(guest.name, guest.email, guest.phone)
