"""
Purchaser: the party behind a booking, order, registration or payment.

A purchaser is either an authenticated user or a guest identified by contact
details. Writers map it onto the ``user_id`` / ``guest_*`` columns through
``columns()`` so both paths share one code path.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GuestContact:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class Purchaser:
    user_id: Optional[int] = None
    guest: Optional[GuestContact] = None

    def __post_init__(self):
        if (self.user_id is None) == (self.guest is None):
            raise ValueError("Purchaser must be either a user or a guest")

    @classmethod
    def for_user(cls, user_id: int) -> "Purchaser":
        return cls(user_id=user_id)

    @classmethod
    def for_guest(cls, name: str, email: str, phone: Optional[str] = None) -> "Purchaser":
        return cls(guest=GuestContact(name=name, email=email, phone=phone))

    @property
    def is_guest(self) -> bool:
        return self.guest is not None

    @property
    def email(self) -> Optional[str]:
        return self.guest.email if self.guest else None

    def columns(self) -> dict:
        """Column values for tables carrying the user/guest pair."""
        if self.guest is None:
            return {
                "user_id": self.user_id,
                "is_guest": False,
                "guest_name": None,
                "guest_email": None,
                "guest_phone": None,
            }
        return {
            "user_id": None,
            "is_guest": True,
            "guest_name": self.guest.name,
            "guest_email": self.guest.email,
            "guest_phone": self.guest.phone,
        }

    def owns(self, row) -> bool:
        """True if the row was written for this purchaser."""
        if self.guest is None:
            return row.user_id == self.user_id
        return row.user_id is None and row.guest_email == self.guest.email


def generate_reference(prefix: str) -> str:
    """Reference handed to guests, e.g. GUEST-1718000000000-K3J9X2QZ1."""
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis}-{secrets.token_hex(5).upper()[:9]}"
