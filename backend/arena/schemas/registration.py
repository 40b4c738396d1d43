from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from arena.domain.enums import PaymentOption, RegistrationPaymentStatus, RegistrationStatus
from arena.schemas.common import GuestContactIn


class RegistrationCreate(BaseModel):
    payment_option: PaymentOption = PaymentOption.ONLINE
    guest: Optional[GuestContactIn] = None


class RegistrationUpdate(BaseModel):
    status: Optional[RegistrationStatus] = None
    payment_status: Optional[RegistrationPaymentStatus] = None
    payment_option: Optional[PaymentOption] = None


class RegistrationResponse(BaseModel):
    id: int
    target_id: int
    user_id: Optional[int]
    status: str
    payment_status: str
    payment_option: str
    is_guest: bool
    guest_email: Optional[str] = None
    registration_reference: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
