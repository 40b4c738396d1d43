"""
Tests for structured partial updates.
"""

import pytest

from arena.core.exceptions import ValidationError
from arena.domain.enums import BookingPaymentStatus
from arena.models.booking import Booking
from arena.services.patch import build_update


def test_builds_parameterised_update():
    stmt = build_update(Booking, {"player_count": 3}, Booking.id == 7)
    params = stmt.compile().params
    assert params["player_count"] == 3
    assert 7 in params.values()


def test_enum_values_are_unwrapped():
    stmt = build_update(Booking, {"payment_status": BookingPaymentStatus.PAID}, Booking.id == 1)
    assert stmt.compile().params["payment_status"] == "paid"


def test_empty_patch_rejected():
    with pytest.raises(ValidationError, match="No fields to update"):
        build_update(Booking, {}, Booking.id == 1)


def test_unknown_column_rejected():
    with pytest.raises(ValidationError, match="Cannot update field\\(s\\): colour"):
        build_update(Booking, {"colour": "red"}, Booking.id == 1)


def test_column_outside_allowed_set_rejected():
    with pytest.raises(ValidationError, match="payment_status"):
        build_update(
            Booking,
            {"machine_type": "VR Pod", "payment_status": "paid"},
            Booking.id == 1,
            allowed={"machine_type"},
        )
