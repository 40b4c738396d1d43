"""
Structured partial updates.

Turns a validated `{field: value}` patch into one parameterised UPDATE
statement. Callers pass the fields a given actor may touch; anything outside
that set is rejected instead of silently ignored.
"""

from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import Update, update

from arena.core.exceptions import ValidationError


def build_update(model, patch: dict, *criteria, allowed: Optional[Iterable[str]] = None) -> Update:
    if not patch:
        raise ValidationError("No fields to update")

    columns = set(model.__table__.columns.keys())
    permitted = set(allowed) if allowed is not None else columns
    unknown = sorted(set(patch) - (permitted & columns))
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}")

    values = {
        field: value.value if isinstance(value, Enum) else value
        for field, value in patch.items()
    }
    return update(model).where(*criteria).values(**values)
