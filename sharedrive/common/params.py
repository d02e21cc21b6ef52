from __future__ import annotations

from typing import Any

from .errors import ValidationError


NULL_SENTINELS = (None, "", "null", "none")


def parse_nullable_int(value: Any, field_name: str) -> int | None:
    if isinstance(value, str) and value.strip().lower() in NULL_SENTINELS:
        return None
    if value in NULL_SENTINELS:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer or null.")
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise ValidationError(f"{field_name} must be an integer or null.") from error

