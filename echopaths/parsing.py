"""Shared parsing helpers for config, CLI, and trip history value normalization."""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

_EnumT = TypeVar("_EnumT", bound=Enum)


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_enum_token(value: object, enum_type: type[_EnumT], field_name: str) -> _EnumT:
    """Parse a case-insensitive enum member name or value.

    Raises:
        ValueError: If the token matches no member of `enum_type`.
    """

    if isinstance(value, enum_type):
        return value
    normalized = normalize_optional_string(value)
    if normalized is not None:
        token = normalized.upper().replace("-", "_")
        for member in enum_type:
            if member.name == token or str(member.value).upper() == token:
                return member
    allowed = ", ".join(member.name.lower() for member in enum_type)
    raise ValueError(f"`{field_name}` must be one of: {allowed}.")


def parse_non_negative_float(value: object, field_name: str) -> float:
    """Parse a float value that must be zero or greater."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a non-negative number.") from exc
    if parsed < 0.0 or parsed != parsed:
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    return parsed
