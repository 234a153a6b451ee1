"""Validate untyped request fields.

Each helper returns an error message for the field, or ``None`` when the value
is acceptable. Handlers turn a message into a ``400`` response.
"""

from __future__ import annotations

import math
from typing import Any, Optional


def validate_string(value: Any, field: str, max_length: int) -> Optional[str]:
    """Require a non-empty string of at most ``max_length`` characters.

    Args:
        value: Raw value from the request body.
        field: Field name used in the message.
        max_length: Maximum allowed length (inclusive).

    Returns:
        An error message, or None when valid.
    """
    if not isinstance(value, str):
        return f"{field} must be a string"
    if len(value) == 0:
        return f"{field} is required"
    if len(value) > max_length:
        return f"{field} exceeds maximum length of {max_length} characters"
    return None


def validate_optional_string(value: Any, field: str, max_length: int) -> Optional[str]:
    """Like :func:`validate_string`, but ``None`` and ``""`` are accepted."""
    if value is None:
        return None
    if not isinstance(value, str):
        return f"{field} must be a string"
    if len(value) > max_length:
        return f"{field} exceeds maximum length of {max_length} characters"
    return None


def validate_number(value: Any, field: str) -> Optional[str]:
    """Require an int or float that is not NaN. Booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f"{field} must be a number"
    if isinstance(value, float) and math.isnan(value):
        return f"{field} must be a number"
    return None


def validate_choices(value: Any) -> Optional[str]:
    """Validate a ``choices`` list of ``{id, label}`` string pairs."""
    if value is None:
        return None
    if not isinstance(value, list):
        return "choices must be an array"
    for index, choice in enumerate(value):
        if (
            not isinstance(choice, dict)
            or not isinstance(choice.get("id"), str)
            or not isinstance(choice.get("label"), str)
        ):
            return f"choices[{index}] must have id and label strings"
    return None


def first_error(*errors: Optional[str]) -> Optional[str]:
    for error in errors:
        if error:
            return error
    return None
