"""
Value normalization utilities for the quote pipeline.

Store records and backend payloads are loosely typed; these helpers coerce
them into consistent shapes.
"""

import math
from typing import Any, Optional


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a loosely typed numeric value to float.

    Examples:
        72 -> 72.0
        "1.5" -> 1.5
        True -> None
        "abc" -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def to_amount(value: Any) -> Optional[float]:
    """
    Extract a price amount from a pricing payload field.

    Only real numbers count; numeric strings are rejected.

    Examples:
        {"amount": 150.4} -> 150.4
        {"amount": None} -> None
        150 -> 150.0
    """
    if isinstance(value, dict):
        value = value.get('amount')
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def round_half_up(amount: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positives.

    Examples:
        150.4 -> 150
        150.5 -> 151
        -0.5 -> 0
    """
    return int(math.floor(amount + 0.5))


def normalize_title(year: Any, make: str, model: str) -> str:
    """
    Build a display title from listing fields.

    Examples:
        (2021, "Tesla", "Model 3") -> "2021 Tesla Model 3"
        (None, "Kia", "Soul") -> "Kia Soul"
    """
    parts = [year, make, model]
    return ' '.join(str(part) for part in parts if part not in (None, ''))


def format_hours(hours: float) -> str:
    """
    Render an hour count without a trailing .0.

    Examples:
        72.0 -> 72
        1.5 -> 1.5
    """
    if float(hours).is_integer():
        return str(int(hours))
    return str(hours)
