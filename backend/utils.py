"""
Shared backend utility helpers.
"""

import re
from typing import Any

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def clean_text(value: Any) -> str:
    """Normalize arbitrary values into trimmed strings."""
    if value is None:
        return ""
    return str(value).strip()


def clean_number(value: Any, integer: bool = False) -> float | int | None:
    """
    Parse spreadsheet-style numbers such as "$1,250.00" or "12 ea".

    Blank cells give None; anything left unparseable after stripping
    currency and grouping characters gives 0.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if integer else float(value)

    text = clean_text(value)
    if not text:
        return None
    try:
        number = float(_NON_NUMERIC.sub("", text))
    except ValueError:
        number = 0.0
    return int(number) if integer else number


def reject_null(value: Any) -> Any:
    """Refuse an explicit null for a field whose column always holds a value."""
    if value is None:
        raise ValueError("may not be null")
    return value
