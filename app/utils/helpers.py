"""
Utility helper functions for safe data handling.
"""
from typing import Any, Iterable, Mapping, Optional


def safe_str(value: Any, default: str = "") -> str:
    """
    Safely convert value to a stripped string, handling None.

    Args:
        value: Any value to convert
        default: Default string if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value).strip()


def first_present(record: Mapping[str, Any], fields: Iterable[str]) -> str:
    """
    Return the first non-empty field of ``record`` as a string.

    Upstream list endpoints disagree on field names (``id`` vs ``cameraId``,
    ``location`` vs ``title``), so callers pass every known alias in order.

    Returns:
        The first non-empty value, or "" if none is present
    """
    for name in fields:
        value = record.get(name)
        if isinstance(value, (dict, list, bool)):
            continue
        text = safe_str(value)
        if text:
            return text
    return ""


def safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Safely convert value to float, handling None and invalid values.

    Args:
        value: Any value to convert
        default: Default if conversion fails

    Returns:
        Float or default (NaN counts as invalid)
    """
    if value is None:
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if result != result:
        return default
    return result
