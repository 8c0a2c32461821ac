"""Typed field parsers for upstream payloads.

Each helper returns None for missing or malformed input instead of coercing
to a default, so "unknown" never turns into zero.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def opt_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "").strip()
        if not value:
            return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def opt_positive_decimal(value: Any) -> Optional[Decimal]:
    result = opt_decimal(value)
    return result if result is not None and result > 0 else None


def opt_int(value: Any) -> Optional[int]:
    result = opt_decimal(value)
    if result is None or result != result.to_integral_value():
        return None
    return int(result)


def opt_positive_int(value: Any) -> Optional[int]:
    result = opt_int(value)
    return result if result is not None and result > 0 else None


def opt_float(value: Any) -> Optional[float]:
    result = opt_decimal(value)
    return float(result) if result is not None else None


def opt_date(value: Any) -> Optional[date]:
    """ISO date/datetime strings or epoch milliseconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    text = opt_str(value)
    if text is None:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def split_address_line(text: str) -> tuple[str, str, str, str]:
    """Split '123 Main St, Austin, TX 78701' into (street, city, state, zip).

    Returns the whole string as the street when it has fewer than three parts.
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) < 3:
        return text.strip(), "", "", ""
    state_zip = parts[-1].split()
    state = state_zip[0] if state_zip else ""
    zip_code = state_zip[1] if len(state_zip) > 1 else ""
    return ", ".join(parts[:-2]), parts[-2], state, zip_code


def dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts; None as soon as a level is missing or not a dict."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data
