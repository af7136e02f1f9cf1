from __future__ import annotations
from datetime import datetime
from ledgerpos.time_utils import parse_iso_datetime

from typing import Any

from .errors import ValidationError


# Maximum amount: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(name: str, value: Any) -> int:
    """
    Strict integer coercion for request fields.

    Accepts ints and plain digit strings; rejects bools, floats, decimals and
    scientific notation so that "12.5" never silently becomes 12.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer", details={"field": name})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(
                f"{name} must be a plain integer (scientific notation not allowed)", details={"field": name}
            )
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)", details={"field": name})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", details={"field": name})
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal", details={"field": name})
    raise ValidationError(f"{name} must be an integer", details={"field": name})


def int_field(data: dict, name: str, default=None, *, required: bool = False) -> int | None:
    value = data.get(name)
    if value is None:
        value = default
    if value is None:
        if required:
            raise ValidationError(f"{name} is required", details={"field": name})
        return None
    result = coerce_int(name, value)
    if name.endswith("_cents") and abs(result) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{name} exceeds maximum of {MAX_AMOUNT_CENTS} cents", details={"field": name})
    return result


def bool_field(data: dict, name: str, default: bool = False) -> bool:
    value = data.get(name)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(f"{name} must be a boolean", details={"field": name})


def str_field(data: dict, name: str, *, required: bool = False, max_len: int | None = None) -> str | None:
    value = data.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{name} is required", details={"field": name})
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", details={"field": name})
    value = value.strip()
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"{name} must be at most {max_len} characters", details={"field": name})
    return value


def str_list_field(data: dict, name: str) -> list[str]:
    value = data.get(name) or []
    if not isinstance(value, list):
        raise ValidationError(f"{name} must be a list", details={"field": name})
    return [str(v) for v in value]


def datetime_field(data: dict, name: str) -> datetime | None:
    value = data.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 string", details={"field": name})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime", details={"field": name, "value": value})
