from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

from flask import current_app, request

from .errors import ValidationError
from .time_utils import normalize_datetime, parse_iso_datetime, parse_window_bound, utcnow

# Largest value a 32-bit INTEGER column holds
MAX_QUANTITY = 2**31 - 1


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion: rejects bools, floats, decimals and scientific
    notation so that "12.5" or 1e3 never silently become quantities.
    """
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)

    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field=field)
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    else:
        raise ValidationError(f"{field} must be an integer", field=field)

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field)
    return result


def coerce_optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field, minimum=1)


def coerce_id(value: Any, field: str) -> int:
    return coerce_int(value, field, minimum=1)


def coerce_quantity(value: Any, field: str = "quantity") -> int:
    quantity = coerce_int(value, field)
    if quantity <= 0:
        raise ValidationError(f"{field} must be > 0", field=field)
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} must be <= {MAX_QUANTITY}", field=field)
    return quantity


def coerce_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    text = value.strip()
    if not text:
        if required:
            raise ValidationError(f"{field} cannot be blank", field=field)
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", field=field)
    return text


def coerce_event_time(value: Any, field: str) -> datetime:
    """
    Normalize a client-supplied event timestamp.

    - None or blank -> now (UTC-naive)
    - ISO-8601 string or datetime -> UTC-naive
    - anything later than now + tolerance is rejected
    """
    if value is None or value == "":
        return utcnow()

    if isinstance(value, datetime):
        dt = normalize_datetime(value)
    elif isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)
        if dt is None:
            return utcnow()
    else:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)

    tolerance = timedelta(seconds=current_app.config.get("OCCURRED_AT_FUTURE_TOLERANCE_SECONDS", 120))
    if dt > utcnow() + tolerance:
        raise ValidationError(f"{field} cannot be in the future", field=field)
    return dt


def normalize_items(items: Any, field: str = "items") -> dict[int, int]:
    """
    Validate line items and merge duplicates.

    Returns {equipment_type_id: total_quantity}. Each item needs an
    equipment_type_id and a quantity > 0; an empty list is rejected.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError(f"{field} must be a non-empty list", field=field)

    merged: dict[int, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f"{field}[{index}] must be an object", field=field)
        equipment_type_id = coerce_id(item.get("equipment_type_id"), f"{field}[{index}].equipment_type_id")
        quantity = coerce_quantity(item.get("quantity"), f"{field}[{index}].quantity")
        merged[equipment_type_id] = merged.get(equipment_type_id, 0) + quantity
        if merged[equipment_type_id] > MAX_QUANTITY:
            raise ValidationError(
                f"{field}[{index}].quantity: merged quantity must be <= {MAX_QUANTITY}",
                field=f"{field}[{index}].quantity",
            )
    return merged


def int_arg(args: Mapping[str, str], name: str) -> int | None:
    """Query-string id. A malformed value is an error, never a dropped filter."""
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    return coerce_id(raw, name)


def window_arg(args: Mapping[str, str], name: str, *, end: bool = False) -> datetime | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return parse_window_bound(raw, end=end)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime", field=name)


def pagination_args(
    args: Mapping[str, str],
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> tuple[int, int]:
    if default_limit is None:
        default_limit = current_app.config.get("LIST_DEFAULT_LIMIT", 20)
    if max_limit is None:
        max_limit = current_app.config.get("LIST_MAX_LIMIT", 100)

    raw_limit = args.get("limit")
    limit = default_limit if raw_limit in (None, "") else coerce_int(raw_limit, "limit", minimum=1)
    raw_offset = args.get("offset")
    offset = 0 if raw_offset in (None, "") else coerce_int(raw_offset, "offset", minimum=0)
    return min(limit, max_limit), offset


def json_body() -> dict:
    """The request's JSON object body. Anything else is a ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", field="body")
    return data
