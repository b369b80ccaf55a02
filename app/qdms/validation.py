"""
Field helpers for boundary input validation.

Each helper reads one key from a JSON payload, records a message in `errors`
when the value is unusable, and returns the cleaned value (or None).
`raise_if_errors` turns the collected messages into one ValidationError.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from app.qdms.errors import ValidationError


def require_mapping(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def text_field(
    data: dict[str, Any],
    key: str,
    errors: dict[str, str],
    *,
    required: bool = False,
    min_len: int = 0,
    max_len: int | None = None,
) -> str | None:
    raw = data.get(key)
    if raw is None:
        if required:
            errors[key] = "required"
        return None
    if not isinstance(raw, str):
        errors[key] = "must be a string"
        return None
    value = raw.strip()
    if not value:
        if required:
            errors[key] = "required"
        return None
    if len(value) < min_len:
        errors[key] = f"must be at least {min_len} characters"
        return None
    if max_len is not None and len(value) > max_len:
        errors[key] = f"must be at most {max_len} characters"
        return None
    return value


def choice_field(
    data: dict[str, Any],
    key: str,
    choices: frozenset[str],
    errors: dict[str, str],
    *,
    required: bool = False,
) -> str | None:
    raw = data.get(key)
    if raw is None or raw == "":
        if required:
            errors[key] = "required"
        return None
    value = str(raw).strip().upper()
    if value not in choices:
        errors[key] = f"must be one of: {', '.join(sorted(choices))}"
        return None
    return value


def int_field(
    data: dict[str, Any],
    key: str,
    errors: dict[str, str],
    *,
    required: bool = False,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int | None:
    raw = data.get(key)
    if raw is None or raw == "":
        if required:
            errors[key] = "required"
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool):
        errors[key] = "must be an integer"
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors[key] = "must be an integer"
        return None
    if isinstance(raw, float) and raw != value:
        errors[key] = "must be an integer"
        return None
    if min_value is not None and value < min_value:
        errors[key] = f"must be >= {min_value}"
        return None
    if max_value is not None and value > max_value:
        errors[key] = f"must be <= {max_value}"
        return None
    return value


def bool_field(data: dict[str, Any], key: str, errors: dict[str, str], *, default: bool | None = None) -> bool | None:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        errors[key] = "must be a boolean"
        return default
    return raw


def parse_datetime(value: str) -> datetime:
    """
    ISO-8601 date or datetime -> naive UTC datetime (storage convention).
    """
    v = value.strip()
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    dt = datetime.fromisoformat(v)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def datetime_field(data: dict[str, Any], key: str, errors: dict[str, str]) -> datetime | None:
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        errors[key] = "must be an ISO-8601 date string"
        return None
    try:
        return parse_datetime(raw)
    except ValueError:
        errors[key] = "must be an ISO-8601 date string"
        return None


def raise_if_errors(errors: dict[str, str], message: str = "Invalid input.") -> None:
    if errors:
        fields = ", ".join(f"{k}: {v}" for k, v in sorted(errors.items()))
        raise ValidationError(f"{message} {fields}", details=dict(errors))
