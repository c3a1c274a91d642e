from __future__ import annotations

from datetime import date
from typing import Any

from custody.time_utils import parse_iso_date


MAX_NOTES_LENGTH = 1000


class CustodyError(Exception):
    """Base class for domain errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(CustodyError, ValueError):
    """400-level input problem: malformed or logically inconsistent request."""

    status_code = 400


class NotFoundError(CustodyError, LookupError):
    """404-level: a referenced assignment, tank type or item does not exist."""

    status_code = 404


class ConflictError(CustodyError, ValueError):
    """409-level business rule conflict (negative quantity, bad status transition)."""

    status_code = 409


class InternalError(CustodyError, RuntimeError):
    """500-level: persistence failure or unexpected data shape."""

    status_code = 500


def coerce_int(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats, decimals and scientific notation so that a typo
    like "1e3" never turns into a thousand tanks.
    """
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None

    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            if required:
                raise ValidationError(f"{field} is required", field=field)
            return None
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)", field=field
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    raise ValidationError(f"{field} must be an integer", field=field)


def coerce_positive_int(value: Any, field: str) -> int:
    result = coerce_int(value, field)
    if result <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return result


def coerce_id(value: Any, field: str) -> int:
    return coerce_positive_int(value, field)


def coerce_optional_id(value: Any, field: str) -> int | None:
    result = coerce_int(value, field, required=False)
    if result is not None and result <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return result


def coerce_notes(value: Any, field: str = "notes") -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > MAX_NOTES_LENGTH:
        raise ValidationError(f"{field} exceeds max length {MAX_NOTES_LENGTH}", field=field)
    return text


def coerce_date(value: Any, field: str, *, required: bool = True) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)", field=field)


def coerce_json_object(value: Any) -> dict:
    """Request bodies are JSON objects; a missing body reads as empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("Request body must be a JSON object")
    return value


def coerce_bool(value: Any, field: str, *, default: bool = False) -> bool:
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
    raise ValidationError(f"{field} must be a boolean", field=field)
