# Overview: Request payload validation against model metadata, plus the shared domain errors.

"""
Payload validation.

Routes hand raw JSON to services; services run it through validate_payload()
with a per-model ModelValidationPolicy. The policy is the allowlist of
client-writable columns; the SQLAlchemy column types drive coercion,
nullability and String(n) length checks.

Money is integer minor units (poisha) everywhere. Floats are refused rather
than rounded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text

from phonepos.time_utils import parse_iso_datetime


# 9,999,999.99 taka
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """Bad input; routes answer 400."""


class ConflictError(ValueError):
    """Uniqueness or state conflict such as a duplicate SKU; routes answer 409."""


class NotFoundError(LookupError):
    """Referenced row does not exist; routes answer 404."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(value: Any, name: str) -> int:
    """
    Whole numbers only: ints and digit strings ("42", " -3 ").

    bool, float, "1.0" and "1e3" are all rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an integer")

    text = value.strip()
    if "." in text:
        raise ValidationError(f"{name} must be an integer (no decimals)")
    if "e" in text.lower():
        raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
    digits = text[1:] if text[:1] in ("-", "+") else text
    if not digits.isdigit():
        raise ValidationError(f"{name} must be an integer")
    return int(text)


def coerce_positive_int(value: Any, name: str) -> int:
    number = coerce_int(value, name)
    if number <= 0:
        raise ValidationError(f"{name} must be > 0")
    return number


def coerce_non_negative_int(value: Any, name: str) -> int:
    number = coerce_int(value, name)
    if number < 0:
        raise ValidationError(f"{name} must be >= 0")
    return number


def coerce_optional_str(value: Any, name: str) -> str | None:
    """Stripped text, or None for None and blank strings. Numbers, lists and objects are rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip() or None


def _to_datetime(value: Any, name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(f"{name} must be an ISO-8601 datetime")


def _coerce_column(column, value: Any):
    kind = column.type
    if isinstance(kind, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{column.key} must be true or false")
        return value
    if isinstance(kind, Integer):
        return coerce_int(value, column.key)
    if isinstance(kind, DateTime):
        return _to_datetime(value, column.key)
    if isinstance(kind, JSON):
        if not isinstance(value, (dict, list)):
            raise ValidationError(f"{column.key} must be an object")
        return value
    if isinstance(kind, (String, Text)):
        text = str(value).strip()
        if not text:
            if not column.nullable:
                raise ValidationError(f"{column.key} cannot be blank")
            return None
        limit = getattr(kind, "length", None)
        if limit and len(text) > limit:
            raise ValidationError(f"{column.key} exceeds max length {limit}")
        return text
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Clean a create (partial=False) or update (partial=True) payload.

    Unknown and non-writable keys are refused outright, not dropped, so a
    client typo surfaces as a 400. Returns only the keys that were sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(name for name in policy.required_on_create if name not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {column.key: column for column in model.__mapper__.columns}
    cleaned: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            cleaned[key] = None
        else:
            cleaned[key] = _coerce_column(column, raw)

    return cleaned


def enforce_rules_product(patch: dict) -> None:
    """Product rules beyond column metadata: price range, stock floor, warranty shape."""
    for name in ("cost_price_cents", "selling_price_cents"):
        price = patch.get(name)
        if price is not None and not 0 <= price <= MAX_PRICE_CENTS:
            if price < 0:
                raise ValidationError(f"{name} must be >= 0")
            raise ValidationError(f"{name} cannot exceed {MAX_PRICE_CENTS}")

    if (patch.get("current_stock") or 0) < 0:
        raise ValidationError("Stock cannot be negative")
    if (patch.get("min_stock_level") or 0) < 0:
        raise ValidationError("min_stock_level must be >= 0")

    warranty = patch.get("warranty")
    if warranty is not None and not isinstance(warranty, dict):
        raise ValidationError("warranty must be an object with duration and type")
