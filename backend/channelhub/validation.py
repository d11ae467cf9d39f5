# Overview: Input coercion and the exception types routes map to HTTP statuses.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text


# 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (duplicate sku within an account)."""


class NotFoundError(LookupError):
    """404-level missing record (or a record outside the caller's accounts)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write on a model.

    writable_fields is the security boundary: account_id, external_id,
    channel_id and version columns are server-owned and never listed.
    """
    writable_fields: frozenset
    required_on_create: frozenset = field(default_factory=frozenset)


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for client input.

    Accepts ints (not bools), integral floats and plain digit strings.
    "12.5", 12.5 and "1e3" are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        return int(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{field} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{field} must be an integer")


def optional_int(value: Any, field: str) -> int | None:
    if value in (None, ""):
        return None
    return coerce_int(value, field)


def _normalize(column, value: Any):
    if isinstance(column.type, Integer):
        return coerce_int(value, column.key)
    if isinstance(column.type, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{column.key} must be true or false")
        return value
    if isinstance(column.type, (String, Text)):
        text = str(value).strip()
        if not text and not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        length = getattr(column.type, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{column.key} exceeds max length {length}")
        return text
    return value


def validate_payload(*, model, payload, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Clean a JSON body into a column patch for `model`.

    partial=False is create semantics: every required_on_create field must be
    present and non-blank. Unknown or server-owned keys are rejected rather
    than ignored.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _normalize(column, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    price = patch.get("price_cents")
    if price is None:
        return
    if price < 0:
        raise ValidationError("price_cents must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_inventory_set(quantity: Any) -> int:
    """Absolute stock writes: integer and never negative."""
    if quantity is None:
        raise ValidationError("quantity is required")
    qty = coerce_int(quantity, "quantity")
    if qty < 0:
        raise ValidationError("quantity must be non-negative")
    return qty
