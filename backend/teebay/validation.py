from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import JSON, Integer, String, Text

from .errors import ValidationError
from .models.enums import Category, RentType


# Upper bound for any price column: 9,999,999.99 in cents
MAX_PRICE_CENTS = 999_999_999

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PRICE_FIELDS = ("price_cents", "rent_price_cents")
_PLAIN_INT_RE = re.compile(r"^-?\d+$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Boundary rules for one model's JSON payloads.

    writable_fields is the client allowlist; everything else is rejected.
    required_on_create only applies to full (non-partial) payloads.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def _to_int(key: str, value: Any) -> int:
    # bool is an int subclass; never accept it as money
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str) and _PLAIN_INT_RE.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def _to_text(key: str, value: Any, column) -> str:
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValidationError(f"{key} must be a string")
    text = str(value).strip()
    if text == "" and not column.nullable:
        raise ValidationError(f"{key} cannot be blank")
    limit = getattr(column.type, "length", None)
    if limit and len(text) > limit:
        raise ValidationError(f"{key} exceeds max length {limit}")
    return text


def _to_list(key: str, value: Any) -> list:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{key} must be a list")
    return list(value)


def coerce_column_value(column, value: Any):
    """Convert one JSON value to the Python type the mapped column stores."""
    key = column.key
    if isinstance(column.type, Integer):
        return _to_int(key, value)
    if isinstance(column.type, JSON):
        return _to_list(key, value)
    if isinstance(column.type, (String, Text)):
        return _to_text(key, value, column)
    return value


def require_json_object(payload) -> dict:
    """A decoded request body as a dict; a missing body counts as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_payload(*, model, payload, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Check a JSON body against the policy and the model's column metadata.

    Returns a patch holding only writable fields, each coerced to its column
    type. partial=True is PATCH semantics: only the keys present are checked.
    """
    payload = require_json_object(payload)

    if not partial:
        missing = sorted(policy.required_on_create.difference(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = coerce_column_value(column, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Single-field product rules: price bounds, rent_type and category values.

    Rules spanning several fields live in enforce_pricing_invariants, which
    runs against the merged product state.
    """
    for key in PRICE_FIELDS:
        price = patch.get(key)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{key} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if patch.get("rent_type") is not None:
        try:
            patch["rent_type"] = RentType(patch["rent_type"]).value
        except ValueError:
            allowed = ", ".join(t.value for t in RentType)
            raise ValidationError(f"rent_type must be one of: {allowed}")

    if "categories" in patch:
        patch["categories"] = normalize_categories(patch["categories"])


def normalize_categories(raw) -> list[str]:
    """Validate a category list and collapse duplicates, keeping first-seen order."""
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("categories must be a list")
    seen: list[str] = []
    for item in raw:
        try:
            value = Category(item).value
        except ValueError:
            raise ValidationError(f"Unknown category: {item}")
        if value not in seen:
            seen.append(value)
    return seen


def enforce_pricing_invariants(
    *,
    price_cents: int | None,
    rent_price_cents: int | None,
    rent_type: str | None,
) -> None:
    """
    Rules on the resulting product state (after a create, or after merging a patch).

    - at least one of price_cents / rent_price_cents
    - rent_price_cents requires rent_type
    Zero is a valid price; only None counts as absent.
    """
    if price_cents is None and rent_price_cents is None:
        raise ValidationError("Product must have either a purchase price or rental price")
    if rent_price_cents is not None and rent_type is None:
        raise ValidationError("Rental type is required when rental price is set")


def validate_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValidationError("Invalid email format")
    return value
