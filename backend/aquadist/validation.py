from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .errors import ValidationError


# Maximum amount: 999,999,999 minor units per line or payment.
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to send (security boundary)
    - required: fields required for the request
    """
    writable_fields: set[str]
    required: set[str] = frozenset()  # type: ignore[assignment]


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion; rejects floats, bools and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def positive_int(value: Any, field: str, *, maximum: int = MAX_AMOUNT_CENTS) -> int:
    n = coerce_int(value, field)
    if n <= 0:
        raise ValidationError(f"{field} must be positive", details={"field": field, "value": n})
    if n > maximum:
        raise ValidationError(f"{field} exceeds maximum of {maximum}", details={"field": field, "value": n})
    return n


def non_negative_int(value: Any, field: str, *, maximum: int = MAX_AMOUNT_CENTS) -> int:
    n = coerce_int(value, field)
    if n < 0:
        raise ValidationError(f"{field} must not be negative", details={"field": field, "value": n})
    if n > maximum:
        raise ValidationError(f"{field} exceeds maximum of {maximum}", details={"field": field, "value": n})
    return n


def require_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = sorted(choices)
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(
            f"Invalid {field}: {value!r}. Must be one of {allowed}",
            details={"field": field, "allowed": allowed},
        )
    return value


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, field: str, *, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def validate_payload(payload: Any, policy: PayloadPolicy) -> dict:
    """
    Checks an incoming JSON object against the policy allowlist and required set.
    Returns a shallow copy with only writable fields. Value coercion is left to
    the service layer.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(f for f in policy.required if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    return dict(payload)


def parse_line_items(raw: Any, *, with_unit_cost: bool = False) -> list[dict]:
    """
    Normalize order/purchase/import lines.

    Every line needs product_id and quantity >= 1; supply-side lines also
    need unit_cost_cents >= 0.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items are required and must be a non-empty list")

    lines = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if item.get("product_id") is None or item.get("quantity") is None:
            raise ValidationError(
                "Each item must have a product_id and quantity",
                details={"index": index},
            )
        line = {
            "product_id": coerce_int(item["product_id"], f"items[{index}].product_id"),
            "quantity": positive_int(item["quantity"], f"items[{index}].quantity", maximum=MAX_QUANTITY),
        }
        if with_unit_cost:
            if item.get("unit_cost_cents") is None:
                raise ValidationError(
                    f"items[{index}].unit_cost_cents is required",
                    details={"index": index},
                )
            line["unit_cost_cents"] = non_negative_int(item["unit_cost_cents"], f"items[{index}].unit_cost_cents")
        lines.append(line)
    return lines
