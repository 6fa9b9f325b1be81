# Overview: Input coercion shared by the engine and its API boundary.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError


MONEY_QUANT = Decimal("0.01")
QTY_QUANT = Decimal("0.001")

# Numeric(12, 2) upper bound. Prevents database overflow and nonsensical prices
MAX_MONEY = Decimal("9999999999.99")
MAX_QTY = Decimal("999999999.999")

NOTE_MAX_LENGTH = 255


def to_decimal(value: Any, field: str, *, error: type[ValidationError] = ValidationError) -> Decimal:
    """
    Coerce a JSON-ish number into a finite Decimal.

    Accepts int, float, Decimal and numeric strings. Rejects None, booleans,
    NaN and infinities with `error`.
    """
    if value is None:
        raise error(f"{field} is required", details={"field": field})

    # bool is a subclass of int; True is not a quantity
    if isinstance(value, bool):
        raise error(f"{field} must be a number", details={"field": field, "value": value})

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr round-trips, so 0.1 stays 0.1 instead of its binary expansion
        result = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise error(f"{field} must be a number", details={"field": field, "value": value})
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise error(f"{field} must be a number", details={"field": field, "value": value})
    else:
        raise error(f"{field} must be a number", details={"field": field, "value": repr(value)})

    if not result.is_finite():
        raise error(f"{field} must be finite", details={"field": field, "value": str(value)})
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def quantize_qty(value: Decimal) -> Decimal:
    return value.quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def coerce_flag(value: Any) -> bool:
    """Booleans from JSON bodies and query strings ("true", "1", "yes")."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def optional_text(value: Any, field: str, max_length: int = NOTE_MAX_LENGTH) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters",
            details={"field": field, "max_length": max_length},
        )
    return text


def coerce_page(value: Any, field: str, default: int, *, maximum: int = 1000) -> int:
    """Non-negative integer paging parameter (limit/offset)."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an integer", details={"field": field})
    if number < 0:
        raise ValidationError(f"{field} must be non-negative", details={"field": field})
    return min(number, maximum)
