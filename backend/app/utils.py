"""
Shared time and money helpers.

Money is always Decimal with 2-decimal-place semantics. Every stored amount
goes through round2() first; JSON responses carry amounts as strings so
clients never see float artefacts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest amount a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with trailing 'Z'; naive datetimes are treated as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Coerce a JSON number/string to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion. Booleans are rejected even though they are ints.
    """
    from .errors import ValidationError

    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(
            f"{field} is out of range",
            details={"max": str(MAX_AMOUNT)},
        )
    return result


def round2(value) -> Decimal:
    """Round half-up to cents. Idempotent: round2(round2(x)) == round2(x)."""
    from .errors import ValidationError

    if not isinstance(value, Decimal):
        value = to_decimal(value)
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("amount is out of range")


def money_str(value) -> Optional[str]:
    if value is None:
        return None
    return str(round2(value))
