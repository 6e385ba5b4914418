from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any

from .errors import ValidationError
from .models.auth import ROLE_CASHIER, ROLE_MANAGER
from .services.auth_service import normalize_email, validate_password_strength
from .utils import round2, to_decimal


# Maximum unit price / cost: 9,999,999.99
MAX_PRICE = Decimal("9999999.99")

PAYMENT_METHODS = ("Cash", "Card", "UPI")

# Roles that can be hired into a shop; Owners only come from registration
STAFF_ROLES = (ROLE_MANAGER, ROLE_CASHIER)


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Rejects booleans, floats, decimals and scientific notation so that
    "1e3" or 2.5 never silently become a quantity.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
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


def require_int(data: dict, field: str) -> int:
    value = data.get(field)
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    return coerce_int(value, field)


def optional_int(data: dict, field: str) -> int | None:
    value = data.get(field)
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def clean_str(value: Any, field: str, *, max_length: int = 255) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    if len(cleaned) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return cleaned or None


def require_str(data: dict, field: str, *, max_length: int = 255) -> str:
    cleaned = clean_str(data.get(field), field, max_length=max_length)
    if not cleaned:
        raise ValidationError(f"{field} is required")
    return cleaned


def non_negative_money(value: Any, field: str) -> Decimal:
    amount = round2(to_decimal(value, field))
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")
    return amount


def validate_payment_method(method: Any) -> str:
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            "Invalid payment_method",
            details={"allowed": list(PAYMENT_METHODS), "received": method},
        )
    return method


def parse_cart_items(items: Any, *, allow_zero: bool = False) -> list[tuple[int, int]]:
    """
    Normalize [{saree_id, quantity}, ...] into (saree_id, quantity) tuples.

    Order is preserved and repeated saree ids are kept as separate rows.
    allow_zero is used by full edits, where quantity 0 removes an item.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items are required")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        saree_id = require_int(item, "saree_id")
        quantity = require_int(item, "quantity")
        if quantity < 0 or (quantity == 0 and not allow_zero):
            raise ValidationError(
                "quantity must be a positive integer",
                details={"index": index, "saree_id": saree_id, "quantity": quantity},
            )
        parsed.append((saree_id, quantity))
    return parsed


# =============================================================================
# PARTIAL UPDATES
# =============================================================================

_UNSET = object()


@dataclass
class Patch:
    """
    Explicit set of optional fields a client may change on one entity.

    Subclasses declare their fields (default _UNSET) and a parser per field.
    Unknown keys are rejected, so the accepted field set is fixed in code.
    """

    @classmethod
    def _parsers(cls) -> dict:
        raise NotImplementedError

    @classmethod
    def from_payload(cls, payload: Any):
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        parsers = cls._parsers()
        unknown = sorted(set(payload) - set(parsers))
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

        values = {key: parsers[key](payload[key], key) for key in payload}
        if not values:
            raise ValidationError("No fields to update")
        return cls(**values)

    def changes(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not _UNSET
        }

    def apply(self, target) -> dict:
        changes = self.changes()
        for key, value in changes.items():
            setattr(target, key, value)
        return changes


def _required_text(value, field):
    cleaned = clean_str(value, field)
    if not cleaned:
        raise ValidationError(f"{field} cannot be blank")
    return cleaned


def _optional_text(value, field):
    return clean_str(value, field)


def _email(value, field):
    return normalize_email(value)


def _staff_role(value, field):
    if value not in STAFF_ROLES:
        raise ValidationError(
            f"Invalid {field}",
            details={"allowed": list(STAFF_ROLES), "received": value},
        )
    return value


def _password(value, field):
    validate_password_strength(value)
    return value


def _tax_percentage(value, field):
    pct = round2(to_decimal(value, field))
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct


@dataclass
class SareePatch(Patch):
    name: Any = _UNSET
    item_code: Any = _UNSET
    type: Any = _UNSET
    color: Any = _UNSET
    design: Any = _UNSET
    price: Any = _UNSET

    @classmethod
    def _parsers(cls) -> dict:
        return {
            "name": _required_text,
            "item_code": _required_text,
            "type": _optional_text,
            "color": _optional_text,
            "design": _optional_text,
            "price": non_negative_money,
        }


@dataclass
class CustomerPatch(Patch):
    name: Any = _UNSET
    phone: Any = _UNSET
    email: Any = _UNSET

    @classmethod
    def _parsers(cls) -> dict:
        return {
            "name": _optional_text,
            "phone": _required_text,
            "email": _optional_text,
        }


@dataclass
class SupplierPatch(Patch):
    name: Any = _UNSET
    phone: Any = _UNSET
    email: Any = _UNSET
    address_line: Any = _UNSET
    city: Any = _UNSET
    state: Any = _UNSET
    postal_code: Any = _UNSET
    country: Any = _UNSET

    @classmethod
    def _parsers(cls) -> dict:
        parsers = {key: _optional_text for key in (
            "phone", "email", "address_line", "city", "state", "postal_code", "country",
        )}
        parsers["name"] = _required_text
        return parsers


@dataclass
class ShopPatch(Patch):
    name: Any = _UNSET
    address_line: Any = _UNSET
    city: Any = _UNSET
    state: Any = _UNSET
    postal_code: Any = _UNSET
    country: Any = _UNSET
    tax_percentage: Any = _UNSET

    @classmethod
    def _parsers(cls) -> dict:
        parsers = {key: _optional_text for key in (
            "address_line", "city", "state", "postal_code", "country",
        )}
        parsers["name"] = _required_text
        parsers["tax_percentage"] = _tax_percentage
        return parsers


def parse_tax_percentage(value: Any) -> Decimal:
    return _tax_percentage(value, "tax_percentage")


@dataclass
class StaffPatch(Patch):
    """Password stays plaintext here; the staff service hashes it."""
    name: Any = _UNSET
    email: Any = _UNSET
    role: Any = _UNSET
    password: Any = _UNSET

    @classmethod
    def _parsers(cls) -> dict:
        return {
            "name": _required_text,
            "email": _email,
            "role": _staff_role,
            "password": _password,
        }
