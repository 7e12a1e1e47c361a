from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Type, TypeVar

from ..core.constants import MONEY_QUANT
from ..core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require_enum(enum_cls: Type[E], value, field_name: str) -> E:
    """Coerce a raw value into an enum member, rejecting unlisted values."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed} (got {value!r})")


def optional_enum(enum_cls: Type[E], value, field_name: str) -> Optional[E]:
    if value is None or value == "":
        return None
    return require_enum(enum_cls, value, field_name)


def require_upper_code(value: str, field_name: str) -> str:
    return require_non_empty(value, field_name).upper()


def normalize_email(value: str) -> str:
    email = require_non_empty(value, "email").lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError(f"email is not valid: {value!r}")
    return email


def to_money(value, field_name: str, *, allow_negative: bool = False) -> Decimal:
    if value is None:
        value = 0
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} is not a number: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field_name} must not be negative")
    return amount.quantize(MONEY_QUANT)


def to_non_negative_number(value, field_name: str) -> Decimal:
    try:
        number = Decimal(str(0 if value is None else value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} is not a number: {value!r}")
    if not number.is_finite() or number < 0:
        raise ValidationError(f"{field_name} must be a non-negative number")
    return number


def require_non_negative_int(value, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return number


def require_month(value) -> int:
    month = require_non_negative_int(value, "month")
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be within 1..12 (got {month})")
    return month


def require_year(value) -> int:
    year = require_non_negative_int(value, "year")
    if not 1900 <= year <= 9999:
        raise ValidationError(f"year is out of range: {year}")
    return year
