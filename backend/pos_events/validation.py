from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from .exceptions import ValidationError
from .time_utils import parse_iso_datetime

MAX_STRING_LENGTH = 255

# (max_digits, places) of the Numeric columns the values land in
MONEY = (10, 2)
QUANTITY = (12, 3)


class FieldErrors:
    """
    Collects per-field messages keyed by dotted path (e.g. "items.0.quantity").

    Checks never raise; call raise_if_any() once the whole payload was walked
    so the caller sees every problem in one response.
    """

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def has(self, field: str) -> bool:
        return field in self._errors

    def as_dict(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._errors.items()}

    def raise_if_any(self) -> None:
        if self._errors:
            raise ValidationError(self.as_dict())

    def __bool__(self) -> bool:
        return bool(self._errors)


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a JSON number or numeric string to Decimal.

    Booleans, blanks, NaN and infinities are rejected with ValueError.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("not a number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValueError("not a number")
    else:
        raise ValueError("not a number")
    if not result.is_finite():
        raise ValueError("not a number")
    return result


def to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def check_string(
    errors: FieldErrors,
    path: str,
    value: Any,
    *,
    required: bool = True,
    max_length: int = MAX_STRING_LENGTH,
    pattern: re.Pattern | None = None,
    pattern_message: str | None = None,
) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(path, f"{path} is required")
        return
    if not isinstance(value, str):
        errors.add(path, f"{path} must be a string")
        return
    if len(value) > max_length:
        errors.add(path, f"{path} may not be greater than {max_length} characters")
        return
    if pattern is not None and not pattern.fullmatch(value):
        errors.add(path, pattern_message or f"{path} format is invalid")


def check_number(
    errors: FieldErrors,
    path: str,
    value: Any,
    *,
    required: bool = True,
    minimum: Decimal = Decimal("0"),
    precision: tuple[int, int] = MONEY,
) -> None:
    """precision is the (max_digits, places) of the target Numeric column."""
    if value is None:
        if required:
            errors.add(path, f"{path} is required")
        return
    try:
        number = to_decimal(value)
    except ValueError:
        errors.add(path, f"{path} must be a number")
        return
    if number < minimum:
        errors.add(path, f"{path} must be at least {minimum}")
        return

    max_digits, places = precision
    if decimal_places(number) > places:
        errors.add(path, f"{path} may not have more than {places} decimal places")
        return
    maximum = Decimal(10) ** (max_digits - places) - Decimal(10) ** -places
    if number > maximum:
        errors.add(path, f"{path} may not be greater than {maximum}")


def decimal_places(number: Decimal) -> int:
    exponent = number.normalize().as_tuple().exponent
    return -exponent if exponent < 0 else 0


def check_integer(errors: FieldErrors, path: str, value: Any, *, required: bool = False) -> None:
    if value is None:
        if required:
            errors.add(path, f"{path} is required")
        return
    if isinstance(value, bool) or not isinstance(value, int):
        errors.add(path, f"{path} must be an integer")


def check_datetime(errors: FieldErrors, path: str, value: Any) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        errors.add(path, f"{path} is required")
        return
    if not isinstance(value, str):
        errors.add(path, f"{path} must be a valid date")
        return
    try:
        parse_iso_datetime(value)
    except ValueError:
        errors.add(path, f"{path} must be a valid date")


def check_list(
    errors: FieldErrors,
    path: str,
    value: Any,
    *,
    min_message: str,
) -> list:
    """Return the list to iterate over (empty when invalid)."""
    if value is None:
        errors.add(path, f"{path} is required")
        return []
    if not isinstance(value, list):
        errors.add(path, f"{path} must be an array")
        return []
    if not value:
        errors.add(path, min_message)
        return []
    return value


def parse_sequence_id(raw: str | None) -> int | None:
    """
    Parse the X-Sequence-Id header.

    Missing/blank -> None; anything but a non-negative integer raises.
    """
    if raw is None or not raw.strip():
        return None
    stripped = raw.strip()
    if not (stripped.isascii() and stripped.isdigit()):
        raise ValidationError({"X-Sequence-Id": ["X-Sequence-Id must be a non-negative integer"]})
    return int(stripped)
