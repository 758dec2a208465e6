"""
Lenient numeric input parsing.

Clients send amounts as JSON numbers or as form strings. A string is read up
to the end of its leading numeric prefix, so ``"12.5usdt"`` parses as 12.5
and ``"abc"`` does not parse at all.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .errors import InvalidAmount

_NUMERIC_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a value into a finite Decimal, or None if it does not parse"""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        match = _NUMERIC_PREFIX.match(str(value).strip())
        if not match:
            return None
        try:
            result = Decimal(match.group(0))
        except InvalidOperation:
            return None

    if not result.is_finite():
        return None
    return result


def parse_positive_amount(value: Any, field: str = "amount") -> Decimal:
    """Parse a strictly positive amount or raise InvalidAmount"""
    amount = parse_decimal(value)
    if amount is None or amount <= 0:
        raise InvalidAmount(f"Invalid {field}: {value!r}", field=field, value=str(value))
    return amount


def normalize_username(value: Any) -> str:
    """Canonical form of a username: surrounding whitespace removed"""
    if value is None:
        return ""
    return str(value).strip()
