"""Decimal string <-> fixed-point base unit conversion.

Stable assets use 6 decimals unless the network descriptor says otherwise.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Union

from stablepago.errors import InvalidAmount

STABLE_DECIMALS = 6

_AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")


def parse_amount(amount: Union[str, Decimal, int]) -> Decimal:
    """Parse a user supplied amount into a non-negative Decimal.

    Raises:
        InvalidAmount: On non-numeric or negative input
    """
    if isinstance(amount, bool):
        raise InvalidAmount(amount)

    if isinstance(amount, Decimal):
        if not amount.is_finite() or amount < 0:
            raise InvalidAmount(amount)
        return amount

    if isinstance(amount, int):
        if amount < 0:
            raise InvalidAmount(amount)
        return Decimal(amount)

    text = str(amount).strip()
    if not _AMOUNT_RE.match(text):
        raise InvalidAmount(amount)
    try:
        return Decimal(text)
    except InvalidOperation:
        raise InvalidAmount(amount)


def to_base_units(amount: Union[str, Decimal, int], decimals: int = STABLE_DECIMALS) -> int:
    """Convert a decimal amount ("10.5") to integer base units (10500000).

    Amounts with more fractional digits than the asset supports are rejected
    rather than truncated.

    Raises:
        InvalidAmount: On non-numeric, negative or over-precise input
    """
    value = parse_amount(amount)
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidAmount(amount, f"more than {decimals} decimal places")
    return int(scaled)


def from_base_units(units: int, decimals: int = STABLE_DECIMALS) -> str:
    """Convert integer base units back to a plain decimal string.

    Trailing zeros are dropped: 10500000 -> "10.5", 1000000 -> "1".
    """
    if units < 0:
        raise InvalidAmount(units)
    text = f"{Decimal(units).scaleb(-decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
