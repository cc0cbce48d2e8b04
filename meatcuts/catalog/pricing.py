from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal

from ..errors import InvalidInputError

# A "$" followed by a number-ish token; dash-like characters end the token.
_PRICE_TOKEN = re.compile(r"\$\s*([^\s$\-–—]+)")

PRICE_SEPARATOR = "–"  # en-dash


@dataclass(frozen=True)
class PriceRange:
    min: float
    max: float
    mean: float


def to_number(token: str) -> float | None:
    try:
        value = float(token.replace(",", ""))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_price_range(text: str | None) -> PriceRange | None:
    """
    Parse ``"$6 – $9"`` (hyphen, en-dash or em-dash) into a :class:`PriceRange`.

    Returns ``None`` when fewer than two ``$<num>`` tokens are present or a
    token is not a finite number.
    """
    if not text or not isinstance(text, str):
        return None

    tokens = _PRICE_TOKEN.findall(text)
    if len(tokens) < 2:
        return None

    low = to_number(tokens[0])
    high = to_number(tokens[1])
    if low is None or high is None:
        return None
    return PriceRange(min=low, max=high, mean=(low + high) / 2)


def format_amount(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return format(Decimal(repr(float(value))), "f")


def format_price_range(low: float, high: float) -> str:
    return f"${format_amount(low)} {PRICE_SEPARATOR} ${format_amount(high)}"


def validate_price_range(low: float, high: float) -> None:
    if low is None or high is None:
        raise InvalidInputError("Price min and max are required")
    if low < 0 or high < 0:
        raise InvalidInputError(f"Prices must be non-negative (got {low}, {high})")
    if low > high:
        raise InvalidInputError(f"Price min {low} is greater than price max {high}")
