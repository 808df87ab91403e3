"""Default currency formatting used by chart labels."""

from __future__ import annotations

from typing import Callable

__all__ = ["PriceFormatter", "format_price", "format_change"]

PriceFormatter = Callable[[float, str], str]

_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}


def format_price(value: float, currency: str = "USD") -> str:
    """Format *value* with 2 fraction digits, or up to 8 for sub-unit prices."""

    code = currency.upper()
    magnitude = abs(value)
    if magnitude == 0 or magnitude >= 1:
        digits = f"{magnitude:,.2f}"
    else:
        digits = f"{magnitude:.8f}".rstrip("0")
        if len(digits.split(".")[1]) < 2:
            digits = f"{magnitude:.2f}"
    sign = "-" if value < 0 else ""
    symbol = _SYMBOLS.get(code)
    if symbol is not None:
        return f"{sign}{symbol}{digits}"
    return f"{sign}{code} {digits}"


def format_change(first: float, last: float) -> str:
    """Signed percentage change between two samples, e.g. ``-1.00%``."""

    if first == 0:
        return "+0.00%"
    change = (last - first) / first * 100.0
    return f"{change:+.2f}%"
