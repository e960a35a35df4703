# wholesale_pos/utils/units.py
"""
Sale-mode multiplier helpers.

A sale mode (e.g. "Carton", "1/2 Carton") sells `multiplier` base stock units
per unit sold. Only the decimal multiplier is persisted, so the human fraction
is rebuilt from it for display.

Both parse_multiplier() and to_fraction() are lenient: operator input is free
text, and bad input degrades to a safe default instead of raising.
"""
from __future__ import annotations

import math
import re
from typing import Union

from ..constants import QTY_PLACES

NumberLike = Union[float, int, str, None]

__all__ = [
    "parse_multiplier",
    "to_fraction",
    "to_base_units",
    "from_base_units",
    "describe_sale_mode",
    "FRACTION_TOLERANCE",
    "MAX_DENOMINATOR",
]

FRACTION_TOLERANCE = 1e-6
MAX_DENOMINATOR = 64

_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_MIXED_NUMBER = re.compile(r"^(\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)$")


def _positive_or_default(x: float, default: float = 1.0) -> float:
    if not math.isfinite(x) or x <= 0:
        return default
    return x


def _js_number(text: str) -> float | None:
    """Strict numeric parse of one side of a fraction ('' counts as 0)."""
    t = text.strip()
    if t == "":
        return 0.0
    try:
        v = float(t)
    except ValueError:
        return None
    return v if math.isfinite(v) else None


def parse_multiplier(value: NumberLike) -> float:
    """
    Parse a sale-mode multiplier from a number or text.

    Accepts plain numbers ("0.5", 2), fractions ("1/2") and mixed numbers
    ("1 1/2"). Empty, unparseable, zero, negative or non-finite input returns 1.
    Never raises.
    """
    if isinstance(value, bool) or value is None:
        return 1.0
    if isinstance(value, (int, float)):
        return _positive_or_default(float(value))

    text = str(value).strip()
    if not text:
        return 1.0

    m = _MIXED_NUMBER.match(text)
    if m:
        whole, num, den = (float(g) for g in m.groups())
        if den:
            return _positive_or_default(whole + num / den)

    if "/" in text:
        parts = text.split("/")
        num = _js_number(parts[0])
        den = _js_number(parts[1])
        if den and num is not None:
            return _positive_or_default(num / den)

    m = _LEADING_FLOAT.match(text)
    if not m:
        return 1.0
    return _positive_or_default(float(m.group(0)))


def to_fraction(decimal: NumberLike) -> str:
    """
    Render a decimal multiplier as a human fraction: 0.5 -> "1/2",
    1.5 -> "1 1/2", 3 -> "3". Negative and non-finite values render "0";
    anything without a denominator <= 64 match renders with 2 decimals.
    """
    try:
        x = float(decimal)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "0"
    if not math.isfinite(x) or x <= 0:
        return "0"
    if x.is_integer():
        return str(int(x))

    for den in range(1, MAX_DENOMINATOR + 1):
        num = math.floor(x * den + 0.5)
        if abs(num / den - x) < FRACTION_TOLERANCE:
            if num == den:
                return "1"
            if num < den:
                return f"{num}/{den}"
            whole, remainder = divmod(num, den)
            return str(whole) if remainder == 0 else f"{whole} {remainder}/{den}"
    return f"{x:.2f}"


def to_base_units(quantity: float, multiplier: float) -> float:
    """Sale-mode quantity -> base stock units."""
    return round(float(quantity) * float(multiplier), QTY_PLACES)


def from_base_units(base_qty: float, multiplier: float) -> float:
    """Base stock units -> how many sale-mode units they make up."""
    m = parse_multiplier(multiplier)
    return round(float(base_qty) / m, QTY_PLACES)


def describe_sale_mode(name: str, multiplier: float) -> str:
    """'Carton' at 1 -> 'Carton (1)', 'Half Carton' at 0.5 -> 'Half Carton (1/2)'."""
    return f"{(name or '').strip()} ({to_fraction(multiplier)})"
