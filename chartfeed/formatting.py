from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Optional

# leading numeric prefix, read the way a browser's parseFloat does ("42abc" -> 42)
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))")
_CTX = Context(prec=64, rounding=ROUND_HALF_UP)


def _to_float(value: Any) -> float:
    if isinstance(value, str):
        match = _FLOAT_PREFIX.match(value)
        if not match:
            return math.nan
        return float(match.group(1).replace("Infinity", "inf"))
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _fixed(value: float, places: int) -> str:
    # ties round away from zero on the shortest decimal form, not the binary value
    exp = Decimal(1).scaleb(-places)
    return f"{Decimal(repr(value)).quantize(exp, context=_CTX):f}"


def _group_indian(digits: str) -> str:
    # en-IN grouping: last three digits, then pairs (12,34,567)
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_price(price: Any) -> str:
    """Format a price with two decimals and Indian digit grouping."""
    if price is None:
        return "0.00"
    value = _to_float(price)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "-∞" if value < 0 else "∞"
    text = _fixed(abs(value), 2)
    whole, frac = text.split(".")
    sign = "-" if value < 0 and text != "0.00" else ""
    return f"{sign}{_group_indian(whole)}.{frac}"


def format_change(change: float, change_percent: float) -> str:
    sign = "+" if change >= 0 else "-"
    return f"{sign}{format_price(abs(change))} ({sign}{_fixed(abs(change_percent), 2)}%)"


def format_volume(volume: Optional[float]) -> str:
    if volume is None:
        return "0"
    if volume >= 1_000_000:
        return f"{_fixed(volume / 1_000_000, 1)}M"
    if volume >= 1_000:
        return f"{_fixed(volume / 1_000, 1)}K"
    return _fixed(volume, 0)
