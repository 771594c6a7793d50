"""Price and volume normalization for catalog strings.

Catalog text comes from scraped retailer data, so both helpers are total:
they never raise and fall back to a neutral value on anything unexpected.
"""

from __future__ import annotations

import re
from typing import Any

_PRICE_NOISE_RE = re.compile(r"[^0-9,.\-]")
# Leading float, same prefix rule as a lenient parseFloat
_LEADING_FLOAT_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")

_CENTILITER_RE = re.compile(r"(\d+)cl$")
_LITER_RE = re.compile(r"([0-9.,]+)l$")


def parse_price(text: Any) -> float:
    """Convert a price string like '13,99 €' to 13.99.

    Strips everything except digits, comma, dot and minus, then turns the
    first comma into a decimal point. Returns 0.0 if nothing parses.
    """
    if not isinstance(text, str):
        return 0.0
    cleaned = _PRICE_NOISE_RE.sub("", text).replace(",", ".", 1)
    match = _LEADING_FLOAT_RE.match(cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except (ValueError, OverflowError):
        return 0.0


def _format_liters(value: float) -> str:
    return f"{int(value)}l" if value.is_integer() else f"{value}l"


def parse_volume(text: Any) -> str:
    """Normalize a volume string to a canonical unit.

    '75 cl' -> '75cl', '150cl' -> '1.5l', '1,5 L' -> '1.5l'.
    Unrecognized formats are returned unchanged.
    """
    if not isinstance(text, str):
        return ""
    compact = re.sub(r"\s", "", text.lower())

    cl_match = _CENTILITER_RE.search(compact)
    if cl_match:
        centiliters = int(cl_match.group(1))
        if centiliters > 99:
            return _format_liters(centiliters / 100)
        return f"{centiliters}cl"

    l_match = _LITER_RE.search(compact)
    if l_match:
        try:
            return _format_liters(float(l_match.group(1).replace(",", ".")))
        except ValueError:
            return text

    return text


def percentile_threshold(prices: list[float], fraction: float) -> float | None:
    """Return the value at index floor(len * fraction) of the sorted prices.

    None for an empty list. The index is clamped to the last element.
    """
    if not prices:
        return None
    ordered = sorted(prices)
    idx = min(int(len(ordered) * fraction), len(ordered) - 1)
    return ordered[idx]
