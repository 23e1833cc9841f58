"""
metric_engine/formatting.py

Locale-stable (en-US) rendering of metric values.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext

from metric_engine.models import FormatType, MetricFormat

NULL_PLACEHOLDER = "—"

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "INR": "₹",
}


def _rounded(value: float, decimals: int) -> Decimal:
    exact = Decimal(repr(float(value)))
    places = max(decimals, 0)
    with localcontext() as context:
        # Room for every integer digit plus the requested places.
        context.prec = max(exact.adjusted() + 1, 1) + places + 2
        return exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _grouped(value: float, decimals: int) -> str:
    return f"{_rounded(value, decimals):,.{max(decimals, 0)}f}"


def format_currency(value: float, currency: str, decimals: int) -> str:
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    rounded = _rounded(value, decimals)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.{max(decimals, 0)}f}"


def format_value(value: float | None, fmt: MetricFormat) -> str:
    """
    Render *value* according to *fmt*, wrapped in its prefix and suffix.

    ``None`` and non-finite values render as an em-dash placeholder.
    """

    if value is None or not math.isfinite(value):
        return NULL_PLACEHOLDER

    decimals = fmt.decimals
    if fmt.type == FormatType.CURRENCY:
        formatted = format_currency(value, fmt.currency, decimals)
    elif fmt.type == FormatType.PERCENTAGE:
        formatted = f"{_rounded(value, decimals):.{max(decimals, 0)}f}%"
    elif fmt.type == FormatType.DURATION:
        if value >= 1:
            formatted = f"{_rounded(value, decimals):.{max(decimals, 0)}f} days"
        else:
            formatted = f"{_rounded(value * 24, decimals):.{max(decimals, 0)}f} hours"
    elif fmt.type == FormatType.NUMBER:
        formatted = _grouped(value, decimals)
    else:
        raise ValueError(f"Unsupported format type: {fmt.type!r}")

    return f"{fmt.prefix}{formatted}{fmt.suffix}"
