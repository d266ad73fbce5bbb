"""Price / volume / percentage display helpers."""

from __future__ import annotations


def format_price(price: float, symbol: str = "$") -> str:
    """Precision follows magnitude: 0.000123 -> '$0.000123', 43210.7 -> '$43,211'"""
    if price < 0.01:
        return f"{symbol}{price:.6f}"
    if price < 1:
        return f"{symbol}{price:.4f}"
    if price < 100:
        return f"{symbol}{price:.2f}"
    if price < 10000:
        return f"{symbol}{price:,.1f}"
    return f"{symbol}{price:,.0f}"


def format_large_number(value: float) -> str:
    """1_250_000 -> '1.25M'"""
    abs_value = abs(value)
    for divisor, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs_value >= divisor:
            return f"{value / divisor:.2f}{suffix}"
    return f"{value:.2f}"


def format_percentage(value: float) -> str:
    """1.234 -> '+1.23%'"""
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.2f}%"


def price_precision(price: float) -> int:
    """Decimal places used by format_price for this magnitude."""
    if price < 0.01:
        return 6
    if price < 1:
        return 4
    if price < 100:
        return 2
    if price < 10000:
        return 1
    return 0
