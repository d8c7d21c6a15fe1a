"""Formatting utilities for currency and date display."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Union

from .config import CURRENCY_SYMBOL


def group_indian(digits: str) -> str:
    """Insert separators in the Indian style: last three digits, then pairs.

    Example:
        >>> group_indian("12345678")
        '1,23,45,678'
    """
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(
    amount: Union[float, int],
    include_sign: bool = True,
    decimals: int = 2,
    symbol: Optional[str] = None,
) -> str:
    """Format a currency amount with locale grouping.

    Args:
        amount: The amount to format
        include_sign: Whether to include the currency symbol
        decimals: Digits after the decimal point
        symbol: Overrides the configured currency symbol

    Returns:
        Formatted currency string (e.g. "₹1,23,456.78" or "1,23,456.78")

    Example:
        >>> format_currency(123456.78)
        '₹1,23,456.78'
        >>> format_currency(1234.5, include_sign=False)
        '1,234.50'
    """
    rounded = round(float(amount), decimals)
    negative = rounded < 0
    text = f"{abs(rounded):.{decimals}f}"
    integer, _, fraction = text.partition(".")
    formatted = group_indian(integer) + (f".{fraction}" if fraction else "")
    if include_sign:
        formatted = f"{symbol if symbol is not None else CURRENCY_SYMBOL}{formatted}"
    return f"-{formatted}" if negative else formatted


def format_date(value: Any) -> str:
    """Render a calendar date as "January 05, 2024"; unparseable input is returned as-is."""
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        try:
            value = date.fromisoformat(str(value))
        except ValueError:
            return str(value)
    return value.strftime("%B %d, %Y")
