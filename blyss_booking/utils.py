"""Shared date and formatting helpers used across the booking flow."""

from datetime import date, datetime


def month_key(day: date) -> str:
    """Return the ``YYYY-MM`` key of the month containing ``day``.

    Examples:
        >>> month_key(date(2025, 6, 10))
        '2025-06'
    """
    return f"{day.year:04d}-{day.month:02d}"


def parse_month_key(value: str) -> tuple[int, int]:
    """Parse a ``YYYY-MM`` key into ``(year, month)``."""
    parsed = datetime.strptime(value.strip(), "%Y-%m")
    return parsed.year, parsed.month


def parse_iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, ignoring any time component."""
    return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move ``delta`` months forward (or backward when negative)."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def format_price(amount: float, symbol: str = "€") -> str:
    """Format a price with two decimals.

    Examples:
        >>> format_price(13.5)
        '13.50€'
    """
    return f"{amount:.2f}{symbol}"


def format_duration(minutes: int) -> str:
    """Format a duration the way the app displays it.

    Examples:
        >>> format_duration(90)
        '1h30'
        >>> format_duration(60)
        '1h'
        >>> format_duration(45)
        '45min'
    """
    hours, rest = divmod(minutes, 60)
    if not hours:
        return f"{rest}min"
    if not rest:
        return f"{hours}h"
    return f"{hours}h{rest:02d}"
