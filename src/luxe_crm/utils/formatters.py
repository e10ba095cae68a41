"""Formatting utilities for display values."""

from datetime import date, datetime


def format_currency(value: float) -> str:
    """Format a float as USD currency."""
    return f"${value:,.2f}"


def format_date(value, with_time: bool = False) -> str:
    """Format a stored timestamp (ISO string or datetime) for display."""
    if not value:
        return "N/A"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, datetime) and with_time:
        return value.strftime("%b %d, %Y %H:%M")
    if isinstance(value, (datetime, date)):
        return value.strftime("%b %d, %Y")
    return str(value)
