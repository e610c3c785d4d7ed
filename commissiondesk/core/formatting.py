"""Display helpers for dates and currency.

Amounts travel through the API as plain numbers; the currency prefix is only
added here, for exports and generated text.
"""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from dateutil import parser as date_parser

CURRENCY_PREFIX = "RM"
DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_DATETIME_FORMAT = "%d/%m/%Y %I:%M %p"


def _coerce_to_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return date_parser.parse(value.strip())
        except (ValueError, OverflowError):
            return None
    return None


def format_display_date(value: Any) -> str:
    """Format a value as dd/mm/yyyy or return an empty string."""
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATE_FORMAT)


def format_display_datetime(value: Any) -> str:
    coerced = _coerce_to_datetime(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATETIME_FORMAT)


def format_money(value: Any, currency: str = CURRENCY_PREFIX) -> str:
    """``RM 1,234.50`` style amount with thousand separators and two decimals."""
    if value in (None, ""):
        amount = Decimal("0")
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            return str(value)
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{currency} {amount:,.2f}"


def parse_year_month(value: str) -> tuple[int, int]:
    """Parse ``YYYY-MM`` into (year, month); raise ``ValueError`` otherwise."""
    parts = (value or "").split("-")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError("Invalid year-month format. Use YYYY-MM")
    year, month = int(parts[0]), int(parts[1])
    if year < 1 or not 1 <= month <= 12:
        raise ValueError("Invalid year-month format. Use YYYY-MM")
    return year, month


__all__ = [
    "format_display_date",
    "format_display_datetime",
    "format_money",
    "parse_year_month",
]
