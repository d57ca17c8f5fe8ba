"""
Date parsing for reservation documents.

Portuguese booking exports write dates day-first (DD-MM-YYYY or
DD/MM/YYYY); providers sometimes already return ISO dates. Day-first is
always preferred, there is no month-first fallback.
"""

from datetime import date, datetime
import re
from typing import Any, Optional

DATE_FORMATS = [
    '%Y-%m-%d',
    '%d-%m-%Y', '%d/%m/%Y', '%d.%m.%Y',
    '%d-%m-%y', '%d/%m/%y',
]

_ISO_DATETIME = re.compile(r'^(\d{4}-\d{2}-\d{2})[T ]')


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a reservation date.

    Args:
        value: date, datetime or string ("15-03-2024", "15/03/2024", "2024-03-15")

    Returns:
        date, or None when the value is empty or unparseable

    Examples:
        >>> parse_date("15-03-2024")
        datetime.date(2024, 3, 15)
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    date_str = value.strip()
    if not date_str:
        return None

    iso_match = _ISO_DATETIME.match(date_str)
    if iso_match:
        date_str = iso_match.group(1)

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    return None


def to_iso(value: Optional[date]) -> Optional[str]:
    """Format a date as YYYY-MM-DD for storage."""
    return value.isoformat() if value is not None else None
