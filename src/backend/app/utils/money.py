"""
Money parsing for reservation totals.

Control sheets and provider output write euro totals in several shapes:
- Portuguese: 1.234,56 € or 1 234,56 EUR
- Platform exports: €1,234.56
- Plain numbers: 1234 or 1234.5 (JSON numbers from the provider)
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional
import re

CENTS = Decimal('0.01')

_CURRENCY = re.compile(r'€|\beur\b|\beuros?\b', re.IGNORECASE)
_AMOUNT_CHARS = re.compile(r'[\d.,\s]+')
_THOUSANDS_DOTS = re.compile(r'\d{1,3}(\.\d{3})+')


def decimal_separator(amount_str: str) -> Optional[str]:
    """
    Guess which character separates the cents in an amount.

    Returns ',' or '.', or None when the amount has no decimal part.

    Rules, first match wins:
    - ",5" or ",50" at the end is a decimal comma
    - with both characters present, the rightmost one is the decimal separator
    - dots grouping exactly three digits (1.500, 1.234.567) are thousands
    - a single dot is a decimal point; commas alone are thousands
    """
    if re.search(r',\d{1,2}$', amount_str):
        return ','

    if '.' in amount_str and ',' in amount_str:
        return ',' if amount_str.rindex(',') > amount_str.rindex('.') else '.'

    if _THOUSANDS_DOTS.fullmatch(amount_str):
        return None

    if '.' in amount_str:
        return '.'
    return None


def parse_money(
    amount_str: str,
    separator: Optional[str] = None,
    allow_negative: bool = False
) -> Optional[Decimal]:
    """
    Parse a euro amount string.

    Args:
        amount_str: Text containing the amount (e.g. "123,45 €", "EUR 1.234,56")
        separator: Decimal separator to assume; detected when omitted
        allow_negative: Accept "-50,00" and "(50,00)"

    Returns:
        Decimal amount or None if the text is not an amount

    Examples:
        >>> parse_money("123,45 €")
        Decimal('123.45')
        >>> parse_money("€1,234.56")
        Decimal('1234.56')
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    text = _CURRENCY.sub('', amount_str).strip()

    negative = False
    if text.startswith('(') and text.endswith(')'):
        negative = True
        text = text[1:-1].strip()
    if text.startswith('-'):
        negative = True
        text = text[1:].strip()

    if negative and not allow_negative:
        return None
    if not text or not _AMOUNT_CHARS.fullmatch(text):
        return None

    if separator is None:
        separator = decimal_separator(text)

    digits = text.replace(' ', '')
    if separator == ',':
        digits = digits.replace('.', '').replace(',', '.')
    elif separator == '.':
        digits = digits.replace(',', '')
    else:
        digits = digits.replace('.', '').replace(',', '')

    try:
        value = Decimal(digits)
    except InvalidOperation:
        return None

    return -value if negative else value


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a total amount from provider output (number or string).

    Numbers are converted through str() to avoid float artifacts. Negative
    values are kept so the plausibility gate can reject them explicitly.

    Examples:
        >>> parse_amount(450.5)
        Decimal('450.50')
        >>> parse_amount("1.234,56 €")
        Decimal('1234.56')
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
    else:
        result = parse_money(str(value), allow_negative=True)

    if result is None or not result.is_finite():
        return None

    try:
        return result.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # too many digits for the context precision
        return None


def format_money(amount: Optional[Decimal]) -> str:
    """
    Format an amount the way Portuguese documents print it.

    Examples:
        >>> format_money(Decimal('1234.56'))
        '1.234,56 €'
    """
    if amount is None:
        return 'N/A'

    grouped = f"{amount:,.2f}"
    return grouped.replace(',', ' ').replace('.', ',').replace(' ', '.') + ' €'
