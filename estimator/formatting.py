"""Presentation-time money formatting. Totals are never rounded before this point."""

import math

from .config import settings

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
}


def format_currency(value, currency: str = None, decimals: int = None) -> str:
    """
    Format a number as currency, e.g. 1234.5 -> "$1,234.50".
    None formats as zero; strings are parsed and fall back to zero.
    """
    currency = currency or settings.CURRENCY
    decimals = settings.CURRENCY_DECIMALS if decimals is None else decimals

    if value is None:
        amount = 0.0
    elif isinstance(value, (int, float)):
        amount = float(value)
    else:
        try:
            amount = float(str(value).strip())
        except (ValueError, TypeError):
            amount = 0.0
    if not math.isfinite(amount):
        amount = 0.0

    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    body = f"{abs(amount):,.{decimals}f}"
    if amount < 0 and float(body.replace(",", "")) != 0:
        return f"-{symbol}{body}"
    return f"{symbol}{body}"
