# reporthub/formatting.py
# Role: display helpers for money and dates (dashboard template, notes).

from datetime import date, datetime
from decimal import Decimal

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
    "NGN": "₦",
    "ESPEES": "Ɛ",
}


def format_currency(amount, currency: str = "GBP") -> str:
    """format_currency(100, "NGN") -> "₦100.00"; unknown codes are printed as-is."""
    if isinstance(amount, str):
        amount = Decimal(amount.strip() or "0")
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{symbol}{float(amount):.2f}"


def format_date(value) -> str:
    """date / datetime / ISO string -> "15 Jan 2025"."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, (date, datetime)):
        raise TypeError(f"Cannot format {type(value).__name__} as a date")
    return value.strftime("%d %b %Y")
