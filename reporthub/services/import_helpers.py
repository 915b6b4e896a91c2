# reporthub/services/import_helpers.py
#
# Import Helper Functions
# Builds order line items from catalogue products and turns "YYYY-MM" order
# periods into month date ranges. Shared by the upload pipeline, the order
# endpoints and the price sync job.

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from models import ProductType, TransactionLineItem

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")
_PERIOD_DAY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

CENT = Decimal("0.01")


# ---- Line items ----

def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT)


def build_line_item(product: ProductType, quantity: int, unit_price=None) -> TransactionLineItem:
    """
    One line item priced at `unit_price` (default: the product's catalogue price).
    total_amount is fixed here as quantity * unit_price.
    """
    price = to_money(product.unit_price if unit_price is None else unit_price)
    return TransactionLineItem(
        product_type_id=product.id,
        quantity=int(quantity),
        unit_price=price,
        total_amount=to_money(price * int(quantity)),
    )


def naive_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


# ---- Month / period utilities ----

def get_month_range(year: int, month: int) -> Tuple[datetime, datetime]:
    """Returns (first instant of the month, first instant of the next month)."""
    start = datetime(year, month, 1)
    if month == 12:
        end_exclusive = datetime(year + 1, 1, 1)
    else:
        end_exclusive = datetime(year, month + 1, 1)
    return start, end_exclusive


def parse_period(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """'2025-12' -> (2025, 12). None for anything malformed."""
    match = _PERIOD_RE.match((value or "").strip())
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not (1 <= month <= 12):
        return None
    return year, month


def parse_order_period(value: Optional[str]) -> Optional[datetime]:
    """
    Date that orders from an upload are booked on.

    'YYYY-MM' -> first day of that month; 'YYYY-MM-DD' -> that day.
    """
    trimmed = (value or "").strip()

    period = parse_period(trimmed)
    if period:
        return datetime(period[0], period[1], 1)

    match = _PERIOD_DAY_RE.match(trimmed)
    if match:
        try:
            return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    return None


def months_between(earlier: date, later: date) -> int:
    """Whole calendar months from `earlier` to `later` (ignores the day)."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def month_label(start: datetime) -> str:
    """datetime(2025, 12, 1) -> 'December 2025'"""
    return start.strftime("%B %Y")
