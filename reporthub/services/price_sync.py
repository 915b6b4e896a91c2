# reporthub/services/price_sync.py
#
# Price Sync Job
# Re-prices the order line items of one month against the current product
# catalogue. One database transaction: either every mismatch is fixed or none.

from datetime import date
from typing import Dict, NamedTuple, Optional

from sqlalchemy.orm import Session, selectinload

from models import ProductType, Transaction, TRANSACTION_TYPE_PURCHASE
from reporthub.config import PRICE_SYNC_MAX_MONTHS
from reporthub.logging_config import get_logger
from reporthub.services.import_helpers import (
    get_month_range,
    month_label,
    months_between,
    parse_period,
    to_money,
)

logger = get_logger(__name__)


class SyncPeriod(NamedTuple):
    value: str
    year: int
    month: int


def parse_sync_period(value: Optional[str], today: Optional[date] = None) -> SyncPeriod:
    """
    Validate a "YYYY-MM" period.

    Raises ValueError when the value is missing, malformed, or further back
    than PRICE_SYNC_MAX_MONTHS months before the current month.
    """
    if not value or not isinstance(value, str):
        raise ValueError("orderPeriod is required (format: YYYY-MM)")

    parsed = parse_period(value)
    if parsed is None:
        raise ValueError("Invalid orderPeriod format. Use YYYY-MM (e.g., 2025-12)")

    year, month = parsed
    today = today or date.today()
    if months_between(date(year, month, 1), today) > PRICE_SYNC_MAX_MONTHS:
        raise ValueError(
            f"orderPeriod is too far in the past. Only the last {PRICE_SYNC_MAX_MONTHS} months can be synced"
        )

    return SyncPeriod(value=value.strip(), year=year, month=month)


def sync_prices(db: Session, period, today: Optional[date] = None) -> dict:
    """
    Update every PURCHASE line item in `period` whose unit price differs from
    its product's catalogue price; total_amount becomes price * quantity.

    `period` is a SyncPeriod or a raw "YYYY-MM" string (validated against `today`).
    """
    if not isinstance(period, SyncPeriod):
        period = parse_sync_period(period, today)

    start, end_exclusive = get_month_range(period.year, period.month)

    prices: Dict[int, object] = {
        product_id: to_money(unit_price)
        for product_id, unit_price in db.query(ProductType.id, ProductType.unit_price)
    }

    transactions = (
        db.query(Transaction)
        .options(selectinload(Transaction.line_items))
        .filter(
            Transaction.transaction_type == TRANSACTION_TYPE_PURCHASE,
            Transaction.transaction_date >= start,
            Transaction.transaction_date < end_exclusive,
        )
        .all()
    )

    line_items_updated = 0
    transactions_affected = 0

    try:
        for transaction in transactions:
            modified = False
            for item in transaction.line_items:
                catalogue_price = prices.get(item.product_type_id)
                if catalogue_price is None:
                    continue
                if to_money(item.unit_price) == catalogue_price:
                    continue

                item.unit_price = catalogue_price
                item.total_amount = to_money(catalogue_price * item.quantity)
                line_items_updated += 1
                modified = True

            if modified:
                transactions_affected += 1

        if line_items_updated:
            db.commit()
        else:
            db.rollback()
    except Exception:
        db.rollback()
        logger.exception("[price-sync] Sync for %s failed, rolled back", period.value)
        raise

    label = month_label(start)
    if line_items_updated:
        message = f"Prices synced successfully for {label}"
    else:
        message = f"All prices for {label} already match the product catalogue"

    logger.info(
        "[price-sync] %s: %d line items updated across %d of %d transactions",
        period.value,
        line_items_updated,
        transactions_affected,
        len(transactions),
    )
    return {
        "message": message,
        "period": period.value,
        "transactionsAffected": transactions_affected,
        "lineItemsUpdated": line_items_updated,
        "totalTransactionsInPeriod": len(transactions),
    }
