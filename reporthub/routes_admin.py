# reporthub/routes_admin.py
"""
Admin maintenance jobs.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reporthub.deps import SessionUser, admin_write, get_db
from reporthub.errors import BadRequest
from reporthub.logging_config import get_logger
from reporthub.schemas import SyncPricesRequest
from reporthub.services.price_sync import parse_sync_period, sync_prices

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/sync-prices")
def sync_order_prices(
    payload: SyncPricesRequest,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    """Re-price one month of orders from the current product catalogue."""
    try:
        period = parse_sync_period(payload.order_period)
    except ValueError as e:
        raise BadRequest(str(e))

    logger.info("[price-sync] Requested for %s by user %d", period.value, user.id)
    return sync_prices(db, period)
