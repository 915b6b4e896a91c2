# reporthub/routes_reports.py
"""
Payment summary report (monthly / quarterly / yearly) for a zone or group.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from models import utc_now
from reporthub.deps import SessionUser, get_db, require_auth
from reporthub.errors import BadRequest, NotFound
from reporthub.schemas import PaymentSummaryOut
from reporthub.services.payment_summary import REPORT_LEVELS, TIME_PERIODS, build_report

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/payment-summary")
def payment_summary(
    report_level: Optional[str] = Query(None, alias="reportLevel"),
    entity_id: Optional[int] = Query(None, alias="entityId"),
    time_period: str = Query("MONTHLY", alias="timePeriod"),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    if not report_level or entity_id is None:
        raise BadRequest("Missing required parameters: reportLevel, entityId")

    report_level = report_level.upper()
    time_period = time_period.upper()
    if report_level not in REPORT_LEVELS:
        raise BadRequest("Invalid reportLevel. Must be ZONE or GROUP")
    if time_period not in TIME_PERIODS:
        raise BadRequest("Invalid timePeriod. Must be MONTHLY, QUARTERLY, or YEARLY")

    try:
        report = build_report(db, report_level, entity_id, year or utc_now().year, time_period)
    except LookupError as e:
        raise NotFound(str(e))

    return PaymentSummaryOut.model_validate(report).model_dump(mode="json", by_alias=True)
