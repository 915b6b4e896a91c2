# reporthub/routes_financial_years.py
"""
Financial year management: list, current, start next, set current,
preview and reset.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from models import FinancialYear
from reporthub.deps import SessionUser, admin_write, get_db, require_admin, require_auth
from reporthub.errors import BadRequest, NotFound
from reporthub.schemas import FinancialYearListItem, FinancialYearOut, ResetRequest, to_json
from reporthub.services.financial_year import (
    confirmation_matches,
    get_or_create_current,
    get_reset_confirmation_text,
    list_financial_years_with_counts,
    preview_reset,
    reset_financial_year,
    set_current_financial_year,
    start_next_financial_year,
)

router = APIRouter(prefix="/api/financial-years", tags=["financial-years"])


def _get_fy(db: Session, fy_id: int) -> FinancialYear:
    fy = db.get(FinancialYear, fy_id)
    if fy is None:
        raise NotFound("Financial year not found")
    return fy


@router.get("")
def list_financial_years(db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    rows = list_financial_years_with_counts(db)
    return {
        "financialYears": [
            to_json(
                FinancialYearListItem,
                row["financial_year"],
                transaction_count=row["transaction_count"],
                payment_count=row["payment_count"],
                upload_count=row["upload_count"],
            )
            for row in rows
        ]
    }


@router.get("/current")
def current_financial_year(db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    """Every signed-in user needs the current year for filtering; created on first use."""
    return {"financialYear": to_json(FinancialYearOut, get_or_create_current(db))}


@router.post("/start-next")
def start_next(user: SessionUser = Depends(admin_write), db: Session = Depends(get_db)):
    try:
        fy = start_next_financial_year(db)
    except LookupError as e:
        raise BadRequest(str(e))
    return {"financialYear": to_json(FinancialYearOut, fy)}


@router.post("/{fy_id}/set-current")
def set_current(fy_id: int, user: SessionUser = Depends(admin_write), db: Session = Depends(get_db)):
    fy = set_current_financial_year(db, _get_fy(db, fy_id))
    return {"financialYear": to_json(FinancialYearOut, fy)}


@router.get("/{fy_id}/preview-reset")
def preview(fy_id: int, db: Session = Depends(get_db), user: SessionUser = Depends(require_admin)):
    counts = preview_reset(db, _get_fy(db, fy_id))
    return {
        "preview": {
            "payments": counts["payments"],
            "transactions": counts["transactions"],
            "uploads": counts["uploads"],
        },
        "confirmationText": counts["confirmation_text"],
    }


@router.post("/{fy_id}/reset")
def reset(
    fy_id: int,
    payload: ResetRequest,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    fy = _get_fy(db, fy_id)

    if not confirmation_matches(fy, payload.confirmation):
        expected = get_reset_confirmation_text(fy.label)
        raise BadRequest(f'Invalid confirmation. Expected "{expected}".')

    counts = reset_financial_year(db, fy)
    return {
        "financialYear": to_json(FinancialYearOut, fy),
        "paymentsDeleted": counts["payments_deleted"],
        "transactionsDeleted": counts["transactions_deleted"],
        "uploadsDeleted": counts["uploads_deleted"],
    }
