# reporthub/routes_dashboard.py

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from models import Church, Payment, Transaction, TransactionLineItem, UploadHistory
from reporthub.deps import SessionUser, get_db, require_auth, templates
from reporthub.errors import BadRequest
from reporthub.formatting import format_currency, format_date
from reporthub.services.financial_year import FinancialYearBounds, resolve_financial_year

router = APIRouter()


def _resolve(db: Session, fy: Optional[str]) -> FinancialYearBounds:
    try:
        return resolve_financial_year(db, fy)
    except ValueError as e:
        raise BadRequest(str(e))


def dashboard_figures(db: Session, bounds: FinancialYearBounds) -> dict:
    """Headline numbers for one financial year."""
    start, end = bounds.start_date, bounds.end_date

    order_count = (
        db.query(func.count(Transaction.id))
        .filter(Transaction.transaction_date >= start, Transaction.transaction_date <= end)
        .scalar()
        or 0
    )

    # Order value per currency
    order_rows = (
        db.query(
            Transaction.currency,
            func.coalesce(func.sum(TransactionLineItem.total_amount), 0).label("total"),
            func.coalesce(func.sum(TransactionLineItem.quantity), 0).label("quantity"),
        )
        .join(TransactionLineItem, TransactionLineItem.transaction_id == Transaction.id)
        .filter(Transaction.transaction_date >= start, Transaction.transaction_date <= end)
        .group_by(Transaction.currency)
        .all()
    )

    # Payments per currency, split printing / sponsorship
    payment_rows = (
        db.query(
            Payment.currency,
            func.count(Payment.id).label("count"),
            func.coalesce(
                func.sum(case((Payment.for_purpose == "PRINTING", Payment.amount), else_=0)), 0
            ).label("printing"),
            func.coalesce(
                func.sum(case((Payment.for_purpose == "SPONSORSHIP", Payment.amount), else_=0)), 0
            ).label("sponsorship"),
        )
        .filter(Payment.payment_date >= start, Payment.payment_date <= end)
        .group_by(Payment.currency)
        .all()
    )

    # Ten churches with the biggest order value in the year
    order_value = func.coalesce(func.sum(TransactionLineItem.total_amount), 0)
    top_rows = (
        db.query(Church.name, order_value.label("total"))
        .join(Transaction, Transaction.church_id == Church.id)
        .join(TransactionLineItem, TransactionLineItem.transaction_id == Transaction.id)
        .filter(Transaction.transaction_date >= start, Transaction.transaction_date <= end)
        .group_by(Church.id, Church.name)
        .order_by(order_value.desc())
        .limit(10)
        .all()
    )

    recent_uploads = (
        db.query(UploadHistory)
        .order_by(UploadHistory.uploaded_at.desc(), UploadHistory.id.desc())
        .limit(5)
        .all()
    )

    return {
        "financialYear": {
            "label": bounds.label,
            "startDate": bounds.start_date.isoformat(),
            "endDate": bounds.end_date.isoformat(),
        },
        "churchCount": db.query(func.count(Church.id)).scalar() or 0,
        "orderCount": int(order_count),
        "orders": [
            {"currency": r.currency, "total": float(r.total), "quantity": int(r.quantity)}
            for r in order_rows
        ],
        "payments": [
            {
                "currency": r.currency,
                "count": int(r.count),
                "printing": float(r.printing),
                "sponsorship": float(r.sponsorship),
            }
            for r in payment_rows
        ],
        "topChurches": [{"name": r.name, "total": float(r.total)} for r in top_rows],
        "recentUploads": [
            {
                "id": u.id,
                "fileName": u.file_name,
                "status": u.status,
                "uploadType": u.upload_type,
                "recordsProcessed": u.records_processed,
                "uploadedAt": u.uploaded_at.isoformat(),
            }
            for u in recent_uploads
        ],
    }


@router.get("/api/dashboard")
def dashboard_data(
    fy: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    return dashboard_figures(db, _resolve(db, fy))


@router.get("/dashboard")
def dashboard_page(
    request: Request,
    fy: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    bounds = _resolve(db, fy)
    figures = dashboard_figures(db, bounds)

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "bounds": bounds,
            "figures": figures,
            "format_currency": format_currency,
            "period": f"{format_date(bounds.start_date)} to {format_date(bounds.end_date)}",
        },
    )
