# reporthub/services/financial_year.py
#
# Financial Year Resolver
# Date arithmetic for the Dec 1 -> Nov 30 fiscal calendar, plus the
# data-access helpers that keep exactly one FinancialYear row marked current.

"""
Financial years run from December 1 to November 30 and are labelled by the
calendar year they END in:

    Dec 1 2024 .. Nov 30 2025  ->  "FY2025"

All datetimes here are naive UTC, matching how the database stores them:
start = Dec 1 00:00:00.000, end = Nov 30 23:59:59.999.
"""

import hmac
import re
from datetime import date, datetime, timezone
from typing import NamedTuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import FinancialYear, Payment, Transaction, TransactionLineItem, UploadHistory, utc_now
from reporthub.logging_config import get_logger

logger = get_logger(__name__)

FY_LABEL_RE = re.compile(r"^FY\d{4}$")

# Month index where a new financial year starts
FY_START_MONTH = 12


class FinancialYearBounds(NamedTuple):
    label: str
    start_date: datetime
    end_date: datetime


# ---- Pure date arithmetic ----

def _start_of_day(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 0, 0, 0, 0)


def _end_of_day(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 23, 59, 59, 999000)


def _bounds_for_end_year(end_year: int) -> FinancialYearBounds:
    return FinancialYearBounds(
        label=f"FY{end_year}",
        start_date=_start_of_day(end_year - 1, 12, 1),
        end_date=_end_of_day(end_year, 11, 30),
    )


def _to_utc(reference: date | datetime) -> date | datetime:
    if isinstance(reference, datetime) and reference.tzinfo is not None:
        return reference.astimezone(timezone.utc)
    return reference


def get_financial_year_bounds(reference: date | datetime) -> FinancialYearBounds:
    """
    Return the financial year containing `reference`.

    Examples:
    - Dec 1, 2024  -> FY2025 (ends Nov 30, 2025)
    - Nov 30, 2025 -> FY2025
    - Dec 1, 2025  -> FY2026
    """
    reference = _to_utc(reference)
    end_year = reference.year + 1 if reference.month >= FY_START_MONTH else reference.year
    return _bounds_for_end_year(end_year)


def get_next_financial_year_bounds(end_date: datetime) -> FinancialYearBounds:
    """Bounds of the year that follows one ending on `end_date`."""
    return _bounds_for_end_year(end_date.year + 1)


def get_reset_confirmation_text(fy_label: str) -> str:
    return f"RESET {fy_label}"


def is_valid_fy_label(label: str | None) -> bool:
    """True for exactly "FY" followed by four digits."""
    if not isinstance(label, str):
        return False
    return FY_LABEL_RE.fullmatch(label) is not None


def get_bounds_for_label(label: str) -> FinancialYearBounds:
    """Bounds for a label like "FY2025". Raises ValueError on a malformed label."""
    if not is_valid_fy_label(label):
        raise ValueError(f"Invalid financial year label {label!r}. Expected format FY2025.")
    return _bounds_for_end_year(int(label[2:]))


def bounds_of(fy: FinancialYear) -> FinancialYearBounds:
    return FinancialYearBounds(label=fy.label, start_date=fy.start_date, end_date=fy.end_date)


def resolve_financial_year(
    db: Session,
    label: str | None = None,
    now: datetime | None = None,
) -> FinancialYearBounds:
    """
    Work out which financial year a page or report should use.

    - label given: validated first, then the persisted row with that label,
      or computed bounds when no such row exists
    - no label: the persisted current year, or bounds computed from `now`
    """
    if label:
        bounds = get_bounds_for_label(label)
        stored = db.query(FinancialYear).filter(FinancialYear.label == label).first()
        return bounds_of(stored) if stored else bounds

    current = db.query(FinancialYear).filter(FinancialYear.is_current.is_(True)).first()
    if current:
        return bounds_of(current)

    return get_financial_year_bounds(now or utc_now())


# ---- Data access (single current year) ----

def set_current_financial_year(db: Session, fy: FinancialYear) -> FinancialYear:
    """
    Mark `fy` as the only current year.

    Clears the flag on every row first so the single-current index is never
    violated, then commits both changes together.
    """
    try:
        db.query(FinancialYear).update({FinancialYear.is_current: False}, synchronize_session="fetch")
        fy.is_current = True
        db.add(fy)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(fy)
    logger.info("[financial-year] %s is now the current financial year", fy.label)
    return fy


def _get_or_build(db: Session, bounds: FinancialYearBounds) -> FinancialYear:
    existing = db.query(FinancialYear).filter(FinancialYear.label == bounds.label).first()
    if existing:
        return existing
    return FinancialYear(
        label=bounds.label,
        start_date=bounds.start_date,
        end_date=bounds.end_date,
        is_current=False,
    )


def get_or_create_current(db: Session, now: datetime | None = None) -> FinancialYear:
    """Return the current financial year, creating it from today's date if missing."""
    current = db.query(FinancialYear).filter(FinancialYear.is_current.is_(True)).first()
    if current:
        return current

    bounds = get_financial_year_bounds(now or utc_now())
    return set_current_financial_year(db, _get_or_build(db, bounds))


def start_next_financial_year(db: Session) -> FinancialYear:
    """
    Advance to the year after the current one.

    Raises LookupError when no current year exists yet.
    """
    current = db.query(FinancialYear).filter(FinancialYear.is_current.is_(True)).first()
    if not current:
        raise LookupError(
            "No current financial year found. Fetch /api/financial-years/current first."
        )

    next_bounds = get_next_financial_year_bounds(current.end_date)
    return set_current_financial_year(db, _get_or_build(db, next_bounds))


def _count_in_range(db: Session, column, start: datetime, end: datetime) -> int:
    return (
        db.query(func.count())
        .select_from(column.class_)
        .filter(column >= start, column <= end)
        .scalar()
        or 0
    )


def count_records(db: Session, fy: FinancialYear) -> dict:
    """Payments, orders and uploads that fall inside a financial year."""
    return {
        "payments": _count_in_range(db, Payment.payment_date, fy.start_date, fy.end_date),
        "transactions": _count_in_range(
            db, Transaction.transaction_date, fy.start_date, fy.end_date
        ),
        "uploads": _count_in_range(db, UploadHistory.uploaded_at, fy.start_date, fy.end_date),
    }


def list_financial_years_with_counts(db: Session) -> list[dict]:
    years = db.query(FinancialYear).order_by(FinancialYear.start_date.desc()).all()

    rows = []
    for fy in years:
        counts = count_records(db, fy)
        rows.append(
            {
                "financial_year": fy,
                "transaction_count": counts["transactions"],
                "payment_count": counts["payments"],
                "upload_count": counts["uploads"],
            }
        )
    return rows


def preview_reset(db: Session, fy: FinancialYear) -> dict:
    """What a reset of `fy` would delete, plus the text the caller must echo back."""
    return {
        **count_records(db, fy),
        "confirmation_text": get_reset_confirmation_text(fy.label),
    }


def confirmation_matches(fy: FinancialYear, confirmation: str | None) -> bool:
    expected = get_reset_confirmation_text(fy.label).encode("utf-8")
    received = (confirmation or "").encode("utf-8")
    return hmac.compare_digest(expected, received)


def reset_financial_year(db: Session, fy: FinancialYear) -> dict:
    """
    Delete every payment, order and upload record dated inside `fy`.

    Runs as one database transaction. The caller is responsible for checking
    the confirmation text first (see confirmation_matches).
    """
    start, end = fy.start_date, fy.end_date

    try:
        payments_deleted = (
            db.query(Payment)
            .filter(Payment.payment_date >= start, Payment.payment_date <= end)
            .delete(synchronize_session=False)
        )

        tx_ids = db.query(Transaction.id).filter(
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        )
        db.query(TransactionLineItem).filter(
            TransactionLineItem.transaction_id.in_(tx_ids.scalar_subquery())
        ).delete(synchronize_session=False)
        transactions_deleted = (
            db.query(Transaction)
            .filter(Transaction.transaction_date >= start, Transaction.transaction_date <= end)
            .delete(synchronize_session=False)
        )

        uploads_deleted = (
            db.query(UploadHistory)
            .filter(UploadHistory.uploaded_at >= start, UploadHistory.uploaded_at <= end)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.warning(
        "[financial-year] Reset %s: %d payments, %d transactions, %d uploads deleted",
        fy.label,
        payments_deleted,
        transactions_deleted,
        uploads_deleted,
    )
    return {
        "payments_deleted": payments_deleted,
        "transactions_deleted": transactions_deleted,
        "uploads_deleted": uploads_deleted,
    }
