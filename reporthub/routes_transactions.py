# reporthub/routes_transactions.py
"""
Routes related to orders (transactions) and their line items.

Line items are always priced from the product catalogue at the time they are
written; a later catalogue change only reaches them through the price sync job.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from models import (
    Church,
    Group,
    ProductType,
    Transaction,
    TransactionLineItem,
    TRANSACTION_TYPE_PURCHASE,
)
from reporthub.deps import SessionUser, admin_write, get_db, require_auth
from reporthub.errors import BadRequest, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import LineItemIn, TransactionCreate, TransactionOut, TransactionUpdate
from reporthub.services.financial_year import resolve_financial_year
from reporthub.services.import_helpers import build_line_item, naive_utc, to_money
from reporthub.services.upload_pipeline import church_currency, resolve_department

logger = get_logger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def transaction_json(tx: Transaction) -> dict:
    line_items = [
        {
            "id": item.id,
            "product_type_id": item.product_type_id,
            "product_name": item.product_type.name if item.product_type else None,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "total_amount": item.total_amount,
        }
        for item in tx.line_items
    ]
    data = {
        "id": tx.id,
        "church_id": tx.church_id,
        "church_name": tx.church.name if tx.church else None,
        "department_id": tx.department_id,
        "upload_history_id": tx.upload_history_id,
        "transaction_date": tx.transaction_date,
        "transaction_type": tx.transaction_type,
        "currency": tx.currency,
        "notes": tx.notes,
        "total_amount": sum((Decimal(item.total_amount) for item in tx.line_items), Decimal("0")),
        "line_items": line_items,
    }
    return TransactionOut.model_validate(data).model_dump(mode="json", by_alias=True)


def _build_line_items(db: Session, items: List[LineItemIn]) -> List[TransactionLineItem]:
    built = []
    for item in items:
        product = db.get(ProductType, item.product_type_id)
        if product is None:
            raise NotFound(f"Product not found: {item.product_type_id}")
        built.append(build_line_item(product, item.quantity))
    return built


def _load(db: Session, transaction_id: int) -> Transaction:
    tx = (
        db.query(Transaction)
        .options(
            joinedload(Transaction.church),
            selectinload(Transaction.line_items).joinedload(TransactionLineItem.product_type),
        )
        .filter(Transaction.id == transaction_id)
        .first()
    )
    if tx is None:
        raise NotFound("Transaction not found")
    return tx


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------

@router.get("")
def list_transactions(
    fy: Optional[str] = Query(None),
    church_id: Optional[int] = Query(None, alias="churchId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    """
    Orders newest first. An explicit date range wins over `fy`; with neither,
    the current financial year is used.
    """
    if start_date and end_date:
        if end_date < start_date:
            raise BadRequest("endDate must not be before startDate")
        label = None
        filters = [
            Transaction.transaction_date >= datetime.combine(start_date, time.min),
            Transaction.transaction_date < datetime.combine(end_date + timedelta(days=1), time.min),
        ]
    else:
        try:
            bounds = resolve_financial_year(db, fy)
        except ValueError as e:
            raise BadRequest(str(e))
        label = bounds.label
        filters = [
            Transaction.transaction_date >= bounds.start_date,
            Transaction.transaction_date <= bounds.end_date,
        ]

    if church_id is not None:
        filters.append(Transaction.church_id == church_id)

    query = (
        db.query(Transaction)
        .options(
            joinedload(Transaction.church),
            selectinload(Transaction.line_items).joinedload(TransactionLineItem.product_type),
        )
        .filter(*filters)
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    )

    # Totals for the filtered view
    total_amount, total_quantity = (
        db.query(
            func.coalesce(func.sum(TransactionLineItem.total_amount), 0),
            func.coalesce(func.sum(TransactionLineItem.quantity), 0),
        )
        .select_from(Transaction)
        .join(TransactionLineItem, TransactionLineItem.transaction_id == Transaction.id)
        .filter(*filters)
        .one()
    )

    transactions = query.all()
    return {
        "financialYear": label,
        "transactions": [transaction_json(tx) for tx in transactions],
        "count": len(transactions),
        "totalAmount": float(total_amount),
        "totalQuantity": int(total_quantity),
    }


@router.post("", status_code=201)
def create_transaction(
    payload: TransactionCreate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    church = (
        db.query(Church)
        .options(joinedload(Church.group).joinedload(Group.zone))
        .filter(Church.id == payload.church_id)
        .first()
    )
    if church is None:
        raise NotFound("Church not found")

    try:
        department = resolve_department(db, user.department_id)
    except LookupError:
        raise NotFound("No department found")

    tx = Transaction(
        church_id=church.id,
        department_id=department.id,
        uploaded_by=user.id,
        transaction_date=naive_utc(payload.transaction_date),
        transaction_type=TRANSACTION_TYPE_PURCHASE,
        currency=church_currency(church),
        notes=payload.notes or None,
        line_items=_build_line_items(db, payload.line_items),
    )
    db.add(tx)
    db.commit()

    tx = _load(db, tx.id)
    logger.info(
        "[orders] Created order %d for %r: %d line items, total %s",
        tx.id,
        church.name,
        len(tx.line_items),
        to_money(sum(Decimal(item.total_amount) for item in tx.line_items)),
    )
    return {"message": "Order created successfully", "transaction": transaction_json(tx)}


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    return {"transaction": transaction_json(_load(db, transaction_id))}


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    tx = _load(db, transaction_id)

    if payload.transaction_date is not None:
        tx.transaction_date = naive_utc(payload.transaction_date)

    if "notes" in payload.model_fields_set:
        tx.notes = payload.notes or None

    if payload.line_items is not None:
        # Replacing the collection deletes the old rows (delete-orphan)
        tx.line_items = _build_line_items(db, payload.line_items)

    db.commit()
    return {"message": "Order updated successfully", "transaction": transaction_json(_load(db, tx.id))}


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    tx = db.get(Transaction, transaction_id)
    if tx is None:
        raise NotFound("Transaction not found")

    db.delete(tx)
    db.commit()
    logger.info("[orders] Deleted order %d by user %d", transaction_id, user.id)
    return {"message": "Order deleted successfully"}
