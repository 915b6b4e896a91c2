# reporthub/routes_churches.py
"""
Church CRUD and the church bulk upload (CSV) endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models import Church, Group, Payment, Transaction
from reporthub.deps import SessionUser, admin_write, get_db, read_csv_upload, require_auth
from reporthub.errors import BadRequest, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import ChurchCreate, ChurchDetail, ChurchOut, ChurchUpdate, to_json
from reporthub.services.church_import import NoValidChurchRows, import_churches
from reporthub.services.csv_import import CsvFormatError

logger = get_logger(__name__)

router = APIRouter(prefix="/api/churches", tags=["churches"])

DUPLICATE_MESSAGE = "A church with this name already exists in this group"


def _name_taken(db: Session, group_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Church.id).filter(
        Church.group_id == group_id,
        func.lower(Church.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Church.id != exclude_id)
    return query.first() is not None


def _require_group(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")
    return group


def _dependent_counts(db: Session, church_id: int) -> tuple[int, int]:
    transactions = (
        db.query(func.count(Transaction.id)).filter(Transaction.church_id == church_id).scalar() or 0
    )
    payments = db.query(func.count(Payment.id)).filter(Payment.church_id == church_id).scalar() or 0
    return transactions, payments


@router.get("")
def list_churches(
    group_id: Optional[int] = Query(None, alias="groupId"),
    zone_id: Optional[int] = Query(None, alias="zoneId"),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    query = db.query(Church).options(joinedload(Church.group).joinedload(Group.zone))
    if group_id is not None:
        query = query.filter(Church.group_id == group_id)
    if zone_id is not None:
        query = query.join(Group).filter(Group.zone_id == zone_id)
    churches = query.order_by(Church.name).all()

    tx_counts = dict(
        db.query(Transaction.church_id, func.count(Transaction.id)).group_by(Transaction.church_id).all()
    )
    payment_counts = dict(
        db.query(Payment.church_id, func.count(Payment.id)).group_by(Payment.church_id).all()
    )
    return [
        to_json(
            ChurchOut,
            church,
            group_name=church.group.name,
            zone_name=church.group.zone.name,
            transaction_count=tx_counts.get(church.id, 0),
            payment_count=payment_counts.get(church.id, 0),
        )
        for church in churches
    ]


@router.post("", status_code=201)
def create_church(
    payload: ChurchCreate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    _require_group(db, payload.group_id)
    name = payload.name
    if _name_taken(db, payload.group_id, name):
        raise BadRequest(DUPLICATE_MESSAGE)

    church = Church(name=name, group_id=payload.group_id)
    db.add(church)
    db.commit()
    db.refresh(church)
    logger.info("[churches] Created church %r in group %d", church.name, church.group_id)
    return to_json(ChurchOut, church)


@router.post("/bulk-upload")
async def bulk_upload_churches(
    file: Optional[UploadFile] = File(None),
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    text = await read_csv_upload(file)

    try:
        result = import_churches(db, text)
    except CsvFormatError as e:
        raise BadRequest(str(e))
    except NoValidChurchRows as e:
        raise BadRequest(str(e), details=e.errors)

    body = {
        "message": "Church bulk upload completed",
        "created": result.created,
        "skipped": result.skipped,
        "total": result.total,
    }
    if result.errors:
        body["errors"] = result.errors
    return body


@router.get("/{church_id}")
def get_church(church_id: int, db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    church = (
        db.query(Church)
        .options(joinedload(Church.group).joinedload(Group.zone))
        .filter(Church.id == church_id)
        .first()
    )
    if church is None:
        raise NotFound("Church not found")

    transactions, payments = _dependent_counts(db, church.id)
    return to_json(ChurchDetail, church, transaction_count=transactions, payment_count=payments)


@router.put("/{church_id}")
def update_church(
    church_id: int,
    payload: ChurchUpdate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    church = db.get(Church, church_id)
    if church is None:
        raise NotFound("Church not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "group_id" in changes:
        _require_group(db, changes["group_id"])

    if changes and _name_taken(
        db,
        changes.get("group_id", church.group_id),
        changes.get("name", church.name),
        exclude_id=church.id,
    ):
        raise BadRequest(DUPLICATE_MESSAGE)

    for field, value in changes.items():
        setattr(church, field, value)
    db.commit()
    db.refresh(church)
    return to_json(ChurchOut, church)


@router.delete("/{church_id}")
def delete_church(
    church_id: int,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    church = db.get(Church, church_id)
    if church is None:
        raise NotFound("Church not found")

    transactions, payments = _dependent_counts(db, church.id)
    if transactions or payments:
        raise BadRequest(
            f"Cannot delete church with {transactions} transactions and {payments} payments. "
            "Data integrity must be preserved."
        )

    db.delete(church)
    db.commit()
    logger.info("[churches] Deleted church %d by user %d", church_id, user.id)
    return {"message": "Church deleted successfully"}
