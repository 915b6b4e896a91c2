# reporthub/routes_groups.py
"""
Group CRUD. Writes need SUPER_ADMIN or ZONE_ADMIN.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from models import Church, Group, Zone
from reporthub.deps import SessionUser, admin_write, get_db, require_auth
from reporthub.errors import BadRequest, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import GroupCreate, GroupDetail, GroupOut, GroupUpdate, to_json

logger = get_logger(__name__)

router = APIRouter(prefix="/api/groups", tags=["groups"])

DUPLICATE_MESSAGE = "A group with this name already exists in this zone"


def _church_count(db: Session, group_id: int) -> int:
    return db.query(func.count(Church.id)).filter(Church.group_id == group_id).scalar() or 0


def _name_taken(db: Session, zone_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Group.id).filter(
        Group.zone_id == zone_id,
        func.lower(Group.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Group.id != exclude_id)
    return query.first() is not None


def _require_zone(db: Session, zone_id: int) -> Zone:
    zone = db.get(Zone, zone_id)
    if zone is None:
        raise NotFound("Zone not found")
    return zone


@router.get("")
def list_groups(
    zone_id: Optional[int] = Query(None, alias="zoneId"),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    query = db.query(Group).options(joinedload(Group.zone))
    if zone_id is not None:
        query = query.filter(Group.zone_id == zone_id)
    groups = query.order_by(Group.name).all()

    counts = dict(db.query(Church.group_id, func.count(Church.id)).group_by(Church.group_id).all())
    return [
        to_json(GroupOut, group, zone_name=group.zone.name, church_count=counts.get(group.id, 0))
        for group in groups
    ]


@router.post("", status_code=201)
def create_group(
    payload: GroupCreate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    _require_zone(db, payload.zone_id)
    name = payload.name
    if _name_taken(db, payload.zone_id, name):
        raise BadRequest(DUPLICATE_MESSAGE)

    group = Group(name=name, zone_id=payload.zone_id)
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info("[groups] Created group %r in zone %d", group.name, group.zone_id)
    return to_json(GroupOut, group, church_count=0)


@router.get("/{group_id}")
def get_group(group_id: int, db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    group = (
        db.query(Group)
        .options(joinedload(Group.zone), selectinload(Group.churches))
        .filter(Group.id == group_id)
        .first()
    )
    if group is None:
        raise NotFound("Group not found")
    return to_json(GroupDetail, group)


@router.put("/{group_id}")
def update_group(
    group_id: int,
    payload: GroupUpdate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    group = db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "zone_id" in changes:
        _require_zone(db, changes["zone_id"])

    target_zone = changes.get("zone_id", group.zone_id)
    target_name = changes.get("name", group.name)
    if ("name" in changes or "zone_id" in changes) and _name_taken(
        db, target_zone, target_name, exclude_id=group.id
    ):
        raise BadRequest(DUPLICATE_MESSAGE)

    for field, value in changes.items():
        setattr(group, field, value)
    db.commit()
    db.refresh(group)
    return to_json(GroupOut, group, church_count=_church_count(db, group.id))


@router.delete("/{group_id}")
def delete_group(
    group_id: int,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    group = db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")

    churches = _church_count(db, group.id)
    if churches:
        raise BadRequest(
            f"Cannot delete group with {churches} churches. Move or delete churches first."
        )

    db.delete(group)
    db.commit()
    logger.info("[groups] Deleted group %d by user %d", group_id, user.id)
    return {"message": "Group deleted successfully"}
