# reporthub/routes_zones.py
"""
Zone CRUD. Reads: any signed-in user. Writes: super admin only.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from models import Group, Zone
from reporthub.deps import SessionUser, get_db, require_auth, super_admin_write
from reporthub.errors import BadRequest, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import ZoneCreate, ZoneDetail, ZoneOut, ZoneUpdate, to_json

logger = get_logger(__name__)

router = APIRouter(prefix="/api/zones", tags=["zones"])


def _get_zone(db: Session, zone_id: int) -> Zone:
    zone = db.get(Zone, zone_id)
    if zone is None:
        raise NotFound("Zone not found")
    return zone


def _group_count(db: Session, zone_id: int) -> int:
    return db.query(func.count(Group.id)).filter(Group.zone_id == zone_id).scalar() or 0


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    query = db.query(Zone.id).filter(func.lower(Zone.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Zone.id != exclude_id)
    return query.first() is not None


@router.get("")
def list_zones(db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    counts = dict(db.query(Group.zone_id, func.count(Group.id)).group_by(Group.zone_id).all())
    zones = db.query(Zone).order_by(Zone.name).all()
    return [to_json(ZoneOut, zone, group_count=counts.get(zone.id, 0)) for zone in zones]


@router.post("", status_code=201)
def create_zone(
    payload: ZoneCreate,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    name = payload.name
    if _name_taken(db, name):
        raise BadRequest("A zone with this name already exists")

    zone = Zone(name=name, currency=payload.currency.upper())
    db.add(zone)
    db.commit()
    db.refresh(zone)
    logger.info("[zones] Created zone %r (id=%d) by user %d", zone.name, zone.id, user.id)
    return to_json(ZoneOut, zone, group_count=0)


@router.get("/{zone_id}")
def get_zone(zone_id: int, db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    zone = (
        db.query(Zone)
        .options(selectinload(Zone.groups))
        .filter(Zone.id == zone_id)
        .first()
    )
    if zone is None:
        raise NotFound("Zone not found")
    return to_json(ZoneDetail, zone)


@router.put("/{zone_id}")
def update_zone(
    zone_id: int,
    payload: ZoneUpdate,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    zone = _get_zone(db, zone_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in changes:
        if _name_taken(db, changes["name"], exclude_id=zone.id):
            raise BadRequest("A zone with this name already exists")
    if "currency" in changes:
        changes["currency"] = changes["currency"].upper()

    for field, value in changes.items():
        setattr(zone, field, value)
    db.commit()
    db.refresh(zone)
    return to_json(ZoneOut, zone, group_count=_group_count(db, zone.id))


@router.delete("/{zone_id}")
def delete_zone(
    zone_id: int,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    zone = _get_zone(db, zone_id)

    groups = _group_count(db, zone.id)
    if groups:
        raise BadRequest(
            f"Cannot delete zone with {groups} groups. Please remove all groups first."
        )

    db.delete(zone)
    db.commit()
    logger.info("[zones] Deleted zone %d by user %d", zone_id, user.id)
    return {"message": "Zone deleted successfully"}
