# reporthub/routes_users.py
"""
User administration (super admin). A user may read their own record.
Passwords are stored as werkzeug hashes and never returned.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from werkzeug.security import generate_password_hash

from models import User
from reporthub.deps import SessionUser, get_db, require_auth, require_super_admin, super_admin_write
from reporthub.errors import BadRequest, Forbidden, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import UserCreate, UserOut, UserUpdate, to_json

logger = get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    query = db.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _user_json(user: User) -> dict:
    return to_json(
        UserOut,
        user,
        zone_name=user.zone.name if user.zone else None,
        group_name=user.group.name if user.group else None,
        church_name=user.church.name if user.church else None,
        department_name=user.department.name if user.department else None,
    )


@router.get("")
def list_users(db: Session = Depends(get_db), user: SessionUser = Depends(require_super_admin)):
    users = (
        db.query(User)
        .options(
            joinedload(User.zone),
            joinedload(User.group),
            joinedload(User.church),
            joinedload(User.department),
        )
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [_user_json(u) for u in users]


@router.post("", status_code=201)
def create_user(
    payload: UserCreate,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    email = payload.email.lower()
    if _email_taken(db, email):
        raise BadRequest("Email already in use")

    new_user = User(
        email=email,
        name=payload.name,
        password_hash=generate_password_hash(payload.password),
        role=payload.role,
        zone_id=payload.zone_id,
        group_id=payload.group_id,
        church_id=payload.church_id,
        department_id=payload.department_id,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("[users] Created %s user %s by user %d", new_user.role, new_user.email, user.id)
    return _user_json(new_user)


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    if not user.is_super_admin and user.id != user_id:
        raise Forbidden()

    found = db.get(User, user_id)
    if found is None:
        raise NotFound("User not found")
    return _user_json(found)


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    found = db.get(User, user_id)
    if found is None:
        raise NotFound("User not found")

    changes = payload.model_dump(exclude_unset=True)

    password = changes.pop("password", None)
    if password:
        found.password_hash = generate_password_hash(password)

    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        if _email_taken(db, changes["email"], exclude_id=found.id):
            raise BadRequest("Email already in use")

    # email / name / role cannot be cleared; scope ids can
    for field in ("email", "name", "role"):
        if field in changes and changes[field] is None:
            del changes[field]

    for field, value in changes.items():
        setattr(found, field, value)
    db.commit()
    db.refresh(found)
    return _user_json(found)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    if user.id == user_id:
        raise BadRequest("Cannot delete your own account")

    found = db.get(User, user_id)
    if found is None:
        raise NotFound("User not found")

    db.delete(found)
    db.commit()
    logger.info("[users] Deleted user %d by user %d", user_id, user.id)
    return {"message": "User deleted successfully"}
