# reporthub/routes_departments.py
"""
Department CRUD. Writes: super admin only.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from models import Department, Payment, ProductType, Transaction, User
from reporthub.deps import SessionUser, get_db, require_auth, super_admin_write
from reporthub.errors import BadRequest, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import (
    DepartmentCreate,
    DepartmentDetail,
    DepartmentOut,
    DepartmentUpdate,
    to_json,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/departments", tags=["departments"])

DUPLICATE_MESSAGE = "A department with this name already exists"


def _count(db: Session, column, department_id: int) -> int:
    return db.query(func.count()).select_from(column.class_).filter(column == department_id).scalar() or 0


def _dependents(db: Session, department_id: int) -> dict:
    return {
        "products": _count(db, ProductType.department_id, department_id),
        "transactions": _count(db, Transaction.department_id, department_id),
        "payments": _count(db, Payment.department_id, department_id),
        "users": _count(db, User.department_id, department_id),
    }


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    query = db.query(Department.id).filter(func.lower(Department.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    return query.first() is not None


@router.get("")
def list_departments(db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    departments = db.query(Department).order_by(Department.name).all()
    return [
        to_json(DepartmentOut, department, counts=_dependents(db, department.id))
        for department in departments
    ]


@router.post("", status_code=201)
def create_department(
    payload: DepartmentCreate,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    name = payload.name
    if _name_taken(db, name):
        raise BadRequest(DUPLICATE_MESSAGE)

    department = Department(name=name, description=payload.description)
    db.add(department)
    db.commit()
    db.refresh(department)
    logger.info("[departments] Created department %r", department.name)
    return to_json(DepartmentOut, department)


@router.get("/{department_id}")
def get_department(
    department_id: int,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    department = (
        db.query(Department)
        .options(selectinload(Department.product_types))
        .filter(Department.id == department_id)
        .first()
    )
    if department is None:
        raise NotFound("Department not found")
    return to_json(DepartmentDetail, department, counts=_dependents(db, department.id))


@router.put("/{department_id}")
def update_department(
    department_id: int,
    payload: DepartmentUpdate,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    department = db.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        if _name_taken(db, changes["name"], exclude_id=department.id):
            raise BadRequest(DUPLICATE_MESSAGE)
    elif "name" in changes:
        del changes["name"]

    for field, value in changes.items():
        setattr(department, field, value)
    db.commit()
    db.refresh(department)
    return to_json(DepartmentOut, department)


@router.delete("/{department_id}")
def delete_department(
    department_id: int,
    user: SessionUser = Depends(super_admin_write),
    db: Session = Depends(get_db),
):
    department = db.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")

    counts = _dependents(db, department.id)
    if any(counts.values()):
        raise BadRequest(
            f"Cannot delete department with {counts['products']} products, "
            f"{counts['transactions']} transactions, {counts['payments']} payments "
            f"and {counts['users']} users. Remove or reassign them first."
        )

    db.delete(department)
    db.commit()
    logger.info("[departments] Deleted department %d by user %d", department_id, user.id)
    return {"message": "Department deleted successfully"}
