# reporthub/routes_products.py
"""
Product catalogue CRUD. Name clashes and deleting a product that is already
on orders answer 409.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models import Department, ProductType, TransactionLineItem
from reporthub.deps import SessionUser, admin_write, get_db, require_auth
from reporthub.errors import Conflict, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import ProductCreate, ProductOut, ProductUpdate, to_json
from reporthub.services.import_helpers import to_money

logger = get_logger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

DUPLICATE_MESSAGE = "Product with this name already exists in the department"


def _line_item_count(db: Session, product_id: int) -> int:
    return (
        db.query(func.count(TransactionLineItem.id))
        .filter(TransactionLineItem.product_type_id == product_id)
        .scalar()
        or 0
    )


def _require_department(db: Session, department_id: int) -> Department:
    department = db.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")
    return department


def _name_taken(db: Session, department_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(ProductType.id).filter(
        ProductType.department_id == department_id,
        func.lower(ProductType.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(ProductType.id != exclude_id)
    return query.first() is not None


def _product_json(db: Session, product: ProductType) -> dict:
    return to_json(
        ProductOut,
        product,
        department_name=product.department.name if product.department else None,
        order_count=_line_item_count(db, product.id),
    )


@router.get("")
def list_products(
    department_id: Optional[int] = Query(None, alias="departmentId"),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_auth),
):
    query = db.query(ProductType).options(joinedload(ProductType.department))
    if department_id is not None:
        query = query.filter(ProductType.department_id == department_id)
    return [_product_json(db, product) for product in query.order_by(ProductType.name).all()]


@router.post("", status_code=201)
def create_product(
    payload: ProductCreate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    _require_department(db, payload.department_id)
    name = payload.name
    if _name_taken(db, payload.department_id, name):
        raise Conflict(DUPLICATE_MESSAGE)

    product = ProductType(
        name=name,
        department_id=payload.department_id,
        unit_price=to_money(payload.unit_price),
        currency=payload.currency.upper(),
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("[products] Created product %r at %s", product.name, product.unit_price)
    return _product_json(db, product)


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db), user: SessionUser = Depends(require_auth)):
    product = db.get(ProductType, product_id)
    if product is None:
        raise NotFound("Product not found")
    return _product_json(db, product)


@router.put("/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    product = db.get(ProductType, product_id)
    if product is None:
        raise NotFound("Product not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "department_id" in changes:
        _require_department(db, changes["department_id"])
    if "unit_price" in changes:
        changes["unit_price"] = to_money(changes["unit_price"])
    if "currency" in changes:
        changes["currency"] = changes["currency"].upper()

    if ("name" in changes or "department_id" in changes) and _name_taken(
        db,
        changes.get("department_id", product.department_id),
        changes.get("name", product.name),
        exclude_id=product.id,
    ):
        raise Conflict(DUPLICATE_MESSAGE)

    # Existing orders keep their price until the price sync job runs
    for field, value in changes.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return _product_json(db, product)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    product = db.get(ProductType, product_id)
    if product is None:
        raise NotFound("Product not found")

    orders = _line_item_count(db, product.id)
    if orders:
        raise Conflict(
            "Cannot delete product with existing orders",
            details=f"This product has {orders} associated order(s) and cannot be deleted.",
        )

    db.delete(product)
    db.commit()
    logger.info("[products] Deleted product %d by user %d", product_id, user.id)
    return {"message": "Product deleted successfully"}
