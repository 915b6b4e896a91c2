"""
Seed a fresh database with the starting organisation data:

- zone UK ZONE 1 with its groups and churches
- department UK ZONE 1 DSP and its product catalogue
- a super admin and a zone admin account

Every insert is an upsert on the natural key, so running it twice is harmless.

Run with:  python -m reporthub.seed
"""

from __future__ import annotations

import os
from decimal import Decimal

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from db import Base, SessionLocal, engine
from models import Church, Department, Group, ProductType, User, Zone
from reporthub.logging_config import configure_logging, get_logger

logger = get_logger(__name__)

ZONE_NAME = "UK ZONE 1"
DEPARTMENT_NAME = "UK ZONE 1 DSP"

GROUPS = ["London West", "London East", "Midlands", "Scotland"]

# church -> group
CHURCHES = {
    "LW NORTHWEST LONDON": "London West",
    "LW THAMESMEAD": "London West",
    "LW BOREHAMWOOD": "London West",
    "LW JERSEY": "London West",
    "LW BELVEDERE": "London East",
    "LW BEXLEYHEATH OUTREACH": "London East",
    "LW BIRMINGHAM": "Midlands",
    "LW BARNSLEY": "Midlands",
    "LW BIRKENHEAD": "Midlands",
    "LW BIRMINGHAM CENTRAL": "Midlands",
    "LW BRADFORD CITY": "Midlands",
    "LW BRADFORD": "Midlands",
    "LW BRIDGEND": "Midlands",
    "LW CARDIFF": "Midlands",
    "LW CHESTER": "Midlands",
    "LW DERBY": "Midlands",
    "LW DARLINGTON": "Midlands",
    "LW DONCASTER": "Midlands",
    "LW GATESHEAD": "Midlands",
    "LW HINCKLEY": "Midlands",
    "LW ABERDEEN": "Scotland",
    "LW BATHGATE": "Scotland",
    "LW DRUMCHAPEL": "Scotland",
    "LW DUNDEE": "Scotland",
    "LW EDINBURGH": "Scotland",
    "LW GLASGOW": "Scotland",
    "LW GLASGOW CENTRAL": "Scotland",
}

PRODUCTS = {
    "ROR English Quantity": Decimal("2.50"),
    "Teevo": Decimal("1.50"),
    "Early Reader": Decimal("1.00"),
    "KROR": Decimal("1.00"),
    "French": Decimal("2.50"),
    "Polish": Decimal("2.50"),
}


def _get_or_add(session: Session, model, defaults: dict | None = None, **key):
    existing = session.query(model).filter_by(**key).first()
    if existing:
        return existing, False
    obj = model(**key, **(defaults or {}))
    session.add(obj)
    session.flush()
    return obj, True


def seed(session: Session, admin_password: str) -> dict:
    """Insert whatever is missing. Returns how many rows of each kind were created."""
    created = {"groups": 0, "churches": 0, "products": 0, "users": 0}

    zone, _ = _get_or_add(session, Zone, {"currency": "GBP"}, name=ZONE_NAME)

    groups = {}
    for name in GROUPS:
        groups[name], new = _get_or_add(session, Group, zone_id=zone.id, name=name)
        created["groups"] += new

    for church_name, group_name in CHURCHES.items():
        _, new = _get_or_add(session, Church, group_id=groups[group_name].id, name=church_name)
        created["churches"] += new

    department, _ = _get_or_add(
        session,
        Department,
        {"description": "Rhapsody of Realities Distribution"},
        name=DEPARTMENT_NAME,
    )

    for product_name, price in PRODUCTS.items():
        _, new = _get_or_add(
            session,
            ProductType,
            {"unit_price": price, "currency": "GBP"},
            department_id=department.id,
            name=product_name,
        )
        created["products"] += new

    password_hash = generate_password_hash(admin_password)
    accounts = [
        ("admin@nexusreporthub.com", "System Administrator", "SUPER_ADMIN", None),
        ("zone@nexusreporthub.com", "Zone Administrator", "ZONE_ADMIN", zone.id),
    ]
    for email, name, role, zone_id in accounts:
        _, new = _get_or_add(
            session,
            User,
            {
                "name": name,
                "password_hash": password_hash,
                "role": role,
                "department_id": department.id,
                "zone_id": zone_id,
            },
            email=email,
        )
        created["users"] += new

    session.commit()
    return created


def main() -> None:
    configure_logging()
    Base.metadata.create_all(bind=engine)

    password = os.getenv("REPORTHUB_SEED_ADMIN_PASSWORD", "Admin123!")

    session = SessionLocal()
    try:
        created = seed(session, password)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info(
        "[seed] Done: %d groups, %d churches, %d products, %d users created",
        created["groups"],
        created["churches"],
        created["products"],
        created["users"],
    )


if __name__ == "__main__":
    main()
