"""
Shared fixtures.

The app runs against an in-memory SQLite database (one shared connection),
so DATABASE_URL must be set before anything imports db.py.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from db import Base, SessionLocal, engine
from main import app
from models import Church, Department, Group, ProductType, Zone

# TestClient sends Host: testserver
SAME_ORIGIN = {"Origin": "http://testserver"}


def auth_headers(role="SUPER_ADMIN", user_id=1, department_id=None, same_origin=True):
    headers = {
        "X-User-Id": str(user_id),
        "X-User-Role": role,
        "X-User-Email": f"user{user_id}@example.org",
    }
    if department_id is not None:
        headers["X-User-Department-Id"] = str(department_id)
    if same_origin:
        headers.update(SAME_ORIGIN)
    return headers


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def super_admin():
    return auth_headers("SUPER_ADMIN", user_id=1)


@pytest.fixture
def zone_admin():
    return auth_headers("ZONE_ADMIN", user_id=2)


@pytest.fixture
def church_user():
    return auth_headers("CHURCH_USER", user_id=3)


@pytest.fixture
def org(db):
    """One zone / group / two churches / department / two products."""
    zone = Zone(name="UK ZONE 1", currency="GBP")
    db.add(zone)
    db.flush()

    group = Group(name="Midlands", zone_id=zone.id)
    db.add(group)
    db.flush()

    birmingham = Church(name="LW BIRMINGHAM", group_id=group.id)
    glasgow = Church(name="LW GLASGOW", group_id=group.id)
    department = Department(name="UK ZONE 1 DSP", description="Rhapsody distribution")
    db.add_all([birmingham, glasgow, department])
    db.flush()

    ror = ProductType(
        name="ROR English", department_id=department.id, unit_price=Decimal("2.50"), currency="GBP"
    )
    teevo = ProductType(
        name="Teevo", department_id=department.id, unit_price=Decimal("1.50"), currency="GBP"
    )
    db.add_all([ror, teevo])
    db.commit()

    return {
        "zone": zone.id,
        "group": group.id,
        "birmingham": birmingham.id,
        "glasgow": glasgow.id,
        "department": department.id,
        "ror": ror.id,
        "teevo": teevo.id,
    }
