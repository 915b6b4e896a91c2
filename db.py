# db.py
# Role: Database bootstrap for Nexus ReportHub.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists for the default SQLite URL.

"""
Database setup for ReportHub.

- Uses DATABASE_URL from reporthub.config (SQLite file by default)
- Ensures the 'database' folder exists when the default SQLite file is used
- In-memory SQLite URLs share one connection (StaticPool) so every session
  sees the same tables
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from reporthub.config import DATABASE_URL, DEFAULT_DB_PATH


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    # For SQLite, we need check_same_thread=False for FastAPI (threaded request handling)
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


if DATABASE_URL == f"sqlite:///{DEFAULT_DB_PATH}":
    os.makedirs(os.path.dirname(DEFAULT_DB_PATH), exist_ok=True)

engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

# Standard session factory used via dependency injection (see reporthub/deps.py:get_db)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
