# main.py
# Role: Application entry point for Nexus ReportHub.
#       Configures logging, creates database tables, registers the error
#       handlers and all route modules.

"""
Main FastAPI app for Nexus ReportHub.

Here we only:
- configure logging
- create DB tables
- create the FastAPI app and its exception handlers
- include route modules
"""

from fastapi import FastAPI

from db import Base, engine
import models  # noqa: F401  (registers the ORM tables on Base.metadata)
from reporthub.errors import register_exception_handlers
from reporthub.logging_config import configure_logging, get_logger
from reporthub.routes_admin import router as admin_router
from reporthub.routes_auth import router as auth_router
from reporthub.routes_churches import router as churches_router
from reporthub.routes_dashboard import router as dashboard_router
from reporthub.routes_departments import router as departments_router
from reporthub.routes_financial_years import router as financial_years_router
from reporthub.routes_groups import router as groups_router
from reporthub.routes_products import router as products_router
from reporthub.routes_reports import router as reports_router
from reporthub.routes_root import router as root_router
from reporthub.routes_transactions import router as transactions_router
from reporthub.routes_upload import router as upload_router
from reporthub.routes_users import router as users_router
from reporthub.routes_zones import router as zones_router

configure_logging()
logger = get_logger("main")

# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

# Create database tables (only if they don't exist yet).
# Schema migrations are out of scope; this is fine for SQLite and first deploys.
Base.metadata.create_all(bind=engine)

# FastAPI application instance
app = FastAPI(title="Nexus ReportHub")

# {"error": "..."} bodies for every failure
register_exception_handlers(app)

# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Root / landing routes
app.include_router(root_router)

# Dashboard (HTML page + JSON figures)
app.include_router(dashboard_router)

# Organisation hierarchy and catalogue
app.include_router(zones_router)
app.include_router(groups_router)
app.include_router(churches_router)
app.include_router(departments_router)
app.include_router(products_router)
app.include_router(users_router)

# Orders, uploads and reports
app.include_router(transactions_router)
app.include_router(upload_router)
app.include_router(reports_router)
app.include_router(financial_years_router)
app.include_router(admin_router)

# Sign-up is closed
app.include_router(auth_router)

logger.info("[startup] Nexus ReportHub ready")
