# reporthub/config.py
# Role: Runtime settings read from the environment (and an optional .env file).

"""
Application settings.

Values are read once at import time. A `.env` file in the working directory
is loaded first; real environment variables always win over it.
"""

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# Project root (one level above this package)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


# -------------------------------------------------------------------
# Database
# -------------------------------------------------------------------

DEFAULT_DB_PATH = os.path.join(BASE_DIR, "database", "reporthub.db")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")

# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------

LOG_LEVEL = os.getenv("REPORTHUB_LOG_LEVEL", "INFO").upper()

# -------------------------------------------------------------------
# Uploads / orders
# -------------------------------------------------------------------

MAX_UPLOAD_BYTES = _env_int("REPORTHUB_MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
DEFAULT_CURRENCY = os.getenv("REPORTHUB_DEFAULT_CURRENCY", "GBP")
DEFAULT_ORDER_UNIT_PRICE = Decimal(os.getenv("REPORTHUB_DEFAULT_ORDER_UNIT_PRICE", "3.00"))

# How far back (in months) the price sync job may reach.
PRICE_SYNC_MAX_MONTHS = _env_int("REPORTHUB_PRICE_SYNC_MAX_MONTHS", 24)
