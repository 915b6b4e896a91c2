# reporthub/deps.py
# Role: Shared application-level dependencies.
#       Provides the Jinja2 templates loader, the standard SQLAlchemy database
#       session dependency, the caller's identity (forwarded by the auth proxy)
#       and the role / same-origin guards used by every API route.

"""
Shared dependencies for ReportHub routes.

Identity is not issued here. The auth proxy in front of the app forwards the
signed-in user as request headers:

    X-User-Id, X-User-Role, X-User-Email, X-User-Department-Id

Mutating routes check the request origin before anything else, then the
caller's role.
"""

import os
from dataclasses import dataclass
from typing import Callable, Generator, Iterable, Optional
from urllib.parse import urlsplit

from fastapi import Request, UploadFile
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from db import SessionLocal
from models import ADMIN_ROLES, USER_ROLES
from reporthub.config import MAX_UPLOAD_BYTES
from reporthub.errors import BadRequest, Forbidden, Unauthorized
from reporthub.logging_config import get_logger

logger = get_logger(__name__)

# -------------------------------------------------------------------
# Templates
# -------------------------------------------------------------------

# Jinja2 templates loader (used by all HTML-rendering routes)
templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "templates"))

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# Identity
# -------------------------------------------------------------------

@dataclass(frozen=True)
class SessionUser:
    id: int
    role: str
    email: Optional[str] = None
    department_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_super_admin(self) -> bool:
        return self.role == "SUPER_ADMIN"


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        return None


def get_session_user(request: Request) -> SessionUser:
    """The signed-in user, or 401 when the proxy did not forward one."""
    user_id = _optional_int(request.headers.get("x-user-id"))
    role = (request.headers.get("x-user-role") or "").strip().upper()

    if user_id is None or role not in USER_ROLES:
        raise Unauthorized()

    return SessionUser(
        id=user_id,
        role=role,
        email=request.headers.get("x-user-email") or None,
        department_id=_optional_int(request.headers.get("x-user-department-id")),
    )


# -------------------------------------------------------------------
# CSRF (same-origin check)
# -------------------------------------------------------------------

def _host_of(url: str) -> str:
    return urlsplit(url).netloc.lower()


def is_same_origin(request: Request) -> bool:
    """
    Origin and Referer (whichever are present) must name this host.
    Fails closed when both headers are missing.
    """
    origin = request.headers.get("origin")
    referer = request.headers.get("referer")
    host = (request.headers.get("host") or "").lower()

    if not origin and not referer:
        return False
    if origin and _host_of(origin) != host:
        return False
    if referer and _host_of(referer) != host:
        return False
    return True


def require_csrf(request: Request) -> None:
    if not is_same_origin(request):
        logger.warning(
            "[csrf] Rejected %s %s (origin=%r referer=%r host=%r)",
            request.method,
            request.url.path,
            request.headers.get("origin"),
            request.headers.get("referer"),
            request.headers.get("host"),
        )
        raise Forbidden("Invalid request origin")


# -------------------------------------------------------------------
# Role guards
# -------------------------------------------------------------------

def _guard(roles: Optional[Iterable[str]], csrf: bool) -> Callable[[Request], SessionUser]:
    allowed = tuple(roles) if roles else None

    def dependency(request: Request) -> SessionUser:
        if csrf:
            require_csrf(request)
        user = get_session_user(request)
        if allowed is not None and user.role not in allowed:
            raise Forbidden()
        return user

    return dependency


# Reads
require_auth = _guard(None, csrf=False)
require_admin = _guard(ADMIN_ROLES, csrf=False)
require_super_admin = _guard(("SUPER_ADMIN",), csrf=False)

# Writes: same-origin check first, then the role
auth_write = _guard(None, csrf=True)
admin_write = _guard(ADMIN_ROLES, csrf=True)
super_admin_write = _guard(("SUPER_ADMIN",), csrf=True)


# -------------------------------------------------------------------
# CSV file uploads
# -------------------------------------------------------------------

async def read_csv_upload(file: Optional[UploadFile]) -> str:
    """Size / extension checks shared by the CSV upload endpoints, then decode."""
    if file is None or not file.filename:
        raise BadRequest("No file provided")

    if not file.filename.lower().endswith(".csv"):
        raise BadRequest("Only CSV files are allowed")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise BadRequest(f"File size exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")

    # utf-8-sig drops the BOM spreadsheet exports like to add
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")
