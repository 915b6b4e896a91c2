# reporthub/routes_auth.py
"""
Accounts are provisioned by super admins (see routes_users); there is no
self-service sign-up.
"""

from fastapi import APIRouter

from reporthub.errors import Forbidden

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register")
def register():
    raise Forbidden("Public registration is disabled. Please contact an administrator.")
