# reporthub/routes_root.py
"""
Landing redirect and health check for ReportHub.
"""
from fastapi import APIRouter
from fastapi.responses import RedirectResponse

router = APIRouter()


@router.get("/")
def read_root():
    """There is no separate home page; the financial-year dashboard is the start screen."""
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/health")
def health():
    return {"status": "ok"}
