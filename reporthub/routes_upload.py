# reporthub/routes_upload.py
"""
CSV upload endpoints:

- POST /api/upload                 import a TRANSACTION or ORDER csv
- GET  /api/upload/history         most recent uploads first
- POST /api/upload/{id}/rollback   undo everything one upload created
- GET  /api/template/download      sample transaction csv
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from werkzeug.utils import secure_filename

from reporthub.deps import SessionUser, admin_write, get_db, read_csv_upload, require_admin
from reporthub.errors import BadRequest, NotFound
from reporthub.logging_config import get_logger
from reporthub.schemas import UploadHistoryOut, UploadResult, UploadRunSummary, to_json
from reporthub.services.csv_import import TRANSACTION_TEMPLATE_CSV, CsvFormatError
from reporthub.services.upload_pipeline import (
    RollbackRefused,
    list_upload_history,
    normalize_upload_type,
    rollback_upload,
    run_upload,
)

logger = get_logger(__name__)

router = APIRouter(tags=["upload"])


@router.post("/api/upload")
async def upload_csv(
    file: Optional[UploadFile] = File(None),
    upload_type: Optional[str] = Form(None, alias="uploadType"),
    order_period: Optional[str] = Form(None, alias="orderPeriod"),
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    text = await read_csv_upload(file)
    kind = normalize_upload_type(upload_type)
    file_name = secure_filename(file.filename) or "upload.csv"

    try:
        upload, summary = run_upload(
            db,
            text=text,
            file_name=file_name,
            upload_type=kind,
            user_id=user.id,
            department_id=user.department_id,
            order_period=order_period,
        )
    except CsvFormatError as e:
        raise BadRequest(str(e))
    except LookupError as e:
        raise NotFound(str(e))
    except ValueError as e:
        raise BadRequest(str(e))

    result = UploadResult(
        message="Upload processed",
        status=summary.status,
        records_processed=summary.records_processed,
        total_rows=summary.total_rows,
        errors=summary.errors,
        upload_id=upload.id,
        upload_type=upload.upload_type,
        summary=UploadRunSummary(
            campaign_categories_created=summary.campaign_categories_created,
            orders_created=summary.orders_created,
            order_line_items_created=summary.order_line_items_created,
        ),
    )
    return result.model_dump(mode="json", by_alias=True)


@router.get("/api/upload/history")
def upload_history(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin),
):
    return [to_json(UploadHistoryOut, upload) for upload in list_upload_history(db, limit)]


@router.post("/api/upload/{upload_id}/rollback")
def rollback(
    upload_id: int,
    user: SessionUser = Depends(admin_write),
    db: Session = Depends(get_db),
):
    try:
        deleted = rollback_upload(db, upload_id)
    except RollbackRefused as e:
        raise BadRequest(str(e))
    except LookupError as e:
        raise NotFound(str(e))

    return {
        "message": "Upload rolled back successfully",
        "deletedTransactions": deleted["deleted_transactions"],
        "deletedPayments": deleted["deleted_payments"],
    }


@router.get("/api/template/download")
def download_template():
    return Response(
        content=TRANSACTION_TEMPLATE_CSV,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=transaction_template.csv"},
    )
