# reporthub/services/upload_pipeline.py
#
# CSV Upload Pipeline
# Converts an uploaded CSV (bank-transaction rows or monthly-order rows) into
# payments / orders. Rows are validated and committed one at a time; a bad row
# is reported and skipped, never fatal to the batch.

"""
Flow for one upload:

1. read + validate the CSV (csv_import.read_csv_rows)
2. create an UploadHistory row with status PROCESSING
3. turn each row into a RowResult (ok, or a RowError with its row number)
4. reduce the results into an UploadSummary and store its status,
   record count and error log on the UploadHistory row

Row numbers in error messages are spreadsheet rows: index + 2 (1-based,
plus the header line).
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models import (
    PAYMENT_METHODS,
    CampaignCategory,
    Church,
    Department,
    Group,
    Payment,
    ProductType,
    Transaction,
    TransactionLineItem,
    UploadHistory,
    TRANSACTION_TYPE_PURCHASE,
    Zone,
    utc_now,
)
from reporthub.config import DEFAULT_CURRENCY, DEFAULT_ORDER_UNIT_PRICE
from reporthub.logging_config import get_logger
from reporthub.services.csv_import import (
    CsvFormatError,
    OrderRow,
    TransactionRow,
    clean_string,
    extract_order_row,
    extract_transaction_row,
    is_print_type,
    normalize_category_name,
    parse_amount,
    parse_upload_date,
    read_csv_rows,
)
from reporthub.services.import_helpers import build_line_item, parse_order_period, to_money

logger = get_logger(__name__)

UPLOAD_TYPE_TRANSACTION = "TRANSACTION"
UPLOAD_TYPE_ORDER = "ORDER"

# A free-text type must appear more than this many times to become a category
CATEGORY_MIN_OCCURRENCES = 2

ROW_NUMBER_OFFSET = 2


def number_rows(
    raw_rows: List[Dict[str, str]], extract: Callable[[Dict[str, str]], Optional[Any]]
) -> List[Tuple[int, Any]]:
    """Extract rows, keeping each one's CSV row number even when rows before it are dropped."""
    numbered = []
    for index, raw in enumerate(raw_rows):
        row = extract(raw)
        if row:
            numbered.append((index + ROW_NUMBER_OFFSET, row))
    return numbered


# -------------------------------------------------------------------
# Row results and summary
# -------------------------------------------------------------------

@dataclass(frozen=True)
class RowError:
    row_number: int
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass
class RowResult:
    """Outcome of one CSV row: either an error, or what it created."""

    row_number: int
    error: Optional[RowError] = None
    orders_created: int = 0
    line_items_created: int = 0
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped

    @classmethod
    def fail(cls, row_number: int, message: str) -> "RowResult":
        return cls(row_number=row_number, error=RowError(row_number, message))

    @classmethod
    def skip(cls, row_number: int) -> "RowResult":
        return cls(row_number=row_number, skipped=True)


@dataclass
class UploadSummary:
    total_rows: int = 0
    records_processed: int = 0
    errors: List[str] = field(default_factory=list)
    campaign_categories_created: List[str] = field(default_factory=list)
    orders_created: int = 0
    order_line_items_created: int = 0

    @property
    def status(self) -> str:
        if not self.errors:
            return "SUCCESS"
        if self.records_processed > 0:
            return "PARTIAL"
        return "FAILED"

    @property
    def error_log(self) -> Optional[str]:
        return "\n".join(self.errors) if self.errors else None

    @classmethod
    def from_results(
        cls,
        results: List[RowResult],
        total_rows: int,
        general_errors: Optional[List[str]] = None,
        campaign_categories_created: Optional[List[str]] = None,
    ) -> "UploadSummary":
        summary = cls(
            total_rows=total_rows,
            errors=list(general_errors or []),
            campaign_categories_created=list(campaign_categories_created or []),
        )
        for result in results:
            if result.error is not None:
                summary.errors.append(str(result.error))
            elif result.ok:
                summary.records_processed += 1
                summary.orders_created += result.orders_created
                summary.order_line_items_created += result.line_items_created
        return summary


# -------------------------------------------------------------------
# Lookups / auto-creation
# -------------------------------------------------------------------

def resolve_department(db: Session, department_id: Optional[int]) -> Department:
    """The uploader's department, else the first department. LookupError if none."""
    department = None
    if department_id:
        department = db.get(Department, department_id)
    if department is None:
        department = db.query(Department).order_by(Department.id).first()
    if department is None:
        raise LookupError(
            "No department found. Please ensure at least one department exists in the system."
        )
    return department


def find_church(db: Session, name: str) -> Optional[Church]:
    """Case-insensitive exact name match, with group and zone loaded."""
    return (
        db.query(Church)
        .options(joinedload(Church.group).joinedload(Group.zone))
        .filter(func.lower(Church.name) == name.strip().lower())
        .order_by(Church.id)
        .first()
    )


def church_currency(church: Church) -> str:
    if church.group and church.group.zone and church.group.zone.currency:
        return church.group.zone.currency
    return DEFAULT_CURRENCY


def count_types(rows: List[TransactionRow]) -> "OrderedDict[str, Tuple[str, int]]":
    """normalized type -> (first raw spelling, occurrences)"""
    counts: "OrderedDict[str, Tuple[str, int]]" = OrderedDict()
    for row in rows:
        if not row.type:
            continue
        key = normalize_category_name(row.type)
        raw, seen = counts.get(key, (row.type, 0))
        counts[key] = (raw, seen + 1)
    return counts


def ensure_campaign_categories(
    db: Session,
    department_id: int,
    counts: Dict[str, Tuple[str, int]],
) -> Tuple[Dict[str, CampaignCategory], List[str]]:
    """
    Create a CampaignCategory for every non-print type seen more than twice.

    Returns (normalized name -> category, names of categories created now).
    """
    existing = db.query(CampaignCategory).filter(CampaignCategory.department_id == department_id)
    category_map = {category.normalized_name: category for category in existing}

    created: List[str] = []
    for normalized, (raw, seen) in counts.items():
        if seen <= CATEGORY_MIN_OCCURRENCES or not raw or is_print_type(raw):
            continue
        if normalized in category_map:
            continue

        category = CampaignCategory(
            name=raw,
            normalized_name=normalized,
            department_id=department_id,
            auto_generated=True,
        )
        db.add(category)
        category_map[normalized] = category
        created.append(raw)

    if created:
        db.commit()
        logger.info("[upload] Created campaign categories: %s", ", ".join(created))

    return category_map, created


def ensure_product_type(db: Session, department_id: int, name: str) -> ProductType:
    existing = (
        db.query(ProductType)
        .filter(
            ProductType.department_id == department_id,
            func.lower(ProductType.name) == name.lower(),
        )
        .first()
    )
    if existing:
        return existing

    product = ProductType(
        name=name,
        department_id=department_id,
        unit_price=to_money(DEFAULT_ORDER_UNIT_PRICE),
        currency=DEFAULT_CURRENCY,
    )
    db.add(product)
    db.commit()
    logger.info("[upload] Created product type %r for department %s", name, department_id)
    return product


# -------------------------------------------------------------------
# Transaction (payment) uploads
# -------------------------------------------------------------------

def _payment_method(raw: str) -> str:
    candidate = clean_string(raw).upper().replace(" ", "_")
    return candidate if candidate in PAYMENT_METHODS else "BANK_TRANSFER"


def _process_transaction_row(
    db: Session,
    row: TransactionRow,
    row_number: int,
    department: Department,
    upload: UploadHistory,
    category_map: Dict[str, CampaignCategory],
) -> RowResult:
    if not row.church:
        return RowResult.fail(row_number, "Missing church name")

    if not row.type:
        return RowResult.fail(row_number, "Missing category/type")

    amount = parse_amount(row.amount)
    if amount is None or amount <= 0:
        return RowResult.fail(row_number, f'Invalid amount "{row.amount}"')

    payment_date = parse_upload_date(row.date)
    if payment_date is None:
        return RowResult.fail(row_number, f'Invalid date "{row.date}"')

    church = find_church(db, row.church)
    if church is None:
        return RowResult.fail(row_number, f'Church "{row.church}" not found')

    is_print = is_print_type(row.type)
    category = None if is_print else category_map.get(normalize_category_name(row.type))

    db.add(
        Payment(
            church_id=church.id,
            department_id=department.id,
            uploaded_by=upload.uploaded_by,
            upload_history_id=upload.id,
            payment_date=payment_date,
            amount=to_money(amount),
            currency=church_currency(church),
            payment_method=_payment_method(row.payment_method),
            for_purpose="PRINTING" if is_print else "SPONSORSHIP",
            reference_number=row.reference or None,
            campaign_category_id=category.id if category else None,
            campaign_label=row.type,
            notes=f"Group: {row.group}" if row.group else None,
        )
    )
    db.commit()
    return RowResult(row_number=row_number)


def process_transaction_rows(
    db: Session,
    raw_rows: List[Dict[str, str]],
    department: Department,
    upload: UploadHistory,
) -> UploadSummary:
    rows = number_rows(raw_rows, extract_transaction_row)

    category_map, created = ensure_campaign_categories(
        db, department.id, count_types([row for _, row in rows])
    )

    results: List[RowResult] = []
    for row_number, row in rows:
        try:
            result = _process_transaction_row(db, row, row_number, department, upload, category_map)
        except Exception as e:
            db.rollback()
            logger.warning("[upload] Transaction row %d failed: %r", row_number, e, exc_info=True)
            result = RowResult.fail(row_number, str(e) or "Unknown error")
        results.append(result)

    return UploadSummary.from_results(
        results,
        total_rows=len(raw_rows),
        campaign_categories_created=created,
    )


# -------------------------------------------------------------------
# Order uploads
# -------------------------------------------------------------------

def _summary_row_prefixes(db: Session) -> List[str]:
    """Zone names: order sheets end with '<ZONE NAME> TOTAL'-style lines."""
    return [name.upper() for (name,) in db.query(Zone.name).all()]


def _is_summary_row(chapter: str, prefixes: List[str]) -> bool:
    upper = chapter.upper()
    if upper in ("CHAPTER", "TOTAL", "GRAND TOTAL"):
        return True
    return any(upper.startswith(prefix) for prefix in prefixes)


def _order_notes(row: OrderRow) -> Optional[str]:
    if row.total_with_delivery:
        return f"Total with delivery: {row.total_with_delivery}"
    if row.total:
        return f"Total: {row.total}"
    return None


def _process_order_row(
    db: Session,
    row: OrderRow,
    row_number: int,
    department: Department,
    upload: UploadHistory,
    order_date: datetime,
    product_cache: Dict[str, ProductType],
) -> RowResult:
    if not row.chapter:
        return RowResult.fail(row_number, "Missing church name")

    if not row.quantities:
        return RowResult.fail(row_number, f'No product quantities for church "{row.chapter}"')

    church = find_church(db, row.chapter)
    if church is None:
        return RowResult.fail(row_number, f'Church "{row.chapter}" not found')

    line_items: List[TransactionLineItem] = []
    for item in row.quantities:
        key = item.column_name.lower()
        if key not in product_cache:
            product_cache[key] = ensure_product_type(db, department.id, item.column_name)
        line_items.append(build_line_item(product_cache[key], item.quantity))

    db.add(
        Transaction(
            church_id=church.id,
            department_id=department.id,
            uploaded_by=upload.uploaded_by,
            upload_history_id=upload.id,
            transaction_date=order_date,
            transaction_type=TRANSACTION_TYPE_PURCHASE,
            currency=church_currency(church),
            notes=_order_notes(row),
            line_items=line_items,
        )
    )
    db.commit()
    return RowResult(row_number=row_number, orders_created=1, line_items_created=len(line_items))


def process_order_rows(
    db: Session,
    raw_rows: List[Dict[str, str]],
    department: Department,
    upload: UploadHistory,
    order_date: datetime,
) -> UploadSummary:
    rows = number_rows(raw_rows, extract_order_row)
    prefixes = _summary_row_prefixes(db)
    product_cache: Dict[str, ProductType] = {}

    results: List[RowResult] = []
    for row_number, row in rows:
        if row.chapter and _is_summary_row(row.chapter, prefixes):
            results.append(RowResult.skip(row_number))
            continue

        try:
            result = _process_order_row(
                db, row, row_number, department, upload, order_date, product_cache
            )
        except Exception as e:
            db.rollback()
            logger.warning("[upload] Order row %d failed: %r", row_number, e, exc_info=True)
            result = RowResult.fail(row_number, str(e) or "Unknown error")
        results.append(result)

    return UploadSummary.from_results(results, total_rows=len(raw_rows))


# -------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------

def normalize_upload_type(value: Optional[str]) -> str:
    return UPLOAD_TYPE_ORDER if clean_string(value).upper() == UPLOAD_TYPE_ORDER else UPLOAD_TYPE_TRANSACTION


def run_upload(
    db: Session,
    *,
    text: str,
    file_name: str,
    upload_type: str,
    user_id: Optional[int],
    department_id: Optional[int],
    order_period: Optional[str] = None,
) -> Tuple[UploadHistory, UploadSummary]:
    """
    Import one CSV file.

    Raises:
        CsvFormatError: the text is not a readable CSV (nothing is recorded)
        ValueError: an ORDER upload without a valid YYYY-MM order period
        LookupError: no department exists
    Unexpected errors mark the upload FAILED and are re-raised.
    """
    order_date = None
    if upload_type == UPLOAD_TYPE_ORDER:
        order_date = parse_order_period(order_period)
        if order_date is None:
            raise ValueError("Order uploads require a valid orderPeriod (YYYY-MM) value")

    raw_rows = read_csv_rows(text)
    if not raw_rows:
        raise CsvFormatError("CSV file is empty")

    department = resolve_department(db, department_id)

    upload = UploadHistory(
        file_name=file_name,
        uploaded_by=user_id,
        status="PROCESSING",
        upload_type=upload_type,
    )
    db.add(upload)
    db.commit()
    db.refresh(upload)

    logger.info(
        "[upload] #%d %s upload of %r: %d rows", upload.id, upload_type, file_name, len(raw_rows)
    )

    try:
        if upload_type == UPLOAD_TYPE_ORDER:
            summary = process_order_rows(db, raw_rows, department, upload, order_date)
        else:
            summary = process_transaction_rows(db, raw_rows, department, upload)
    except Exception as e:
        db.rollback()
        logger.exception("[upload] #%d aborted", upload.id)
        upload.status = "FAILED"
        upload.error_log = f"Upload aborted: {e!r}"
        db.commit()
        raise

    upload.status = summary.status
    upload.records_processed = summary.records_processed
    upload.error_log = summary.error_log
    db.commit()
    db.refresh(upload)

    logger.info(
        "[upload] #%d finished: %s, %d records, %d errors",
        upload.id,
        summary.status,
        summary.records_processed,
        len(summary.errors),
    )
    return upload, summary


# -------------------------------------------------------------------
# History / rollback
# -------------------------------------------------------------------

def list_upload_history(db: Session, limit: int = 50) -> List[UploadHistory]:
    return (
        db.query(UploadHistory)
        .order_by(UploadHistory.uploaded_at.desc(), UploadHistory.id.desc())
        .limit(limit)
        .all()
    )


class RollbackRefused(ValueError):
    """The upload exists but cannot be rolled back in its current state."""


def rollback_upload(db: Session, upload_id: int) -> dict:
    """
    Delete every order and payment created by an upload and mark it ROLLED_BACK.

    Runs as one database transaction.
    """
    upload = db.get(UploadHistory, upload_id)
    if upload is None:
        raise LookupError("Upload not found")

    if upload.status == "ROLLED_BACK":
        raise RollbackRefused("Upload has already been rolled back")
    if upload.status == "PROCESSING":
        raise RollbackRefused("Cannot rollback an upload that is still processing")

    tx_ids = db.query(Transaction.id).filter(Transaction.upload_history_id == upload_id)
    transaction_count = tx_ids.count()
    payment_count = db.query(Payment).filter(Payment.upload_history_id == upload_id).count()

    if transaction_count == 0 and payment_count == 0:
        raise RollbackRefused("No records to rollback for this upload")

    try:
        db.query(TransactionLineItem).filter(
            TransactionLineItem.transaction_id.in_(tx_ids.scalar_subquery())
        ).delete(synchronize_session=False)
        db.query(Transaction).filter(Transaction.upload_history_id == upload_id).delete(
            synchronize_session=False
        )
        db.query(Payment).filter(Payment.upload_history_id == upload_id).delete(
            synchronize_session=False
        )
        upload.status = "ROLLED_BACK"
        upload.rolled_back_at = utc_now()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.warning(
        "[upload] #%d rolled back: %d transactions, %d payments deleted",
        upload_id,
        transaction_count,
        payment_count,
    )
    return {"deleted_transactions": transaction_count, "deleted_payments": payment_count}
