# reporthub/services/csv_import.py
#
# CSV parsing for uploads.
# Turns raw CSV text into typed row records. No database access here:
# entity lookups and record creation live in upload_pipeline.py.

import io
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import pandas as pd


class CsvFormatError(ValueError):
    """The file could not be read as a CSV with a header row."""


# Spreadsheet serial day 0 (Excel / Google Sheets)
EXCEL_EPOCH = datetime(1899, 12, 30)

PRINT_KEYWORD = "print"

TRANSACTION_HEADER_MAP: Dict[str, List[str]] = {
    "date": ["DATE", "TRANSACTION DATE"],
    "amount": ["AMOUNT", "VALUE", "PAYMENT AMOUNT"],
    "church": ["CHURCH", "CHURCH NAME", "CHAPTER"],
    "group": ["GROUP", "GROUP NAME"],
    "type": ["TYPE", "CATEGORY", "PRODUCT TYPE"],
    "payment_method": ["PAYMENT METHOD", "METHOD"],
    "reference": ["REFERENCE", "REFERENCE NUMBER"],
}

# Order sheet columns that never hold product quantities
ORDER_RESERVED_COLUMNS = frozenset(
    {
        "CHAPTER",
        "TOTAL COST",
        "TOTAL COST INCLUDING DELIVERY",
        "TOTAL",
        "DELIVERY",
        "NOTES",
        "COMMENTS",
    }
)

_PRODUCT_SUFFIX_RE = re.compile(r"\s+(QUANTITY|QTY)$", re.IGNORECASE)
_SERIAL_RE = re.compile(r"^\d+(\.\d+)?$")
_DMY_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_CATEGORY_SEP_RE = re.compile(r"[^a-z0-9]+")

TRANSACTION_TEMPLATE_CSV = (
    "Church Name,Date,Product Type,Quantity,Unit Price,Payment Amount,Payment Method,Reference\n"
    "LW BIRMINGHAM,2025-01-15,ROR English Quantity,2500,2.50,6250.00,BANK_TRANSFER,REF12345\n"
    "LW GLASGOW,2025-01-15,Teevo,150,1.50,225.00,CASH,\n"
    "LW EDINBURGH,2025-01-16,Early Reader,500,1.00,500.00,BANK_TRANSFER,REF12346\n"
)


# ---- Row types ----

@dataclass
class TransactionRow:
    date: str
    amount: str
    church: str
    type: str
    group: str = ""
    payment_method: str = ""
    reference: str = ""


@dataclass(frozen=True)
class ProductQuantity:
    column_name: str
    quantity: int


@dataclass
class OrderRow:
    chapter: str
    quantities: List[ProductQuantity] = field(default_factory=list)
    total: str = ""
    total_with_delivery: str = ""


# ---- Value helpers ----

def clean_string(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def parse_amount(raw) -> Optional[Decimal]:
    """
    Parse money like "£1,234.50" or "1234.5" into a Decimal.
    Returns None when nothing numeric is left.
    """
    cleaned = _NON_NUMERIC_RE.sub("", clean_string(raw))
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def parse_quantity(raw) -> Optional[int]:
    """Positive whole number, else None. Thousands separators are allowed."""
    cleaned = clean_string(raw).replace(",", "")
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer() or number <= 0:
        return None
    return int(number)


def parse_excel_serial_date(value: float) -> Optional[datetime]:
    if not math.isfinite(value):
        return None
    try:
        return EXCEL_EPOCH + timedelta(days=value)
    except OverflowError:
        return None


def parse_upload_date(value) -> Optional[datetime]:
    """
    Parse the date cell of an upload row.

    Accepts, in order:
    - spreadsheet serial numbers ("45672", epoch 1899-12-30)
    - DD/MM/YYYY
    - YYYY-MM-DD
    - anything else pandas can read (ISO timestamps, "15 Jan 2025", ...)

    Returns a naive UTC datetime, or None when the value is unparseable.
    """
    trimmed = clean_string(value)
    if not trimmed:
        return None

    if _SERIAL_RE.match(trimmed):
        return parse_excel_serial_date(float(trimmed))

    for pattern, order in ((_DMY_RE, "dmy"), (_YMD_RE, "ymd")):
        match = pattern.match(trimmed)
        if not match:
            continue
        a, b, c = (int(part) for part in match.groups())
        day, month, year = (a, b, c) if order == "dmy" else (c, b, a)
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    parsed = pd.to_datetime(trimmed, errors="coerce", utc=True)
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime().astimezone(timezone.utc).replace(tzinfo=None)


def normalize_category_name(value) -> str:
    """'Reachout World Pay!' -> 'reachout-world-pay'"""
    return _CATEGORY_SEP_RE.sub("-", clean_string(value).lower()).strip("-")


def is_print_type(type_label) -> bool:
    return PRINT_KEYWORD in normalize_category_name(type_label)


# ---- CSV reading ----

def read_csv_rows(text: str) -> List[Dict[str, str]]:
    """
    Read CSV text into a list of {UPPERCASE HEADER: trimmed value} dicts.

    Every value is kept as a string. Rows where every cell is empty are dropped.
    Raises CsvFormatError when the text is not a usable CSV.
    """
    if not text or not text.strip():
        raise CsvFormatError("CSV file is empty")

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError as exc:
        raise CsvFormatError("CSV file is empty") from exc
    except pd.errors.ParserError as exc:
        raise CsvFormatError(f"CSV parsing failed: {exc}") from exc

    # normalize headers
    df.columns = df.columns.str.strip().str.upper()

    df = df.apply(lambda col: col.str.strip())
    df = df[(df != "").any(axis=1)]

    return df.to_dict(orient="records")


def resolve_header(row: Dict[str, str], keys: List[str]) -> str:
    """First non-empty value among the header aliases in `keys`."""
    for key in keys:
        value = clean_string(row.get(key))
        if value:
            return value
    return ""


def extract_transaction_row(row: Dict[str, str]) -> Optional[TransactionRow]:
    values = {name: resolve_header(row, keys) for name, keys in TRANSACTION_HEADER_MAP.items()}

    if not any(values[name] for name in ("date", "amount", "church", "type")):
        return None

    return TransactionRow(**values)


def product_name_from_column(header: str) -> str:
    return _PRODUCT_SUFFIX_RE.sub("", header).strip()


def extract_product_quantities(row: Dict[str, str]) -> List[ProductQuantity]:
    """
    Every non-reserved column whose value is a positive whole number becomes a
    ProductQuantity named after the column (minus a QUANTITY/QTY suffix).
    """
    quantities: List[ProductQuantity] = []
    for header, value in row.items():
        if header.upper() in ORDER_RESERVED_COLUMNS:
            continue
        quantity = parse_quantity(value)
        if quantity is None:
            continue
        quantities.append(ProductQuantity(product_name_from_column(header), quantity))
    return quantities


def extract_order_row(row: Dict[str, str]) -> Optional[OrderRow]:
    chapter = clean_string(row.get("CHAPTER"))
    quantities = extract_product_quantities(row)

    if not chapter and not quantities:
        return None

    return OrderRow(
        chapter=chapter,
        quantities=quantities,
        total=clean_string(row.get("TOTAL COST")),
        total_with_delivery=clean_string(row.get("TOTAL COST INCLUDING DELIVERY")),
    )
