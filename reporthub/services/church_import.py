# reporthub/services/church_import.py
#
# Church bulk upload
# CSV with "Church Name, Group Name" columns -> Church rows.
# Unknown groups and duplicates are reported per row and skipped.

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from models import Church, Group
from reporthub.logging_config import get_logger
from reporthub.services.csv_import import clean_string, read_csv_rows, resolve_header

logger = get_logger(__name__)

CHURCH_NAME_KEYS = ["CHURCH NAME", "CHURCH", "NAME"]
GROUP_NAME_KEYS = ["GROUP NAME", "GROUP"]


class NoValidChurchRows(ValueError):
    def __init__(self, errors: List[str]):
        super().__init__("No valid church rows found in CSV")
        self.errors = errors


@dataclass
class ChurchRow:
    name: str
    group_name: str


@dataclass
class ChurchImportResult:
    created: int = 0
    skipped: int = 0
    total: int = 0
    errors: List[str] = field(default_factory=list)


def extract_church_row(row: Dict[str, str]) -> Optional[ChurchRow]:
    name = resolve_header(row, CHURCH_NAME_KEYS)
    group_name = resolve_header(row, GROUP_NAME_KEYS)
    if not name or not group_name:
        return None
    return ChurchRow(name=name, group_name=group_name)


def import_churches(db: Session, text: str) -> ChurchImportResult:
    """
    Create churches from CSV text.

    Raises CsvFormatError for an unreadable/empty file and NoValidChurchRows
    when not a single row carries both a church and a group name.
    """
    raw_rows = read_csv_rows(text)

    result = ChurchImportResult()
    # (CSV row number, row)
    church_rows: List[Tuple[int, ChurchRow]] = []
    for index, raw in enumerate(raw_rows):
        row = extract_church_row(raw)
        if row:
            church_rows.append((index + 2, row))
        else:
            result.errors.append(
                f"Row {index + 2}: Missing required fields (Church Name or Group Name)"
            )

    if not church_rows:
        raise NoValidChurchRows(result.errors)

    result.total = len(church_rows)

    group_ids = {name.lower(): group_id for group_id, name in db.query(Group.id, Group.name)}
    existing = {
        (clean_string(name).lower(), group_id)
        for name, group_id in db.query(Church.name, Church.group_id)
    }

    for row_number, row in church_rows:
        group_id = group_ids.get(row.group_name.lower())
        if group_id is None:
            result.errors.append(f'Row {row_number}: Group "{row.group_name}" not found')
            result.skipped += 1
            continue

        key = (row.name.lower(), group_id)
        if key in existing:
            result.errors.append(
                f'Row {row_number}: Church "{row.name}" already exists in group "{row.group_name}"'
            )
            result.skipped += 1
            continue

        try:
            db.add(Church(name=row.name, group_id=group_id))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning("[church-upload] Row %d failed: %r", row_number, e, exc_info=True)
            result.errors.append(f"Row {row_number}: {e}")
            result.skipped += 1
            continue

        existing.add(key)
        result.created += 1

    logger.info(
        "[church-upload] %d created, %d skipped of %d rows",
        result.created,
        result.skipped,
        result.total,
    )
    return result
