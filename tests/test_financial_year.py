from datetime import date, datetime, timedelta, timezone

import pytest

from models import FinancialYear, Payment
from reporthub.services.financial_year import (
    confirmation_matches,
    get_bounds_for_label,
    get_financial_year_bounds,
    get_next_financial_year_bounds,
    get_or_create_current,
    get_reset_confirmation_text,
    is_valid_fy_label,
    reset_financial_year,
    resolve_financial_year,
    set_current_financial_year,
    start_next_financial_year,
)


# ---- Bounds ----

def test_december_first_starts_next_year():
    bounds = get_financial_year_bounds(date(2024, 12, 1))
    assert bounds.label == "FY2025"
    assert bounds.start_date == datetime(2024, 12, 1, 0, 0, 0)
    assert bounds.end_date == datetime(2025, 11, 30, 23, 59, 59, 999000)


def test_november_thirtieth_is_last_day():
    assert get_financial_year_bounds(date(2025, 11, 30)).label == "FY2025"
    assert get_financial_year_bounds(date(2025, 12, 1)).label == "FY2026"


def test_aware_datetime_is_converted_to_utc():
    # 00:30 on Dec 1 in UTC+2 is still Nov 30 in UTC
    local = datetime(2025, 12, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))
    assert get_financial_year_bounds(local).label == "FY2025"


@pytest.mark.parametrize("offset", range(0, 800, 37))
def test_bounds_always_contain_the_date(offset):
    day = datetime(2023, 1, 1) + timedelta(days=offset, hours=13)
    bounds = get_financial_year_bounds(day)
    assert bounds.start_date <= day <= bounds.end_date
    assert (bounds.start_date.month, bounds.start_date.day) == (12, 1)
    assert (bounds.end_date.month, bounds.end_date.day) == (11, 30)


def test_next_year_follows_end_date():
    current = get_bounds_for_label("FY2025")
    nxt = get_next_financial_year_bounds(current.end_date)
    assert nxt.label == "FY2026"
    assert nxt.start_date == datetime(2025, 12, 1)


# ---- Labels ----

@pytest.mark.parametrize("label", ["FY2025", "FY1999", "FY0000"])
def test_valid_labels(label):
    assert is_valid_fy_label(label)


@pytest.mark.parametrize("label", ["fy2025", "FY 2025", "FY-2025", "FY25", "FY20255", "", None, "2025"])
def test_invalid_labels(label):
    assert not is_valid_fy_label(label)


def test_bounds_for_bad_label_raise():
    with pytest.raises(ValueError):
        get_bounds_for_label("fy2025")


def test_reset_confirmation_text():
    assert get_reset_confirmation_text("FY2025") == "RESET FY2025"


# ---- Persisted current year ----

def test_get_or_create_current_creates_once(db):
    fy = get_or_create_current(db, now=datetime(2025, 3, 10))
    assert fy.label == "FY2025"
    assert fy.is_current

    again = get_or_create_current(db, now=datetime(2030, 3, 10))
    assert again.id == fy.id
    assert db.query(FinancialYear).count() == 1


def test_only_one_current_year(db):
    first = get_or_create_current(db, now=datetime(2025, 3, 10))
    second = start_next_financial_year(db)

    assert second.label == "FY2026"
    current = db.query(FinancialYear).filter(FinancialYear.is_current.is_(True)).all()
    assert [fy.id for fy in current] == [second.id]

    set_current_financial_year(db, db.get(FinancialYear, first.id))
    current = db.query(FinancialYear).filter(FinancialYear.is_current.is_(True)).all()
    assert [fy.label for fy in current] == ["FY2025"]


def test_start_next_without_current_year(db):
    with pytest.raises(LookupError):
        start_next_financial_year(db)


def test_resolve_prefers_stored_current_year(db):
    get_or_create_current(db, now=datetime(2022, 6, 1))
    assert resolve_financial_year(db, now=datetime(2025, 6, 1)).label == "FY2022"


def test_resolve_without_rows_uses_now(db):
    assert resolve_financial_year(db, now=datetime(2025, 12, 2)).label == "FY2026"


def test_resolve_with_label(db):
    bounds = resolve_financial_year(db, "FY2024")
    assert bounds.start_date == datetime(2023, 12, 1)
    with pytest.raises(ValueError):
        resolve_financial_year(db, "2024")


# ---- Reset ----

def test_reset_deletes_only_records_inside_the_year(db, org):
    fy = get_or_create_current(db, now=datetime(2025, 3, 10))
    inside = Payment(
        church_id=org["birmingham"],
        department_id=org["department"],
        payment_date=datetime(2025, 1, 5),
        amount=10,
        for_purpose="PRINTING",
    )
    outside = Payment(
        church_id=org["birmingham"],
        department_id=org["department"],
        payment_date=datetime(2025, 12, 5),
        amount=20,
        for_purpose="PRINTING",
    )
    db.add_all([inside, outside])
    db.commit()

    counts = reset_financial_year(db, fy)

    assert counts["payments_deleted"] == 1
    assert db.query(Payment).count() == 1


def test_confirmation_must_match_exactly(db):
    fy = get_or_create_current(db, now=datetime(2025, 3, 10))
    assert confirmation_matches(fy, "RESET FY2025")
    assert not confirmation_matches(fy, "reset FY2025")
    assert not confirmation_matches(fy, None)
