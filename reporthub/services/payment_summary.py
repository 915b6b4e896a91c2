# reporthub/services/payment_summary.py
#
# Payment Summary Generator
# Month-by-month payment report for one zone or group over a calendar year.
# Payments are loaded into a DataFrame, tagged with a report column by
# np.select, then pivoted into a fixed 12-month table.

from typing import List, Optional

import numpy as np
import pandas as pd
from sqlalchemy.orm import Session

from models import CampaignCategory, Church, Group, Payment, Zone
from reporthub.logging_config import get_logger
from reporthub.services.csv_import import normalize_category_name

logger = get_logger(__name__)

REPORT_LEVELS = ("ZONE", "GROUP")
TIME_PERIODS = ("MONTHLY", "QUARTERLY", "YEARLY")

MONTH_NAMES = [
    "JANUARY",
    "FEBRUARY",
    "MARCH",
    "APRIL",
    "MAY",
    "JUNE",
    "JULY",
    "AUGUST",
    "SEPTEMBER",
    "OCTOBER",
    "NOVEMBER",
    "DECEMBER",
]

# Report columns, in display order
BUCKETS = [
    "print_income_pounds",
    "print_income_espees",
    "reachout_world_pay_pounds",
    "zone_pound_payment",
    "zone_naira_payment",
    "zone_espees_payment",
    "group_links_pounds",
    "group_links_espees",
]

POUND_BUCKETS = [
    "print_income_pounds",
    "reachout_world_pay_pounds",
    "zone_pound_payment",
    "group_links_pounds",
]
NAIRA_BUCKETS = ["zone_naira_payment"]
ESPEES_BUCKETS = ["print_income_espees", "zone_espees_payment", "group_links_espees"]

REACHOUT_CATEGORY = normalize_category_name("REACHOUT WORLD PAY PAYMENT")

# Sentinel for payments that do not land in any report column
_UNREPORTED = ""


# ---- Entity lookup ----

def _entity_churches(db: Session, report_level: str, entity_id: int):
    """Returns (entity name, church ids). LookupError for an unknown entity."""
    if report_level == "ZONE":
        zone = db.get(Zone, entity_id)
        if zone is None:
            raise LookupError("Zone not found")
        church_ids = [
            church_id
            for (church_id,) in db.query(Church.id).join(Group).filter(Group.zone_id == zone.id)
        ]
        return zone.name, church_ids

    if report_level == "GROUP":
        group = db.get(Group, entity_id)
        if group is None:
            raise LookupError("Group not found")
        church_ids = [church_id for (church_id,) in db.query(Church.id).filter(Church.group_id == group.id)]
        return group.name, church_ids

    raise ValueError("Invalid reportLevel. Must be ZONE or GROUP")


def _load_payments(db: Session, church_ids: List[int], year: int) -> pd.DataFrame:
    columns = ["payment_date", "amount", "currency", "for_purpose", "campaign_category_id", "campaign_label"]
    if not church_ids:
        return pd.DataFrame(columns=columns)

    rows = (
        db.query(
            Payment.payment_date,
            Payment.amount,
            Payment.currency,
            Payment.for_purpose,
            Payment.campaign_category_id,
            Payment.campaign_label,
        )
        .filter(
            Payment.church_id.in_(church_ids),
            Payment.payment_date >= pd.Timestamp(year=year, month=1, day=1).to_pydatetime(),
            Payment.payment_date < pd.Timestamp(year=year + 1, month=1, day=1).to_pydatetime(),
        )
        .all()
    )
    return pd.DataFrame([tuple(row) for row in rows], columns=columns)


# ---- Classification ----

def classify_payments(df: pd.DataFrame, reachout_category_ids: Optional[List[int]] = None) -> pd.Series:
    """
    Report column for each payment row, or "" when it is not reported.

    Printing payments split by currency (GBP / ESPEES). Sponsorships go to
    Reachout World Pay (GBP only), then group links (GBP / ESPEES), then the
    zone columns (GBP / NGN / ESPEES).
    """
    if df.empty:
        return pd.Series([], dtype=object)

    label = df["campaign_label"].fillna("").astype(str).str.lower()
    currency = df["currency"].fillna("").astype(str).str.upper()
    printing = df["for_purpose"] == "PRINTING"
    sponsorship = df["for_purpose"] == "SPONSORSHIP"

    reachout = sponsorship & (
        df["campaign_category_id"].isin(reachout_category_ids or [])
        | label.str.contains("reachout world pay", regex=False)
    )
    group_links = (
        sponsorship
        & ~reachout
        & (label.str.contains("group link", regex=False) | label.str.contains("online campaign", regex=False))
    )
    zone = sponsorship & ~reachout & ~group_links

    gbp = currency == "GBP"
    espees = currency == "ESPEES"
    ngn = currency == "NGN"

    conditions = [
        printing & gbp,
        printing & espees,
        reachout & gbp,
        group_links & gbp,
        group_links & espees,
        zone & gbp,
        zone & ngn,
        zone & espees,
    ]
    choices = [
        "print_income_pounds",
        "print_income_espees",
        "reachout_world_pay_pounds",
        "group_links_pounds",
        "group_links_espees",
        "zone_pound_payment",
        "zone_naira_payment",
        "zone_espees_payment",
    ]
    return pd.Series(np.select(conditions, choices, default=_UNREPORTED), index=df.index)


def _monthly_table(df: pd.DataFrame, reachout_category_ids: List[int]) -> pd.DataFrame:
    """12 rows (months 1..12) x BUCKETS, zero-filled."""
    empty = pd.DataFrame(0.0, index=pd.RangeIndex(1, 13, name="month"), columns=BUCKETS)
    if df.empty:
        return empty

    df = df.copy()
    df["bucket"] = classify_payments(df, reachout_category_ids)
    df = df[df["bucket"] != _UNREPORTED]
    if df.empty:
        return empty

    df["month"] = pd.to_datetime(df["payment_date"]).dt.month
    df["amount"] = df["amount"].astype(float)

    table = df.pivot_table(index="month", columns="bucket", values="amount", aggfunc="sum", fill_value=0.0)
    return table.reindex(index=empty.index, columns=BUCKETS, fill_value=0.0).astype(float)


def _row_values(series: pd.Series) -> dict:
    return {bucket: round(float(series[bucket]), 2) for bucket in BUCKETS}


# ---- Public API ----

def generate_payment_summary(db: Session, report_level: str, entity_id: int, year: int) -> dict:
    """
    Build the monthly payment summary for a zone or group.

    Returns {"title", "year", "months": [...12 rows], "totals", "grand_total"}.
    Raises LookupError for an unknown zone/group.
    """
    entity_name, church_ids = _entity_churches(db, report_level, entity_id)

    reachout_ids = [
        category_id
        for (category_id,) in db.query(CampaignCategory.id).filter(
            CampaignCategory.normalized_name == REACHOUT_CATEGORY
        )
    ]

    payments = _load_payments(db, church_ids, year)
    table = _monthly_table(payments, reachout_ids)

    months = [
        {"month": month, "month_name": MONTH_NAMES[month - 1], **_row_values(table.loc[month])}
        for month in table.index
    ]

    totals_series = table.sum()
    totals = _row_values(totals_series)
    grand_total = {
        "pounds": round(float(totals_series[POUND_BUCKETS].sum()), 2),
        "naira": round(float(totals_series[NAIRA_BUCKETS].sum()), 2),
        "espees": round(float(totals_series[ESPEES_BUCKETS].sum()), 2),
    }

    logger.info(
        "[payment-summary] %s %s (%d churches), %d: %d payments",
        report_level,
        entity_name,
        len(church_ids),
        year,
        len(payments),
    )
    return {
        "title": f"{entity_name} PAYMENT SUMMARY - {year}",
        "year": year,
        "months": months,
        "totals": totals,
        "grand_total": grand_total,
    }


def aggregate_quarterly(summary: dict) -> dict:
    """Collapse the 12 monthly rows into Q1..Q4."""
    monthly = pd.DataFrame(summary["months"])
    quarters = []
    for q in range(4):
        chunk = monthly.iloc[q * 3 : q * 3 + 3]
        names = "-".join(name[:3] for name in chunk["month_name"])
        quarters.append(
            {
                "month": q + 1,
                "month_name": f"Q{q + 1} ({names})",
                **{bucket: round(float(chunk[bucket].sum()), 2) for bucket in BUCKETS},
            }
        )
    return {**summary, "months": quarters}


def aggregate_yearly(summary: dict) -> dict:
    """A single row labelled with the year, holding the totals."""
    row = {"month": 1, "month_name": str(summary["year"]), **summary["totals"]}
    return {**summary, "months": [row]}


def build_report(db: Session, report_level: str, entity_id: int, year: int, time_period: str = "MONTHLY") -> dict:
    if time_period not in TIME_PERIODS:
        raise ValueError("Invalid timePeriod. Must be MONTHLY, QUARTERLY, or YEARLY")

    summary = generate_payment_summary(db, report_level, entity_id, year)
    if time_period == "QUARTERLY":
        return aggregate_quarterly(summary)
    if time_period == "YEARLY":
        return aggregate_yearly(summary)
    return summary
