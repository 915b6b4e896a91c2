from datetime import date, datetime
from decimal import Decimal

import pytest

from models import ProductType, Transaction, TransactionLineItem, utc_now
from reporthub.services.import_helpers import build_line_item
from reporthub.services.price_sync import parse_sync_period, sync_prices

TODAY = date(2025, 6, 15)


def _order(db, org, when, unit_price, quantity=10):
    product = db.get(ProductType, org["ror"])
    tx = Transaction(
        church_id=org["birmingham"],
        department_id=org["department"],
        transaction_date=when,
        line_items=[build_line_item(product, quantity, unit_price=unit_price)],
    )
    db.add(tx)
    db.commit()
    return tx.id


class TestParseSyncPeriod:
    def test_valid(self):
        period = parse_sync_period("2025-01", today=TODAY)
        assert (period.year, period.month) == (2025, 1)

    def test_missing(self):
        with pytest.raises(ValueError, match="orderPeriod is required"):
            parse_sync_period("", today=TODAY)

    @pytest.mark.parametrize("value", ["2025-1", "2025/01", "2025-13", "Jan 2025"])
    def test_bad_format(self, value):
        with pytest.raises(ValueError, match="Invalid orderPeriod format"):
            parse_sync_period(value, today=TODAY)

    def test_too_old(self):
        with pytest.raises(ValueError, match="too far in the past"):
            parse_sync_period("2023-05", today=TODAY)
        assert parse_sync_period("2023-06", today=TODAY).month == 6


class TestSyncPrices:
    def test_updates_mismatched_items_only_in_period(self, db, org):
        january = _order(db, org, datetime(2025, 1, 20), Decimal("2.00"))
        february = _order(db, org, datetime(2025, 2, 1), Decimal("2.00"))

        result = sync_prices(db, "2025-01", today=TODAY)

        assert result["lineItemsUpdated"] == 1
        assert result["transactionsAffected"] == 1
        assert result["totalTransactionsInPeriod"] == 1
        assert result["message"] == "Prices synced successfully for January 2025"

        db.expire_all()
        jan_item = db.query(TransactionLineItem).filter_by(transaction_id=january).one()
        feb_item = db.query(TransactionLineItem).filter_by(transaction_id=february).one()
        assert jan_item.unit_price == Decimal("2.50")
        assert jan_item.total_amount == Decimal("25.00")
        assert feb_item.unit_price == Decimal("2.00")

    def test_second_run_changes_nothing(self, db, org):
        _order(db, org, datetime(2025, 1, 20), Decimal("2.00"))
        sync_prices(db, "2025-01", today=TODAY)

        result = sync_prices(db, "2025-01", today=TODAY)

        assert result["lineItemsUpdated"] == 0
        assert result["transactionsAffected"] == 0
        assert result["message"] == "All prices for January 2025 already match the product catalogue"

    def test_empty_month(self, db, org):
        result = sync_prices(db, "2025-03", today=TODAY)
        assert result["totalTransactionsInPeriod"] == 0
        assert result["lineItemsUpdated"] == 0


class TestSyncPricesApi:
    def test_sync_endpoint(self, client, super_admin, db, org):
        now = utc_now()
        _order(db, org, datetime(now.year, now.month, 1), Decimal("9.99"))

        resp = client.post(
            "/api/admin/sync-prices",
            json={"orderPeriod": f"{now.year:04d}-{now.month:02d}"},
            headers=super_admin,
        )

        assert resp.status_code == 200
        assert resp.json()["lineItemsUpdated"] == 1

    def test_bad_period(self, client, super_admin):
        resp = client.post("/api/admin/sync-prices", json={"orderPeriod": "12-2025"}, headers=super_admin)
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid orderPeriod format")

    def test_zone_admin_allowed_church_user_not(self, client, zone_admin, church_user):
        body = {"orderPeriod": "2025-13"}
        assert client.post("/api/admin/sync-prices", json=body, headers=zone_admin).status_code == 400
        assert client.post("/api/admin/sync-prices", json=body, headers=church_user).status_code == 403
