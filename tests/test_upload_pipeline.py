from decimal import Decimal

import pytest

from models import CampaignCategory, Payment, ProductType, Transaction, TransactionLineItem, UploadHistory
from reporthub.services.upload_pipeline import RollbackRefused, rollback_upload, run_upload


def _post_csv(client, headers, text, upload_type="TRANSACTION", order_period=None, name="upload.csv"):
    data = {"uploadType": upload_type}
    if order_period:
        data["orderPeriod"] = order_period
    return client.post(
        "/api/upload",
        files={"file": (name, text.encode("utf-8"), "text/csv")},
        data=data,
        headers=headers,
    )


TRANSACTIONS_CSV = (
    "Date,Amount,Church,Type,Payment Method\n"
    "15/01/2025,100.00,LW BIRMINGHAM,Print Income,cash\n"
    "15/01/2025,50.00,,Print Income,\n"
)

ORDERS_CSV = (
    "CHAPTER,ROR English Quantity,Teevo,New Book,TOTAL COST\n"
    "LW BIRMINGHAM,100,20,5,£300\n"
    "lw glasgow,10,,,£25\n"
    "UK ZONE 1 TOTAL,110,20,5,£325\n"
)


class TestTransactionUpload:
    def test_partial_upload_reports_row_numbers(self, client, super_admin, org, db):
        resp = _post_csv(client, super_admin, TRANSACTIONS_CSV)

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "PARTIAL"
        assert body["recordsProcessed"] == 1
        assert body["totalRows"] == 2
        assert body["errors"] == ["Row 3: Missing church name"]

        payment = db.query(Payment).one()
        assert payment.amount == Decimal("100.00")
        assert payment.for_purpose == "PRINTING"
        assert payment.payment_method == "CASH"
        assert payment.currency == "GBP"
        assert payment.upload_history_id == body["uploadId"]

        upload = db.get(UploadHistory, body["uploadId"])
        assert upload.status == "PARTIAL"
        assert upload.error_log == "Row 3: Missing church name"

    def test_row_level_validation_messages(self, client, super_admin, org):
        text = (
            "Date,Amount,Church,Type\n"
            "15/01/2025,abc,LW BIRMINGHAM,Print\n"
            "someday,10,LW BIRMINGHAM,Print\n"
            "15/01/2025,10,LW NOWHERE,Print\n"
            "15/01/2025,10,LW BIRMINGHAM,\n"
        )
        body = _post_csv(client, super_admin, text).json()

        assert body["status"] == "FAILED"
        assert body["recordsProcessed"] == 0
        assert body["errors"] == [
            'Row 2: Invalid amount "abc"',
            'Row 3: Invalid date "someday"',
            'Row 4: Church "LW NOWHERE" not found',
            "Row 5: Missing category/type",
        ]

    def test_repeated_sponsorship_type_becomes_category(self, client, super_admin, org, db):
        text = "Date,Amount,Church,Type\n" + "".join(
            f"0{day}/02/2025,20,LW GLASGOW,Zone Sponsorship\n" for day in range(1, 4)
        ) + "04/02/2025,5,LW GLASGOW,Print\n"

        body = _post_csv(client, super_admin, text).json()

        assert body["status"] == "SUCCESS"
        assert body["summary"]["campaignCategoriesCreated"] == ["Zone Sponsorship"]

        category = db.query(CampaignCategory).one()
        assert category.normalized_name == "zone-sponsorship"
        assert category.auto_generated
        sponsorships = db.query(Payment).filter(Payment.for_purpose == "SPONSORSHIP").all()
        assert len(sponsorships) == 3
        assert {p.campaign_category_id for p in sponsorships} == {category.id}

    def test_rejects_non_csv_and_missing_file(self, client, super_admin, org):
        resp = _post_csv(client, super_admin, "a,b\n1,2\n", name="data.txt")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Only CSV files are allowed"

        resp = client.post("/api/upload", data={"uploadType": "TRANSACTION"}, headers=super_admin)
        assert resp.status_code == 400
        assert resp.json()["error"] == "No file provided"

    def test_empty_csv_is_rejected_without_history(self, client, super_admin, org, db):
        resp = _post_csv(client, super_admin, "Date,Amount,Church,Type\n")
        assert resp.status_code == 400
        assert db.query(UploadHistory).count() == 0

    def test_church_user_cannot_upload(self, client, church_user, org):
        assert _post_csv(client, church_user, TRANSACTIONS_CSV).status_code == 403

    def test_ignored_rows_do_not_shift_row_numbers(self, client, super_admin, org):
        text = (
            "Date,Amount,Church,Type,Reference\n"
            "15/01/2025,10.00,LW BIRMINGHAM,Print,\n"
            ",,,,REF1\n"
            "15/01/2025,5.00,,Print,\n"
        )
        body = _post_csv(client, super_admin, text).json()

        assert body["status"] == "PARTIAL"
        assert body["recordsProcessed"] == 1
        assert body["errors"] == ["Row 4: Missing church name"]


class TestOrderUpload:
    def test_order_sheet_creates_orders_at_catalogue_price(self, client, super_admin, org, db):
        body = _post_csv(client, super_admin, ORDERS_CSV, upload_type="ORDER", order_period="2025-01").json()

        assert body["status"] == "SUCCESS"
        assert body["recordsProcessed"] == 2
        assert body["summary"]["ordersCreated"] == 2
        assert body["summary"]["orderLineItemsCreated"] == 4

        new_book = db.query(ProductType).filter(ProductType.name == "NEW BOOK").one()
        assert new_book.unit_price == Decimal("3.00")

        birmingham = (
            db.query(Transaction).filter(Transaction.church_id == org["birmingham"]).one()
        )
        assert birmingham.transaction_date.year == 2025
        assert birmingham.transaction_date.month == 1
        assert birmingham.notes == "Total: £300"
        ror = next(i for i in birmingham.line_items if i.product_type_id == org["ror"])
        assert ror.quantity == 100
        assert ror.unit_price == Decimal("2.50")
        assert ror.total_amount == Decimal("250.00")

    def test_order_upload_needs_period(self, client, super_admin, org, db):
        resp = _post_csv(client, super_admin, ORDERS_CSV, upload_type="ORDER")
        assert resp.status_code == 400
        assert db.query(UploadHistory).count() == 0

    def test_row_without_quantities(self, client, super_admin, org):
        text = "CHAPTER,Teevo\nLW BIRMINGHAM,\nLW GLASGOW,4\n"
        body = _post_csv(client, super_admin, text, upload_type="ORDER", order_period="2025-02").json()
        assert body["status"] == "PARTIAL"
        assert body["errors"] == ['Row 2: No product quantities for church "LW BIRMINGHAM"']

    def test_ignored_rows_do_not_shift_row_numbers(self, client, super_admin, org):
        text = "CHAPTER,Teevo,TOTAL COST\nLW BIRMINGHAM,3,£4.50\n,,£9\nLW GLASGOW,,\n"
        body = _post_csv(client, super_admin, text, upload_type="ORDER", order_period="2025-02").json()

        assert body["status"] == "PARTIAL"
        assert body["errors"] == ['Row 4: No product quantities for church "LW GLASGOW"']


class TestRollback:
    def test_rollback_removes_orders_and_marks_upload(self, client, super_admin, org, db):
        upload_id = _post_csv(
            client, super_admin, ORDERS_CSV, upload_type="ORDER", order_period="2025-01"
        ).json()["uploadId"]

        resp = client.post(f"/api/upload/{upload_id}/rollback", headers=super_admin)

        assert resp.status_code == 200
        assert resp.json()["deletedTransactions"] == 2
        assert resp.json()["deletedPayments"] == 0
        assert db.query(Transaction).count() == 0
        assert db.query(TransactionLineItem).count() == 0
        assert db.get(UploadHistory, upload_id).status == "ROLLED_BACK"

        again = client.post(f"/api/upload/{upload_id}/rollback", headers=super_admin)
        assert again.status_code == 400
        assert again.json()["error"] == "Upload has already been rolled back"

    def test_rollback_unknown_upload(self, client, super_admin):
        assert client.post("/api/upload/999/rollback", headers=super_admin).status_code == 404

    def test_rollback_with_nothing_to_delete(self, db, org):
        upload, summary = run_upload(
            db,
            text="Date,Amount,Church,Type\n15/01/2025,10,LW NOWHERE,Print\n",
            file_name="x.csv",
            upload_type="TRANSACTION",
            user_id=1,
            department_id=None,
        )
        assert summary.status == "FAILED"
        with pytest.raises(RollbackRefused):
            rollback_upload(db, upload.id)

    def test_history_is_newest_first(self, client, super_admin, org):
        _post_csv(client, super_admin, TRANSACTIONS_CSV, name="first.csv")
        _post_csv(client, super_admin, TRANSACTIONS_CSV, name="second.csv")

        history = client.get("/api/upload/history", headers=super_admin).json()
        assert [h["fileName"] for h in history] == ["second.csv", "first.csv"]
        assert history[0]["recordsProcessed"] == 1
