import pytest

from models import Church
from reporthub.services.church_import import NoValidChurchRows, import_churches


def _upload(client, headers, text, name="churches.csv"):
    return client.post(
        "/api/churches/bulk-upload",
        files={"file": (name, text.encode("utf-8"), "text/csv")},
        headers=headers,
    )


class TestImportChurches:
    def test_creates_and_reports_skips(self, db, org):
        text = (
            "Church Name,Group Name\n"
            "LW DERBY,midlands\n"
            "LW BIRMINGHAM,Midlands\n"
            "LW PARIS,Europe\n"
            "LW DERBY,Midlands\n"
            ",Midlands\n"
        )

        result = import_churches(db, text)

        assert result.created == 1
        assert result.skipped == 3
        assert result.total == 4
        assert result.errors == [
            "Row 6: Missing required fields (Church Name or Group Name)",
            'Row 3: Church "LW BIRMINGHAM" already exists in group "Midlands"',
            'Row 4: Group "Europe" not found',
            'Row 5: Church "LW DERBY" already exists in group "Midlands"',
        ]
        assert db.query(Church).filter(Church.name == "LW DERBY").count() == 1

    def test_rows_after_an_incomplete_row_keep_their_numbers(self, db, org):
        text = "Church Name,Group Name\n,Midlands\nLW DERBY,Nowhere\n"

        result = import_churches(db, text)

        assert result.created == 0
        assert result.errors == [
            "Row 2: Missing required fields (Church Name or Group Name)",
            'Row 3: Group "Nowhere" not found',
        ]

    def test_no_valid_rows(self, db, org):
        with pytest.raises(NoValidChurchRows) as exc:
            import_churches(db, "Church,Other\n,x\n")
        assert exc.value.errors == ["Row 2: Missing required fields (Church Name or Group Name)"]


class TestBulkUploadApi:
    def test_upload(self, client, zone_admin, org):
        resp = _upload(client, zone_admin, "CHURCH,GROUP\nLW COVENTRY,Midlands\n")

        assert resp.status_code == 200
        body = resp.json()
        assert body["created"] == 1
        assert body["skipped"] == 0
        assert "errors" not in body

    def test_no_valid_rows_is_400_with_details(self, client, zone_admin, org):
        resp = _upload(client, zone_admin, "Name,Group\nLW X,\n")
        assert resp.status_code == 400
        assert resp.json()["error"] == "No valid church rows found in CSV"
        assert resp.json()["details"] == ["Row 2: Missing required fields (Church Name or Group Name)"]

    def test_church_user_forbidden(self, client, church_user, org):
        assert _upload(client, church_user, "CHURCH,GROUP\nLW COVENTRY,Midlands\n").status_code == 403
