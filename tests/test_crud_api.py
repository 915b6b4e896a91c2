from datetime import datetime

from models import Payment, User, Zone


class TestZones:
    def test_create_and_list(self, client, super_admin, church_user):
        resp = client.post("/api/zones", json={"name": "Nigeria Zone", "currency": "ngn"}, headers=super_admin)
        assert resp.status_code == 201
        assert resp.json()["currency"] == "NGN"

        zones = client.get("/api/zones", headers=church_user).json()
        assert [z["name"] for z in zones] == ["Nigeria Zone"]
        assert zones[0]["groupCount"] == 0

    def test_duplicate_name(self, client, super_admin, org):
        resp = client.post("/api/zones", json={"name": "uk zone 1"}, headers=super_admin)
        assert resp.status_code == 400

    def test_only_super_admin_writes(self, client, zone_admin):
        resp = client.post("/api/zones", json={"name": "Zone X"}, headers=zone_admin)
        assert resp.status_code == 403

    def test_delete_blocked_while_groups_exist(self, client, super_admin, org, db):
        resp = client.delete(f"/api/zones/{org['zone']}", headers=super_admin)

        assert resp.status_code == 400
        assert resp.json()["error"] == "Cannot delete zone with 1 groups. Please remove all groups first."
        assert db.get(Zone, org["zone"]) is not None

    def test_delete_empty_zone(self, client, super_admin):
        zone_id = client.post("/api/zones", json={"name": "Empty"}, headers=super_admin).json()["id"]
        assert client.delete(f"/api/zones/{zone_id}", headers=super_admin).status_code == 200
        assert client.get(f"/api/zones/{zone_id}", headers=super_admin).status_code == 404

    def test_validation_errors_are_400(self, client, super_admin):
        resp = client.post("/api/zones", json={"name": ""}, headers=super_admin)
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_whitespace_only_name_is_400(self, client, super_admin, db):
        resp = client.post("/api/zones", json={"name": "   "}, headers=super_admin)
        assert resp.status_code == 400
        assert db.query(Zone).count() == 0

    def test_names_are_stored_trimmed(self, client, super_admin, org):
        resp = client.post("/api/zones", json={"name": "  Europe Zone  ", "currency": " eur "}, headers=super_admin)
        assert resp.status_code == 201
        assert resp.json()["name"] == "Europe Zone"
        assert resp.json()["currency"] == "EUR"

        blank = client.put(f"/api/zones/{org['zone']}", json={"name": "  "}, headers=super_admin)
        assert blank.status_code == 400


class TestGroupsAndChurches:
    def test_group_delete_blocked_by_churches(self, client, zone_admin, org):
        resp = client.delete(f"/api/groups/{org['group']}", headers=zone_admin)
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Cannot delete group with 2 churches")

    def test_church_filters(self, client, church_user, org):
        churches = client.get("/api/churches", params={"zoneId": org["zone"]}, headers=church_user).json()
        assert {c["name"] for c in churches} == {"LW BIRMINGHAM", "LW GLASGOW"}

        none = client.get("/api/churches", params={"groupId": 999}, headers=church_user).json()
        assert none == []

    def test_duplicate_church_in_group(self, client, zone_admin, org):
        resp = client.post(
            "/api/churches", json={"name": "lw birmingham", "groupId": org["group"]}, headers=zone_admin
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "A church with this name already exists in this group"

    def test_church_delete_blocked_by_payments(self, client, zone_admin, org, db):
        db.add(
            Payment(
                church_id=org["birmingham"],
                department_id=org["department"],
                payment_date=datetime(2025, 1, 1),
                amount=5,
                for_purpose="PRINTING",
            )
        )
        db.commit()

        resp = client.delete(f"/api/churches/{org['birmingham']}", headers=zone_admin)
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Cannot delete church with 0 transactions and 1 payments.")

        assert client.delete(f"/api/churches/{org['glasgow']}", headers=zone_admin).status_code == 200


class TestProductsAndDepartments:
    def test_duplicate_product_conflict(self, client, zone_admin, org):
        resp = client.post(
            "/api/products",
            json={"name": "teevo", "departmentId": org["department"], "unitPrice": "1.75"},
            headers=zone_admin,
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "Product with this name already exists in the department"

    def test_product_with_orders_cannot_be_deleted(self, client, zone_admin, org):
        created = client.post(
            "/api/transactions",
            json={
                "churchId": org["birmingham"],
                "transactionDate": "2025-01-10T00:00:00",
                "lineItems": [{"productTypeId": org["teevo"], "quantity": 2}],
            },
            headers=zone_admin,
        )
        assert created.status_code == 201

        resp = client.delete(f"/api/products/{org['teevo']}", headers=zone_admin)
        assert resp.status_code == 409
        assert resp.json()["details"] == "This product has 1 associated order(s) and cannot be deleted."

    def test_department_with_products_cannot_be_deleted(self, client, super_admin, org):
        resp = client.delete(f"/api/departments/{org['department']}", headers=super_admin)
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Cannot delete department with 2 products")


class TestUsers:
    def _create(self, client, headers, email="new.user@nexusreporthub.com"):
        return client.post(
            "/api/users",
            json={"email": email, "name": "New User", "password": "longenough", "role": "CHURCH_USER"},
            headers=headers,
        )

    def test_create_hashes_password(self, client, super_admin, db):
        resp = self._create(client, super_admin)
        assert resp.status_code == 201
        assert "password" not in resp.json()
        assert "passwordHash" not in resp.json()

        stored = db.query(User).one()
        assert stored.password_hash != "longenough"

    def test_duplicate_email(self, client, super_admin):
        self._create(client, super_admin)
        resp = self._create(client, super_admin, email="NEW.USER@nexusreporthub.com")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Email already in use"

    def test_short_password_rejected(self, client, super_admin):
        resp = client.post(
            "/api/users",
            json={"email": "a@nexusreporthub.com", "name": "A", "password": "short"},
            headers=super_admin,
        )
        assert resp.status_code == 400

    def test_cannot_delete_self(self, client, super_admin):
        resp = client.delete("/api/users/1", headers=super_admin)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Cannot delete your own account"

    def test_users_can_read_only_themselves(self, client, super_admin, church_user):
        other_id = self._create(client, super_admin).json()["id"]
        assert client.get(f"/api/users/{other_id}", headers=church_user).status_code == 403
        assert client.get("/api/users", headers=church_user).status_code == 403


class TestTransactions:
    def test_create_uses_catalogue_price(self, client, zone_admin, org):
        resp = client.post(
            "/api/transactions",
            json={
                "churchId": org["glasgow"],
                "transactionDate": "2025-03-01T10:00:00",
                "lineItems": [
                    {"productTypeId": org["ror"], "quantity": 4},
                    {"productTypeId": org["teevo"], "quantity": 1},
                ],
            },
            headers=zone_admin,
        )

        assert resp.status_code == 201
        tx = resp.json()["transaction"]
        assert tx["totalAmount"] == 11.5
        assert {item["unitPrice"] for item in tx["lineItems"]} == {2.5, 1.5}

    def test_list_by_financial_year(self, client, zone_admin, church_user, org):
        for when in ("2024-12-01T00:00:00", "2025-11-30T12:00:00", "2025-12-01T00:00:00"):
            client.post(
                "/api/transactions",
                json={
                    "churchId": org["birmingham"],
                    "transactionDate": when,
                    "lineItems": [{"productTypeId": org["ror"], "quantity": 1}],
                },
                headers=zone_admin,
            )

        body = client.get("/api/transactions", params={"fy": "FY2025"}, headers=church_user).json()
        assert body["financialYear"] == "FY2025"
        assert body["count"] == 2
        assert body["totalAmount"] == 5.0
        assert body["totalQuantity"] == 2

        bad = client.get("/api/transactions", params={"fy": "2025"}, headers=church_user)
        assert bad.status_code == 400

    def test_unknown_church(self, client, zone_admin, org):
        resp = client.post(
            "/api/transactions",
            json={
                "churchId": 999,
                "transactionDate": "2025-03-01T10:00:00",
                "lineItems": [{"productTypeId": org["ror"], "quantity": 1}],
            },
            headers=zone_admin,
        )
        assert resp.status_code == 404
