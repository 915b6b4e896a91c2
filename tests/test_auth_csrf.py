import pytest

from conftest import auth_headers


class TestIdentity:
    def test_missing_identity_is_401(self, client):
        resp = client.get("/api/zones")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    @pytest.mark.parametrize(
        "headers",
        [
            {"X-User-Id": "abc", "X-User-Role": "SUPER_ADMIN"},
            {"X-User-Id": "1", "X-User-Role": "OWNER"},
            {"X-User-Id": "1"},
        ],
    )
    def test_invalid_identity_is_401(self, client, headers):
        assert client.get("/api/zones", headers=headers).status_code == 401

    def test_role_is_case_insensitive(self, client):
        headers = {"X-User-Id": "5", "X-User-Role": "church_user"}
        assert client.get("/api/zones", headers=headers).status_code == 200


class TestSameOrigin:
    def test_write_without_origin_or_referer_is_rejected(self, client):
        headers = auth_headers("SUPER_ADMIN", same_origin=False)
        resp = client.post("/api/zones", json={"name": "Zone"}, headers=headers)
        assert resp.status_code == 403
        assert resp.json()["error"] == "Invalid request origin"

    def test_foreign_origin_is_rejected(self, client):
        headers = auth_headers("SUPER_ADMIN", same_origin=False)
        headers["Origin"] = "https://evil.example"
        assert client.post("/api/zones", json={"name": "Zone"}, headers=headers).status_code == 403

    def test_matching_referer_is_enough(self, client):
        headers = auth_headers("SUPER_ADMIN", same_origin=False)
        headers["Referer"] = "http://testserver/dashboard"
        assert client.post("/api/zones", json={"name": "Zone"}, headers=headers).status_code == 201

    def test_mismatched_referer_fails_even_with_good_origin(self, client, super_admin):
        headers = dict(super_admin, Referer="https://evil.example/page")
        assert client.post("/api/zones", json={"name": "Zone"}, headers=headers).status_code == 403

    def test_origin_checked_before_identity(self, client):
        resp = client.post("/api/zones", json={"name": "Zone"}, headers={"Origin": "https://evil.example"})
        assert resp.status_code == 403

    def test_reads_need_no_origin(self, client):
        headers = auth_headers("CHURCH_USER", same_origin=False)
        assert client.get("/api/zones", headers=headers).status_code == 200


class TestRoles:
    def test_church_user_cannot_write(self, client, church_user):
        resp = client.post("/api/zones", json={"name": "Zone"}, headers=church_user)
        assert resp.status_code == 403
        assert resp.json()["error"] == "Forbidden"

    def test_zone_admin_cannot_manage_users(self, client, zone_admin):
        assert client.get("/api/users", headers=zone_admin).status_code == 403

    def test_public_registration_is_closed(self, client):
        resp = client.post("/api/auth/register", json={"email": "a@b.com"})
        assert resp.status_code == 403
        assert "registration is disabled" in resp.json()["error"]


class TestRootAndDashboard:
    def test_health(self, client):
        assert client.get("/health").status_code == 200

    def test_root_redirects_to_dashboard(self, client):
        resp = client.get("/", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    def test_dashboard_json(self, client, church_user, org):
        body = client.get("/api/dashboard", params={"fy": "FY2025"}, headers=church_user).json()
        assert body["financialYear"]["label"] == "FY2025"
        assert body["churchCount"] == 2
        assert body["orderCount"] == 0

    def test_dashboard_page(self, client, church_user, org):
        resp = client.get("/dashboard", params={"fy": "FY2025"}, headers=church_user)
        assert resp.status_code == 200
        assert "FY2025" in resp.text

    def test_dashboard_bad_fy(self, client, church_user):
        assert client.get("/api/dashboard", params={"fy": "nope"}, headers=church_user).status_code == 400

    def test_template_download(self, client):
        resp = client.get("/api/template/download")
        assert resp.status_code == 200
        assert resp.text.startswith("Church Name,Date,Product Type")
