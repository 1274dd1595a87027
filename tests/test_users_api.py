
from users.models import User, ROLE_ADMIN


class TestLogin:

    def test_login_sets_cookie_and_returns_token(self, client, admin):
        resp = client.post("/api/users/login", json={"email": "ADMIN@example.com", "password": "admin-pass"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["role"] == "ADMIN"
        assert body["access_token"]
        assert "access_token_cookie" in resp.headers.get("Set-Cookie", "")

    def test_bad_password(self, client, admin):
        resp = client.post("/api/users/login", json={"email": "admin@example.com", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_credentials(self, client):
        assert client.post("/api/users/login", json={}).status_code == 400

    def test_me(self, client, admin_headers):
        body = client.get("/api/users/me", headers=admin_headers).get_json()
        assert body["email"] == "admin@example.com"
        assert body["member"] is None

    def test_garbage_token(self, client):
        resp = client.get("/api/users/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Unauthorized"}

    def test_logout(self, client):
        assert client.post("/api/users/logout").status_code == 200


class TestUserAdmin:

    def test_admin_creates_linked_user(self, client, admin_headers, make_member):
        m = make_member()
        resp = client.post("/api/users", json={"email": "asha@example.com", "password": "pw",
                                               "memberId": m.id}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["member_id"] == m.id
        assert resp.get_json()["role"] == "USER"

        dup = client.post("/api/users", json={"email": "other@example.com", "password": "pw",
                                              "memberId": m.id}, headers=admin_headers)
        assert dup.status_code == 409

    def test_invalid_role(self, client, admin_headers):
        resp = client.post("/api/users", json={"email": "x@example.com", "password": "pw", "role": "ROOT"},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_list_requires_admin(self, client, make_member, user_headers, admin_headers):
        m = make_member()
        assert client.get("/api/users", headers=user_headers(m)).status_code == 403
        assert len(client.get("/api/users", headers=admin_headers).get_json()) == 2


class TestBootstrapAdmin:

    def test_creates_first_admin_from_config(self, app):
        app.config["BOOTSTRAP_ADMIN_EMAIL"] = "Root@Example.com"
        runner = app.test_cli_runner()
        result = runner.invoke(args=["bootstrap-admin", "--password", "s3cret"])
        assert result.exit_code == 0, result.output
        admin = User.query.filter_by(email="root@example.com").one()
        assert admin.role == ROLE_ADMIN
        assert admin.check_password("s3cret")

    def test_noop_when_admin_exists(self, app, admin):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["bootstrap-admin", "--email", "new@example.com", "--password", "x"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert User.query.count() == 1

    def test_requires_email(self, app):
        app.config["BOOTSTRAP_ADMIN_EMAIL"] = ""
        result = app.test_cli_runner().invoke(args=["bootstrap-admin", "--password", "x"])
        assert result.exit_code != 0
