from fastapi.testclient import TestClient

from taskvault.main import create_app
from taskvault.tokens import COOKIE_NAME


def set_cookie_header(res) -> str:
    return res.headers.get("set-cookie", "").lower()


class TestRegister:
    def test_register_sets_cookie(self, client, app):
        res = client.post("/auth/register", json={"name": "Ann", "email": "ann@x.com", "password": "pw123456"})
        assert res.status_code == 201
        body = res.json()
        assert body["message"] == "Registration successful"
        assert body["user"]["name"] == "Ann"
        assert body["user"]["email"] == "ann@x.com"
        assert "password" not in body["user"]
        assert "password_hash" not in body["user"]

        cookie = set_cookie_header(res)
        assert cookie.startswith(f"{COOKIE_NAME}=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "max-age=604800" in cookie
        assert "path=/" in cookie
        assert "secure" not in cookie
        assert client.cookies.get(COOKIE_NAME)

        stored = app.state.user_store.get_by_email("ann@x.com")
        assert stored["password_hash"] != "pw123456"

    def test_duplicate_email_conflict(self, client):
        payload = {"name": "Ann", "email": "ann@x.com", "password": "pw123456"}
        assert client.post("/auth/register", json=payload).status_code == 201
        res = client.post("/auth/register", json=dict(payload, email="ANN@X.COM"))
        assert res.status_code == 409
        assert res.json()["message"] == "Email already registered"
        assert res.json()["error"] == "ConflictError"

    def test_validation_errors_are_field_level(self, client):
        res = client.post("/auth/register", json={"name": "", "email": "not-an-email", "password": "short"})
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "ValidationError"
        assert set(body["details"]) == {"name", "email", "password"}
        assert client.cookies.get(COOKIE_NAME) is None

    def test_secure_cookie_in_production(self, settings):
        from dataclasses import replace

        prod_app = create_app(replace(settings, environment="production"))
        with TestClient(prod_app) as c:
            res = c.post("/auth/register", json={"name": "Ann", "email": "ann@x.com", "password": "pw123456"})
        assert res.status_code == 201
        assert "secure" in set_cookie_header(res)


class TestLogin:
    def test_scenario_register_then_login(self, client, make_client):
        res = client.post("/auth/register", json={"name": "Ann", "email": "ann@x.com", "password": "pw123456"})
        assert res.status_code == 201

        fresh = make_client()
        wrong = fresh.post("/auth/login", json={"email": "ann@x.com", "password": "wrong"})
        assert wrong.status_code == 401
        assert wrong.json()["message"] == "Invalid credentials"
        assert wrong.json()["error"] == "AuthenticationError"
        assert fresh.cookies.get(COOKIE_NAME) is None

        ok = fresh.post("/auth/login", json={"email": "ann@x.com", "password": "pw123456"})
        assert ok.status_code == 200
        assert ok.json()["user"]["email"] == "ann@x.com"
        assert set_cookie_header(ok).startswith(f"{COOKIE_NAME}=")
        assert fresh.cookies.get(COOKIE_NAME)

    def test_unknown_email_same_response_as_wrong_password(self, register, make_client):
        register()
        c = make_client()
        unknown = c.post("/auth/login", json={"email": "nobody@x.com", "password": "pw123456"})
        wrong = c.post("/auth/login", json={"email": "ann@x.com", "password": "nope"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_login_validation(self, client):
        res = client.post("/auth/login", json={"email": "ann@x.com", "password": ""})
        assert res.status_code == 400
        assert "password" in res.json()["details"]


class TestSession:
    def test_me_returns_identity(self, register):
        c, user = register()
        res = c.get("/auth/me")
        assert res.status_code == 200
        assert res.json()["user"] == user

    def test_me_requires_cookie(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_logout_clears_cookie(self, register):
        c, _ = register()
        res = c.post("/auth/logout")
        assert res.status_code == 200
        assert res.json() == {"message": "Logged out"}
        cookie = set_cookie_header(res)
        assert cookie.startswith(f'{COOKIE_NAME}=""') or cookie.startswith(f"{COOKIE_NAME}=;")
        assert "max-age=0" in cookie
        assert c.get("/auth/me").status_code == 401

    def test_token_still_valid_after_logout_if_captured(self, register, make_client):
        c, _ = register()
        captured = c.cookies.get(COOKIE_NAME)
        c.post("/auth/logout")

        other = make_client()
        other.cookies.set(COOKIE_NAME, captured)
        assert other.get("/auth/me").status_code == 200
