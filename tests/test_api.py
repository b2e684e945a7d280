import tempfile
import unittest

from fastapi.testclient import TestClient

from api.main import create_app
from csvauth.dependencies import get_auth_service, get_config, get_context_store
from csvauth.services.auth_service import AuthService
from csvauth.stores.csv_store import CsvRecordStore
from csvauth.stores.memory_store import MemoryContextStore

from tests.support import STRONG_PASSWORD, FakeClock, make_config

PREFIX = "/api/v1/auth"


class TestAuthApi(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.clock = FakeClock()
        self.config = make_config(tmp.name)
        self.store = CsvRecordStore(tmp.name, clock=self.clock)
        self.service = AuthService(self.store, self.config, clock=self.clock)
        self.contexts = MemoryContextStore(clock=self.clock)

        app = create_app()
        app.dependency_overrides[get_config] = lambda: self.config
        app.dependency_overrides[get_auth_service] = lambda: self.service
        app.dependency_overrides[get_context_store] = lambda: self.contexts
        self.client = TestClient(app)
        self.addCleanup(self.client.close)

    def csrf_token(self) -> str:
        return self.client.get(f"{PREFIX}/csrf").json()["data"]["csrf_token"]

    def csrf_headers(self, token: str | None = None) -> dict:
        return {self.config.CSRF_HEADER_NAME: token or self.csrf_token()}

    def register(self, username="alice", email="alice@x.com", password=STRONG_PASSWORD):
        return self.client.post(
            f"{PREFIX}/register",
            json={"username": username, "email": email, "password": password},
            headers=self.csrf_headers(),
        )

    def login(self, identifier="alice", password=STRONG_PASSWORD, headers=None, with_csrf=True):
        request_headers = self.csrf_headers() if with_csrf else {}
        request_headers.update(headers or {})
        return self.client.post(
            f"{PREFIX}/login",
            json={"username_or_email": identifier, "password": password},
            headers=request_headers,
        )

    def test_register_returns_created(self):
        response = self.register()

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"], {"user_id": 1})

    def test_register_without_csrf_token_is_rejected(self):
        response = self.client.post(
            f"{PREFIX}/register",
            json={"username": "alice", "email": "alice@x.com", "password": STRONG_PASSWORD},
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Invalid security token. Please try again.")
        self.assertEqual(self.store.count("users"), 0)

    def test_login_without_csrf_token_is_rejected(self):
        self.register()
        self.client.cookies.clear()

        response = self.login(with_csrf=False)

        self.assertEqual(response.status_code, 403)
        self.assertNotIn(self.config.SESSION_COOKIE_NAME, response.cookies)
        self.assertEqual(self.store.count("login_attempts"), 0)

    def test_register_validation_errors(self):
        response = self.register(username="x", email="nope", password="short")

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Validation failed")
        self.assertIn("Invalid email address", body["data"]["errors"])

    def test_register_conflict(self):
        self.register()
        response = self.register(email="other@x.com")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["message"], "Username or email already exists")

    def test_malformed_body_is_rejected(self):
        response = self.client.post(
            f"{PREFIX}/login",
            json={"username_or_email": "alice"},
            headers=self.csrf_headers(),
        )

        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertEqual(body["message"], "Validation error")
        self.assertEqual(body["data"]["validation_errors"][0]["field"], "password")

    def test_login_me_logout_flow(self):
        self.register()

        login = self.login()
        self.assertEqual(login.status_code, 200)
        data = login.json()["data"]
        self.assertEqual(data["user"]["username"], "alice")
        self.assertNotIn("password_hash", data["user"])
        self.assertIn(self.config.SESSION_COOKIE_NAME, self.client.cookies)

        me = self.client.get(f"{PREFIX}/me")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["data"]["user"]["email"], "alice@x.com")

        self.assertEqual(self.client.post(f"{PREFIX}/logout").status_code, 403)

        logout = self.client.post(f"{PREFIX}/logout", headers=self.csrf_headers(data["csrf_token"]))
        self.assertEqual(logout.status_code, 200)

        after = self.client.get(f"{PREFIX}/me")
        self.assertEqual(after.status_code, 401)
        self.assertEqual(after.json()["message"], "Not authenticated")

    def test_login_rotates_context_cookie_and_csrf_token(self):
        self.register()
        before_token = self.csrf_token()
        before_cookie = self.client.cookies.get(self.config.SESSION_COOKIE_NAME)

        response = self.login(headers=self.csrf_headers(before_token), with_csrf=False)

        self.assertNotEqual(self.client.cookies.get(self.config.SESSION_COOKIE_NAME), before_cookie)
        self.assertNotEqual(response.json()["data"]["csrf_token"], before_token)

    def test_issued_csrf_token_must_match(self):
        self.register()
        token = self.csrf_token()

        self.assertEqual(self.login(with_csrf=False).status_code, 403)
        self.assertEqual(self.login(headers=self.csrf_headers("bogus"), with_csrf=False).status_code, 403)
        self.assertEqual(self.login(headers=self.csrf_headers(token), with_csrf=False).status_code, 200)

    def test_wrong_credentials(self):
        self.register()

        response = self.login(password="Wr0ng!pass")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid credentials")

    def test_forwarded_ip_is_recorded(self):
        self.register()

        self.login(headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        self.client.cookies.clear()
        self.login(headers={"X-Forwarded-For": "not-an-ip", "Client-IP": "198.51.100.4"})

        ips = [row["ip_address"] for row in self.store.fetch_all("login_attempts")]
        self.assertIn("203.0.113.9", ips)
        self.assertIn("198.51.100.4", ips)

    def test_change_password_and_stats(self):
        self.register()
        token = self.login().json()["data"]["csrf_token"]

        changed = self.client.post(
            f"{PREFIX}/password",
            json={"current_password": STRONG_PASSWORD, "new_password": "N3w!passwd"},
            headers=self.csrf_headers(token),
        )
        self.assertEqual(changed.status_code, 200)

        stats = self.client.get(f"{PREFIX}/stats")
        self.assertEqual(stats.status_code, 200)
        self.assertEqual(stats.json()["data"]["total_logins"], 1)

    def test_protected_routes_require_login(self):
        self.assertEqual(self.client.get(f"{PREFIX}/stats").status_code, 401)
        response = self.client.post(
            f"{PREFIX}/password",
            json={"current_password": STRONG_PASSWORD, "new_password": "N3w!passwd"},
            headers=self.csrf_headers(),
        )
        self.assertEqual(response.status_code, 401)

    def test_verify_email(self):
        self.config = make_config(str(self.store.data_dir), REQUIRE_EMAIL_VERIFICATION=True)
        self.service = AuthService(self.store, self.config, clock=self.clock)

        registered = self.register()
        self.assertIn("verify", registered.json()["message"])
        token = self.store.fetch_one("users", {"id": 1})["verification_token"]

        self.assertEqual(self.login().status_code, 403)
        response = self.client.post(f"{PREFIX}/verify-email", json={"token": token}, headers=self.csrf_headers())
        self.assertEqual(response.status_code, 200)
        again = self.client.post(f"{PREFIX}/verify-email", json={"token": token}, headers=self.csrf_headers())
        self.assertEqual(again.status_code, 400)


if __name__ == "__main__":
    unittest.main()
