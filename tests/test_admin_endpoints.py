try:
    from . import _bootstrap  # noqa: F401
    from ._fakes import FakeEmailSender, FakeIdentityAdmin
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _fakes import FakeEmailSender, FakeIdentityAdmin  # type: ignore

import httpx
import pytest

from account_portal.clients.sqlite_store import SQLiteDocumentStore
from account_portal.main import app
from account_portal.services.profiles import ProfileRepository
from account_portal.services.user_admin import UserAdminService
from account_portal.services.verification_email import VerificationMailer

pytestmark = pytest.mark.anyio("asyncio")


class Backend:
    def __init__(self, tmp_path) -> None:
        self.identity = FakeIdentityAdmin()
        self.sender = FakeEmailSender()
        self.profiles = ProfileRepository(SQLiteDocumentStore(str(tmp_path / "profiles.db")))
        self.service = UserAdminService(
            self.identity, self.profiles, VerificationMailer(self.sender)
        )


@pytest.fixture()
def backend(tmp_path):
    from account_portal import dependencies

    backend = Backend(tmp_path)
    app.dependency_overrides.clear()
    app.dependency_overrides[dependencies.get_user_admin_service] = lambda: backend.service
    yield backend
    app.dependency_overrides.clear()


def client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


NEW_USER = {"email": "ada@example.com", "password": "secret1", "username": "ada"}


async def test_healthcheck_sets_security_headers(backend) -> None:
    async with client() as http:
        response = await http.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Referrer-Policy"] == "origin-when-cross-origin"
    assert "X-Protected-Route" not in response.headers


async def test_protected_paths_are_marked(backend) -> None:
    async with client() as http:
        response = await http.get("/dashboard/settings")

    assert response.status_code == 404
    assert response.headers["X-Protected-Route"] == "true"
    assert int(response.headers["X-Server-Time"]) > 0


async def test_create_user_success(backend) -> None:
    async with client() as http:
        response = await http.post("/api/createUser", json=NEW_USER)

    assert response.status_code == 201
    body = response.json()
    assert body["emailSent"] is True
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["role"] == "user"
    assert "verificationLink" not in body


async def test_create_user_email_failure_still_created(backend) -> None:
    backend.sender.fail_with = "Email service not configured. Please set BREVO_API_KEY."

    async with client() as http:
        response = await http.post("/api/createUser", json=NEW_USER)

    assert response.status_code == 201
    body = response.json()
    assert body["emailSent"] is False
    assert body["verificationLink"].startswith("https://auth.example/verify")
    assert body["error"] == "Email service not configured. Please set BREVO_API_KEY."


async def test_create_user_errors(backend) -> None:
    async with client() as http:
        missing = await http.post("/api/createUser", json={"email": "ada@example.com"})
        await http.post("/api/createUser", json=NEW_USER)
        duplicate = await http.post("/api/createUser", json=NEW_USER)

    assert missing.status_code == 400
    assert missing.json() == {"error": "Email, password, and username are required"}
    assert duplicate.status_code == 409
    assert duplicate.json() == {"error": "This email is already registered"}


async def test_malformed_body_is_bad_request(backend) -> None:
    async with client() as http:
        response = await http.post(
            "/api/deleteUser",
            content="not json",
            headers={"Content-Type": "application/json"},
        )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


async def test_delete_user_twice(backend) -> None:
    async with client() as http:
        created = (await http.post("/api/createUser", json=NEW_USER)).json()
        uid = created["user"]["uid"]
        first = await http.post("/api/deleteUser", json={"uid": uid})
        second = await http.post("/api/deleteUser", json={"uid": uid})

    assert created["emailSent"] is True
    assert first.status_code == 200
    assert first.json()["details"] == {"authDeleted": True, "firestoreDeleted": True}
    assert second.status_code == 404
    assert second.json() == {"error": "User not found"}


async def test_toggle_user(backend) -> None:
    backend.identity.add("uid-9", "nine@example.com")

    async with client() as http:
        disabled = await http.post("/api/toggle-user", json={"uid": "uid-9", "disabled": True})
        not_bool = await http.post("/api/toggle-user", json={"uid": "uid-9", "disabled": "yes"})
        missing = await http.post("/api/toggle-user", json={"uid": "nope", "disabled": False})

    assert disabled.status_code == 200
    assert disabled.json() == {"message": "User disabled successfully", "email": "nine@example.com"}
    assert backend.identity.users["uid-9"].disabled is True
    assert not_bool.status_code == 400
    assert not_bool.json() == {"error": "Disabled status must be a boolean"}
    assert missing.status_code == 404
    assert missing.json() == {"error": "User not found in authentication provider"}


async def test_verify_user_email(backend) -> None:
    backend.identity.add("uid-9", "nine@example.com")

    async with client() as http:
        ok = await http.post("/api/verify-user-email", json={"uid": "uid-9"})
        no_uid = await http.post("/api/verify-user-email", json={})

    assert ok.json() == {"message": "Email verified successfully", "uid": "uid-9"}
    assert no_uid.status_code == 400
    assert no_uid.json() == {"error": "UID is required"}


async def test_reset_password(backend) -> None:
    backend.identity.add("uid-9", "nine@example.com")

    async with client() as http:
        ok = await http.post("/api/reset-password", json={"email": "nine@example.com"})
        unknown = await http.post("/api/reset-password", json={"email": "x@example.com"})

    assert ok.status_code == 200
    assert ok.json()["link"] == "https://auth.example/reset?email=nine@example.com"
    assert unknown.status_code == 404


async def test_list_users(backend) -> None:
    async with client() as http:
        await http.post("/api/createUser", json=NEW_USER)
        response = await http.get("/api/users")

    users = response.json()["users"]
    assert [user["username"] for user in users] == ["ada"]
    assert users[0]["emailVerified"] is False


async def test_unexpected_error_is_500(backend) -> None:
    class Exploding:
        async def verify_email(self, uid):
            raise RuntimeError("store offline")

    from account_portal import dependencies

    app.dependency_overrides[dependencies.get_user_admin_service] = lambda: Exploding()
    async with client() as http:
        response = await http.post("/api/verify-user-email", json={"uid": "u"})

    assert response.status_code == 500
    assert response.json() == {"error": "store offline"}


async def test_create_user_short_password_then_valid(backend) -> None:
    async with client() as http:
        short = await http.post(
            "/api/createUser",
            json={"email": "a@b.com", "password": "short", "username": "alice"},
        )
        ok = await http.post(
            "/api/createUser",
            json={"email": "a@b.com", "password": "longenough1", "username": "alice"},
        )

    assert short.status_code == 400
    assert "at least 6 characters" in short.json()["error"]
    assert ok.status_code == 201
    assert ok.json()["emailSent"] is True
