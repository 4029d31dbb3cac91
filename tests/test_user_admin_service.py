try:
    from . import _bootstrap  # noqa: F401
    from ._fakes import FakeEmailSender, FakeIdentityAdmin
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _fakes import FakeEmailSender, FakeIdentityAdmin  # type: ignore

import pytest

from account_portal.clients.sqlite_store import SQLiteDocumentStore
from account_portal.core.errors import IdentityProviderError
from account_portal.models.profile import UserProfile
from account_portal.services.profiles import ProfileRepository
from account_portal.services.user_admin import (
    EmailAlreadyRegistered,
    InvalidUserRequest,
    UserAdminFailure,
    UserAdminService,
    UserNotFound,
)
from account_portal.services.verification_email import VerificationMailer


class Harness:
    def __init__(self, tmp_path, *, email_failure: str | None = None) -> None:
        self.identity = FakeIdentityAdmin()
        self.sender = FakeEmailSender(fail_with=email_failure)
        self.profiles = ProfileRepository(SQLiteDocumentStore(str(tmp_path / "profiles.db")))
        self.service = UserAdminService(
            self.identity, self.profiles, VerificationMailer(self.sender)
        )


@pytest.fixture()
def harness(tmp_path):
    return Harness(tmp_path)


async def create(harness, **overrides):
    fields = {"email": "ada@example.com", "password": "secret1", "username": "ada"}
    fields.update(overrides)
    return await harness.service.create_user(**fields)


@pytest.mark.asyncio
async def test_create_user_writes_profile_and_sends_email(harness) -> None:
    created = await create(harness)

    assert created.email_sent
    assert created.verification_link is None
    assert created.role == "user"

    profile = await harness.profiles.get(created.uid)
    assert profile.username == "ada"
    assert profile.provider == "email"
    assert profile.email_verified is False
    assert harness.identity.users[created.uid].email_verified is False

    message = harness.sender.sent[0]
    assert message["to"] == "ada@example.com"
    assert "https://auth.example/verify?email=ada@example.com" in message["html"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"email": None}, "Email, password, and username are required"),
        ({"username": ""}, "Email, password, and username are required"),
        ({"email": "not-an-email"}, "Invalid email format"),
        ({"password": "12345"}, "Password must be at least 6 characters long"),
        ({"role": "owner"}, "Role must be one of: user, admin"),
    ],
)
async def test_create_user_validates_before_calling_provider(harness, overrides, message) -> None:
    with pytest.raises(InvalidUserRequest) as excinfo:
        await create(harness, **overrides)

    assert excinfo.value.message == message
    assert excinfo.value.status_code == 400
    assert harness.identity.users == {}


@pytest.mark.asyncio
async def test_create_user_duplicate_email_is_conflict(harness) -> None:
    await create(harness)

    with pytest.raises(EmailAlreadyRegistered) as excinfo:
        await create(harness, username="ada2")

    assert excinfo.value.status_code == 409
    assert excinfo.value.message == "This email is already registered"


@pytest.mark.asyncio
async def test_create_user_maps_weak_password(harness) -> None:
    harness.identity.create_error = IdentityProviderError(
        "WEAK_PASSWORD", "Password should be at least 6 characters"
    )

    with pytest.raises(InvalidUserRequest) as excinfo:
        await create(harness)

    assert excinfo.value.message == "Password is too weak"


@pytest.mark.asyncio
async def test_create_user_provider_outage_is_failure(harness) -> None:
    harness.identity.create_error = IdentityProviderError("INTERNAL_ERROR", "backend exploded")

    with pytest.raises(UserAdminFailure) as excinfo:
        await create(harness)

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "backend exploded"


@pytest.mark.asyncio
async def test_create_user_email_failure_returns_link(tmp_path) -> None:
    harness = Harness(tmp_path, email_failure="Brevo rejected sender")

    created = await create(harness, role="admin")

    assert not created.email_sent
    assert created.verification_link == "https://auth.example/verify?email=ada@example.com"
    assert created.email_error == "Brevo rejected sender"
    assert (await harness.profiles.get(created.uid)).role == "admin"


@pytest.mark.asyncio
async def test_delete_user_twice_then_not_found(harness) -> None:
    created = await create(harness)

    outcome = await harness.service.delete_user(created.uid)
    assert outcome.auth_deleted and outcome.profile_deleted

    with pytest.raises(UserNotFound) as excinfo:
        await harness.service.delete_user(created.uid)
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_with_only_profile_left(harness) -> None:
    await harness.profiles.save(UserProfile(uid="orphan", username="o", email="o@example.com"))

    outcome = await harness.service.delete_user("orphan")

    assert not outcome.auth_deleted
    assert outcome.profile_deleted


@pytest.mark.asyncio
async def test_delete_user_with_only_account_left(harness) -> None:
    harness.identity.add("no-doc", "x@example.com")

    outcome = await harness.service.delete_user("no-doc")

    assert outcome.auth_deleted
    assert not outcome.profile_deleted


@pytest.mark.asyncio
async def test_delete_user_provider_error_still_removes_profile(harness) -> None:
    created = await create(harness)
    harness.identity.delete_error = IdentityProviderError("INTERNAL", "backend unavailable")

    with pytest.raises(UserAdminFailure, match="backend unavailable"):
        await harness.service.delete_user(created.uid)

    assert await harness.profiles.get(created.uid) is None
    assert created.uid in harness.identity.users


@pytest.mark.asyncio
async def test_delete_user_requires_uid(harness) -> None:
    with pytest.raises(InvalidUserRequest, match="UID is required"):
        await harness.service.delete_user("")


@pytest.mark.asyncio
async def test_set_disabled_mirrors_into_profile(harness) -> None:
    created = await create(harness)

    record = await harness.service.set_disabled(created.uid, True)

    assert record.email == "ada@example.com"
    assert harness.identity.users[created.uid].disabled is True
    assert (await harness.profiles.get(created.uid)).disabled is True


@pytest.mark.asyncio
async def test_set_disabled_unknown_user_is_not_found_even_with_profile(harness) -> None:
    await harness.profiles.save(UserProfile(uid="ghost", username="g", email="g@example.com"))

    with pytest.raises(UserNotFound) as excinfo:
        await harness.service.set_disabled("ghost", True)

    assert excinfo.value.message == "User not found in authentication provider"
    assert (await harness.profiles.get("ghost")).disabled is False


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [None, "true", 1])
async def test_set_disabled_requires_boolean(harness, value) -> None:
    with pytest.raises(InvalidUserRequest, match="Disabled status must be a boolean"):
        await harness.service.set_disabled("uid-1", value)


@pytest.mark.asyncio
async def test_verify_email_without_profile_does_not_create_one(harness) -> None:
    harness.identity.add("bare", "bare@example.com")

    assert await harness.service.verify_email("bare") == "bare"

    assert harness.identity.users["bare"].email_verified is True
    assert await harness.profiles.get("bare") is None


@pytest.mark.asyncio
async def test_verify_email_updates_profile(harness) -> None:
    created = await create(harness)

    await harness.service.verify_email(created.uid)

    assert (await harness.profiles.get(created.uid)).email_verified is True


@pytest.mark.asyncio
async def test_verify_email_unknown_user(harness) -> None:
    with pytest.raises(UserNotFound):
        await harness.service.verify_email("nobody")


@pytest.mark.asyncio
async def test_reset_link_for_known_and_unknown_email(harness) -> None:
    await create(harness)

    link = await harness.service.generate_password_reset_link("ada@example.com")
    assert link == "https://auth.example/reset?email=ada@example.com"

    with pytest.raises(UserNotFound):
        await harness.service.generate_password_reset_link("nobody@example.com")
    with pytest.raises(InvalidUserRequest, match="Email is required"):
        await harness.service.generate_password_reset_link(None)


@pytest.mark.asyncio
async def test_list_users_returns_profiles(harness) -> None:
    await create(harness)
    await create(harness, email="bob@example.com", username="bob")

    users = await harness.service.list_users()

    assert sorted(user.username for user in users) == ["ada", "bob"]
