"""
Profile document and identity records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ProfileProvider = Literal["email", "github", "google"]
Role = Literal["user", "admin"]

_PROVIDER_BY_SIGN_IN_METHOD: Dict[str, ProfileProvider] = {
    "password": "email",
    "github.com": "github",
    "google.com": "google",
}


def profile_provider_for(provider_id: str) -> ProfileProvider:
    """Map an identity provider sign-in method to the profile's provider label."""
    return _PROVIDER_BY_SIGN_IN_METHOD.get(provider_id, "email")


@dataclass(frozen=True)
class AuthUser:
    """A signed-in identity as reported by the identity provider."""

    uid: str
    email: Optional[str]
    email_verified: bool
    provider_id: str = "password"
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def is_password_account(self) -> bool:
        return self.provider_id == "password"


class UserProfile(BaseModel):
    """Profile document stored in the ``users`` collection."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    username: str
    email: str
    provider: ProfileProvider = "email"
    role: Role = "user"
    disabled: bool = False
    email_verified: bool = Field(False, alias="emailVerified")
    photo_url: Optional[str] = Field(None, alias="photoURL")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="updatedAt"
    )

    @classmethod
    def for_user(cls, user: AuthUser, role: Role = "user") -> "UserProfile":
        """Build the first-sign-in profile for ``user``."""
        email = user.email or ""
        username = user.display_name or email.split("@")[0] or user.uid
        return cls(
            uid=user.uid,
            username=username,
            email=email,
            provider=profile_provider_for(user.provider_id),
            role=role,
            email_verified=user.email_verified,
            photo_url=user.photo_url,
        )

    def to_document(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in the document store."""
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = [
    "AuthUser",
    "ProfileProvider",
    "Role",
    "UserProfile",
    "profile_provider_for",
]
