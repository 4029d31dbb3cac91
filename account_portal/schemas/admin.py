"""Request bodies for the administrative endpoints.

Fields are optional at the schema level so that missing values produce the
endpoint's own 400 message rather than a generic validation error.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class CreateUserRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = Field(None, description="'user' (default) or 'admin'.")


class UidRequest(BaseModel):
    uid: Optional[str] = None


class ToggleUserRequest(BaseModel):
    uid: Optional[str] = None
    # Checked by the service so a non-boolean gets its own message.
    disabled: Any = None


class ResetPasswordRequest(BaseModel):
    email: Optional[str] = None


__all__ = [
    "CreateUserRequest",
    "ResetPasswordRequest",
    "ToggleUserRequest",
    "UidRequest",
]
