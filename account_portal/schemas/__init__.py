"""Public schema exports."""

from .admin import (
    CreateUserRequest,
    ResetPasswordRequest,
    ToggleUserRequest,
    UidRequest,
)

__all__ = [
    "CreateUserRequest",
    "ResetPasswordRequest",
    "ToggleUserRequest",
    "UidRequest",
]
