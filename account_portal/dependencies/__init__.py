"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    build_session_controller,
    get_credentials_provider,
    get_document_store,
    get_email_client,
    get_identity_admin_client,
    get_profile_repository,
    get_token_cipher_service,
    get_user_admin_service,
    get_verification_mailer,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "build_session_controller",
    "get_app_settings",
    "get_credentials_provider",
    "get_document_store",
    "get_email_client",
    "get_identity_admin_client",
    "get_profile_repository",
    "get_token_cipher_service",
    "get_user_admin_service",
    "get_verification_mailer",
]
