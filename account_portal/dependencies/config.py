"""
FastAPI dependency for injecting configuration into routes.
"""

from typing import Annotated

from fastapi import Depends

from account_portal.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return get_settings()


SettingsDependency = Annotated[AppSettings, Depends(get_app_settings)]

__all__ = ["SettingsDependency", "get_app_settings"]
