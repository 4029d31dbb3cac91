"""
FastAPI routes for administrative user management.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from account_portal.dependencies import SettingsDependency, get_user_admin_service
from account_portal.schemas import (
    CreateUserRequest,
    ResetPasswordRequest,
    ToggleUserRequest,
    UidRequest,
)
from account_portal.services.user_admin import UserAdminError

router = APIRouter()
logger = logging.getLogger(__name__)

AdminService = Annotated[Any, Depends(get_user_admin_service)]


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _admin_error(exc: UserAdminError) -> JSONResponse:
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("Admin operation failed: %s", exc.message)
    return error_response(exc.status_code, exc.message)


def _unexpected(exc: Exception, fallback: str) -> JSONResponse:
    logger.exception("Unexpected error: %s", fallback)
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc) or fallback)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: SettingsDependency) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.post("/createUser", status_code=HTTPStatus.CREATED)
async def create_user(payload: CreateUserRequest, service: AdminService) -> JSONResponse:
    """Create an account, its profile, and send the verification email."""
    try:
        created = await service.create_user(
            email=payload.email,
            password=payload.password,
            username=payload.username,
            role=payload.role,
        )
    except UserAdminError as exc:
        return _admin_error(exc)
    except Exception as exc:
        return _unexpected(exc, "Failed to create user")

    user = {
        "uid": created.uid,
        "email": created.email,
        "username": created.username,
        "role": created.role,
    }
    if not created.email_sent:
        content = {
            "message": "User created but verification email failed to send",
            "user": user,
            "verificationLink": created.verification_link,
            "emailSent": False,
            "error": created.email_error,
            "note": "Email service error. Please share this link with the user manually.",
        }
    else:
        content = {
            "message": "User created successfully and verification email sent",
            "user": user,
            "emailSent": True,
        }
    return JSONResponse(status_code=HTTPStatus.CREATED, content=content)


@router.post("/deleteUser", status_code=HTTPStatus.OK)
async def delete_user(payload: UidRequest, service: AdminService) -> JSONResponse:
    try:
        outcome = await service.delete_user(payload.uid)
    except UserAdminError as exc:
        return _admin_error(exc)
    except Exception as exc:
        return _unexpected(exc, "Failed to delete user.")

    return JSONResponse(
        content={
            "message": "User deleted successfully",
            "details": {
                "authDeleted": outcome.auth_deleted,
                "firestoreDeleted": outcome.profile_deleted,
            },
        }
    )


@router.post("/reset-password", status_code=HTTPStatus.OK)
async def reset_password(payload: ResetPasswordRequest, service: AdminService) -> JSONResponse:
    try:
        link = await service.generate_password_reset_link(payload.email)
    except UserAdminError as exc:
        return _admin_error(exc)
    except Exception as exc:
        return _unexpected(exc, "Failed to generate password reset link")

    return JSONResponse(content={"message": "Password reset link generated", "link": link})


@router.post("/toggle-user", status_code=HTTPStatus.OK)
async def toggle_user(payload: ToggleUserRequest, service: AdminService) -> JSONResponse:
    try:
        record = await service.set_disabled(payload.uid, payload.disabled)
    except UserAdminError as exc:
        return _admin_error(exc)
    except Exception as exc:
        return _unexpected(exc, "Failed to update user status")

    state = "disabled" if payload.disabled else "enabled"
    return JSONResponse(
        content={"message": f"User {state} successfully", "email": record.email}
    )


@router.post("/verify-user-email", status_code=HTTPStatus.OK)
async def verify_user_email(payload: UidRequest, service: AdminService) -> JSONResponse:
    try:
        uid = await service.verify_email(payload.uid)
    except UserAdminError as exc:
        return _admin_error(exc)
    except Exception as exc:
        return _unexpected(exc, "Failed to verify email")

    return JSONResponse(content={"message": "Email verified successfully", "uid": uid})


@router.get("/users", status_code=HTTPStatus.OK)
async def list_users(service: AdminService) -> JSONResponse:
    """Profiles for the admin table."""
    try:
        profiles = await service.list_users()
    except UserAdminError as exc:
        return _admin_error(exc)
    except Exception as exc:
        return _unexpected(exc, "Failed to list users")

    return JSONResponse(
        content={"users": [p.model_dump(mode="json", by_alias=True) for p in profiles]}
    )


__all__ = ["error_response", "router"]
