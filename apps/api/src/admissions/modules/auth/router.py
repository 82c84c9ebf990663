"""
Authentication Router

Endpoints:
- POST /auth/login - Username/password login
- POST /auth/refresh - Exchange a refresh token for new tokens
- GET /auth/profile - Current admin profile
- PUT /auth/profile - Update name and email
- PUT /auth/change-password - Change password
- POST /auth/logout - Acknowledge logout (tokens are stateless)
- GET /auth/verify - Check an access token
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import get_current_admin
from admissions.core.database import get_db
from admissions.core.rate_limit import rate_limit
from admissions.modules.admins.models import Admin
from admissions.modules.admins.schemas import AdminResponse
from admissions.modules.auth import service
from admissions.modules.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    TokenResponse,
    VerifyResponse,
)
from admissions.modules.shared.errors import ServiceError, internal_error, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit("login", limit=5, window_seconds=60))],
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate an admin and return JWT tokens.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
        HTTPException 429: Too many attempts
    """
    try:
        admin, access_token, refresh_token = await service.authenticate(
            db, credentials.username, credentials.password
        )
        return LoginResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            admin=AdminResponse.model_validate(admin),
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error during login: {e}")
        raise internal_error() from e


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    try:
        access_token, refresh_token = await service.refresh_tokens(db, data.refresh_token)
        return TokenResponse(access_token=access_token, refresh_token=refresh_token)
    except ServiceError as e:
        raise to_http_exception(e) from e


@router.get("/profile", response_model=AdminResponse)
async def get_profile(admin: Admin = Depends(get_current_admin)) -> AdminResponse:
    return AdminResponse.model_validate(admin)


@router.put("/profile", response_model=AdminResponse)
async def update_profile(
    data: ProfileUpdate,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminResponse:
    try:
        updated = await service.update_profile(db, admin, data)
        return AdminResponse.model_validate(updated)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error updating profile of admin {admin.id}: {e}")
        raise internal_error() from e


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.change_password(db, admin, data)
        return MessageResponse(message="Password changed successfully.")
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error changing password of admin {admin.id}: {e}")
        raise internal_error() from e


@router.post("/logout", response_model=MessageResponse)
async def logout(admin: Admin = Depends(get_current_admin)) -> MessageResponse:
    """Tokens are stateless; the client discards them."""
    logger.info(f"Admin logged out: {admin.username}")
    return MessageResponse(message="Logged out.")


@router.get("/verify", response_model=VerifyResponse)
async def verify(admin: Admin = Depends(get_current_admin)) -> VerifyResponse:
    return VerifyResponse(valid=True, admin=AdminResponse.model_validate(admin))
