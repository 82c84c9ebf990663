"""
Authentication Service

Username/password login, token refresh and self-service profile changes
for admin accounts.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.security import (
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from admissions.modules.admins.models import Admin
from admissions.modules.admins.repository import AdminRepository
from admissions.modules.auth.schemas import ChangePasswordRequest, ProfileUpdate
from admissions.modules.shared.errors import (
    DuplicateAdminError,
    ServiceError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


class AccountInactiveError(ServiceError):
    """Raised when a deactivated admin tries to log in."""

    def __init__(self):
        super().__init__(
            message="Your account has been deactivated.",
            error_code="ACCOUNT_INACTIVE",
            status_code=403,
        )


class InvalidRefreshTokenError(ServiceError):
    def __init__(self):
        super().__init__(
            message="Invalid or expired refresh token.",
            error_code="INVALID_REFRESH_TOKEN",
            status_code=401,
        )


def issue_tokens(admin: Admin) -> tuple[str, str]:
    """Create an (access, refresh) token pair for an admin."""
    additional_claims = {
        "username": admin.username,
        "role": admin.role.value,
    }
    access_token = create_access_token(
        subject=str(admin.id),
        additional_claims=additional_claims,
    )
    refresh_token = create_refresh_token(subject=str(admin.id))
    return access_token, refresh_token


async def authenticate(
    db: AsyncSession, username: str, password: str
) -> tuple[Admin, str, str]:
    """
    Verify credentials and issue tokens.

    Returns:
        (admin, access_token, refresh_token)

    Raises:
        UnauthorizedError: Unknown username or wrong password
        AccountInactiveError: Admin is deactivated
    """
    admin = await AdminRepository.get_by_username(db, username)

    if not admin:
        logger.warning(f"Login attempt for non-existent username: {username}")
        raise UnauthorizedError()

    if not verify_password(password, admin.password_hash):
        logger.warning(f"Invalid password for admin: {username}")
        raise UnauthorizedError()

    if not admin.is_active:
        logger.warning(f"Login attempt for inactive admin: {username}")
        raise AccountInactiveError()

    admin = await AdminRepository.touch_last_login(db, admin)
    access_token, refresh_token = issue_tokens(admin)

    logger.info(f"Admin logged in: {admin.username} (role: {admin.role.value})")
    return admin, access_token, refresh_token


async def refresh_tokens(db: AsyncSession, refresh_token: str) -> tuple[str, str]:
    """
    Exchange a refresh token for a new token pair.

    Raises:
        InvalidRefreshTokenError: Token invalid, expired, not a refresh token,
            or its admin no longer exists or is inactive
    """
    payload = decode_token(refresh_token)
    if payload is None or payload.get("type") != TOKEN_TYPE_REFRESH:
        raise InvalidRefreshTokenError()

    try:
        admin_id = UUID(payload["sub"])
    except (KeyError, ValueError, TypeError) as e:
        raise InvalidRefreshTokenError() from e

    admin = await AdminRepository.get_by_id(db, admin_id)
    if not admin or not admin.is_active:
        logger.warning(f"Refresh rejected for admin {admin_id}")
        raise InvalidRefreshTokenError()

    return issue_tokens(admin)


async def update_profile(db: AsyncSession, admin: Admin, data: ProfileUpdate) -> Admin:
    """
    Update the admin's own name and email.

    Raises:
        DuplicateAdminError: Email already used by another admin
    """
    if data.email is not None and await AdminRepository.email_taken_by_other(
        db, data.email, admin.id
    ):
        logger.warning(f"Admin {admin.id} tried to take an email already in use")
        raise DuplicateAdminError()

    admin = await AdminRepository.update_profile(
        db, admin, full_name=data.full_name, email=data.email
    )
    logger.info(f"Admin {admin.id} updated profile")
    return admin


async def change_password(db: AsyncSession, admin: Admin, data: ChangePasswordRequest) -> None:
    """
    Replace the admin's password after checking the current one.

    Raises:
        UnauthorizedError: Current password is wrong
    """
    if not verify_password(data.current_password, admin.password_hash):
        logger.warning(f"Wrong current password on password change for admin {admin.id}")
        raise UnauthorizedError("Current password is incorrect.")

    await AdminRepository.set_password_hash(db, admin, hash_password(data.new_password))
    logger.info(f"Admin {admin.id} changed password")
