"""
Authentication and Authorization Dependencies

FastAPI dependencies that turn a bearer token into a loaded, active Admin
and gate endpoints by capability or role.

- get_current_admin: validates the JWT, loads the admin from the database
  and rejects unknown or deactivated accounts with 401
- require_permission(p): 403 unless the admin holds capability p
- require_roles(*roles): 403 unless the admin's role is one of roles

Token claims are never trusted for role or permissions; those are always
read from the database so that deactivation and permission changes take
effect immediately.
"""

import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.database import get_db
from admissions.core.security import TOKEN_TYPE_ACCESS, decode_token
from admissions.modules.admins.authorization import ensure_capability, ensure_role
from admissions.modules.admins.models import Admin, AdminRole, Permission
from admissions.modules.admins.repository import AdminRepository
from admissions.modules.shared.errors import ForbiddenError, to_http_exception

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _admin_id_from_token(token: str) -> UUID:
    """
    Validate an access token and return the admin ID from its `sub` claim.

    Raises:
        HTTPException 401: If the token is invalid, expired, of the wrong type,
            or carries a malformed subject
    """
    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type", TOKEN_TYPE_ACCESS)
    if token_type != TOKEN_TYPE_ACCESS:
        logger.warning(f"Invalid token type: {token_type}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError, TypeError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    """
    FastAPI dependency returning the authenticated, active admin.

    Usage:
        @router.get("/admin/endpoint")
        async def admin_endpoint(admin: Admin = Depends(get_current_admin)):
            ...

    Raises:
        HTTPException 401: Missing/invalid token, unknown admin, or inactive account
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("TOKEN_MISSING", "Authentication token not provided.")

    admin_id = _admin_id_from_token(credentials.credentials)
    admin = await AdminRepository.get_by_id(db, admin_id)

    if admin is None:
        logger.warning(f"Token references unknown admin {admin_id}")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if not admin.is_active:
        logger.warning(f"Inactive admin {admin.id} ({admin.username}) attempted access")
        raise _unauthorized("ADMIN_INACTIVE", "This admin account is inactive.")

    # Used by the rate limiter to key admin actions per account
    request.state.admin_id = str(admin.id)

    logger.debug(f"Authenticated admin: {admin.id} ({admin.username})")
    return admin


def require_permission(
    permission: Permission,
) -> Callable[..., Awaitable[Admin]]:
    """
    Dependency factory: the current admin must hold `permission`.

    Usage:
        admin: Admin = Depends(require_permission(Permission.VIEW_REGISTRATIONS))
    """

    async def dependency(admin: Admin = Depends(get_current_admin)) -> Admin:
        try:
            ensure_capability(admin, permission)
        except ForbiddenError as e:
            raise to_http_exception(e) from e
        return admin

    return dependency


def require_roles(*roles: AdminRole) -> Callable[..., Awaitable[Admin]]:
    """Dependency factory: the current admin's role must be one of `roles`."""

    async def dependency(admin: Admin = Depends(get_current_admin)) -> Admin:
        try:
            ensure_role(admin, roles)
        except ForbiddenError as e:
            raise to_http_exception(e) from e
        return admin

    return dependency


__all__ = [
    "get_current_admin",
    "require_permission",
    "require_roles",
]
