"""
Admin Accounts Router

Endpoints:
- GET /admin/admins - List admin accounts
- POST /admin/admins - Create an admin account

Both require the super_admin role.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import get_current_admin
from admissions.core.database import get_db
from admissions.modules.admins import service
from admissions.modules.admins.models import Admin
from admissions.modules.admins.schemas import AdminCreate, AdminListResponse, AdminResponse
from admissions.modules.shared.errors import ServiceError, internal_error, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=AdminListResponse, summary="List Admins")
async def list_admins(
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminListResponse:
    try:
        admins = await service.list_admins(db, admin)
        return AdminListResponse(
            admins=[AdminResponse.model_validate(a) for a in admins],
            total=len(admins),
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error listing admins: {e}")
        raise internal_error() from e


@router.post(
    "",
    response_model=AdminResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Admin",
)
async def create_admin(
    data: AdminCreate,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminResponse:
    """
    Create an admin account.

    Permissions default to the role's standard set when omitted.

    Raises:
        HTTPException 403: Actor is not a super_admin
        HTTPException 400: Username or email already in use
    """
    try:
        created = await service.create_admin(db, admin, data)
        return AdminResponse.model_validate(created)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error creating admin: {e}")
        raise internal_error() from e
