"""
Admin Management Service

Creating and listing admin accounts. Both operations require the acting
admin to hold the super_admin role, whatever capabilities they carry.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.security import hash_password
from admissions.modules.admins.authorization import ensure_role
from admissions.modules.admins.models import DEFAULT_ROLE_PERMISSIONS, Admin, AdminRole
from admissions.modules.admins.repository import AdminRepository
from admissions.modules.admins.schemas import AdminCreate
from admissions.modules.shared.errors import DuplicateAdminError

logger = logging.getLogger(__name__)

ADMIN_MANAGEMENT_ROLES = (AdminRole.SUPER_ADMIN,)


async def list_admins(db: AsyncSession, actor: Admin) -> list[Admin]:
    """List all admin accounts."""
    ensure_role(actor, ADMIN_MANAGEMENT_ROLES)
    return await AdminRepository.list_all(db)


async def create_admin(db: AsyncSession, actor: Admin, data: AdminCreate) -> Admin:
    """
    Create a new admin account.

    Permissions default to the role's standard set when none are given.

    Raises:
        ForbiddenError: If the actor is not an active super_admin
        DuplicateAdminError: If username or email is already taken
    """
    ensure_role(actor, ADMIN_MANAGEMENT_ROLES)

    if await AdminRepository.exists(db, username=data.username, email=data.email):
        logger.warning(f"Duplicate admin creation attempt: username={data.username}")
        raise DuplicateAdminError()

    permissions = data.permissions
    if permissions is None:
        permissions = DEFAULT_ROLE_PERMISSIONS[data.role]

    try:
        admin = await AdminRepository.create(
            db,
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
            full_name=data.full_name,
            role=data.role,
            permissions=[p.value for p in permissions],
        )
    except IntegrityError as e:
        # Lost a race with a concurrent create using the same username/email
        await db.rollback()
        raise DuplicateAdminError() from e

    logger.info(f"Admin {actor.id} created admin {admin.id} ({admin.role.value})")
    return admin
