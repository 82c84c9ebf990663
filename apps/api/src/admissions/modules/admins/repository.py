"""
Admin Repository

Database operations for admin accounts.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.modules.admins.models import Admin, AdminRole

logger = logging.getLogger(__name__)


class AdminRepository:
    """Repository for admin database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        username: str,
        email: str,
        password_hash: str,
        full_name: str,
        role: AdminRole,
        permissions: list[str],
        is_active: bool = True,
    ) -> Admin:
        """
        Create a new admin record.

        Args:
            db: Database session
            username: Unique login name
            email: Unique email address (stored lower-cased)
            password_hash: bcrypt hash
            full_name: Display name
            role: Admin role
            permissions: Capability tokens
            is_active: Whether the account can sign in

        Returns:
            Created Admin instance
        """
        admin = Admin(
            username=username,
            email=email.lower(),
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            permissions=permissions,
            is_active=is_active,
        )

        db.add(admin)
        await db.commit()
        await db.refresh(admin)

        logger.info(f"Created admin: {admin.id} - {admin.username} ({admin.role.value})")
        return admin

    @staticmethod
    async def get_by_id(db: AsyncSession, admin_id: UUID) -> Admin | None:
        """Get an admin by ID."""
        return await db.get(Admin, admin_id)

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> Admin | None:
        """Get an admin by username."""
        result = await db.execute(select(Admin).where(Admin.username == username))
        return result.scalar_one_or_none()

    @staticmethod
    async def exists(db: AsyncSession, *, username: str, email: str) -> bool:
        """Check whether the username or email is already taken."""
        result = await db.execute(
            select(Admin.id).where(
                or_(Admin.username == username, Admin.email == email.lower())
            )
        )
        return result.first() is not None

    @staticmethod
    async def email_taken_by_other(db: AsyncSession, email: str, admin_id: UUID) -> bool:
        """Check whether another admin already uses this email."""
        result = await db.execute(
            select(Admin.id).where(Admin.email == email.lower(), Admin.id != admin_id)
        )
        return result.first() is not None

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Admin]:
        """List all admins, newest first."""
        result = await db.execute(select(Admin).order_by(Admin.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def touch_last_login(db: AsyncSession, admin: Admin) -> Admin:
        """Record a successful login."""
        admin.last_login_at = datetime.now(UTC)
        await db.commit()
        await db.refresh(admin)
        return admin

    @staticmethod
    async def update_profile(
        db: AsyncSession,
        admin: Admin,
        *,
        full_name: str | None = None,
        email: str | None = None,
    ) -> Admin:
        """Update the editable profile fields."""
        if full_name is not None:
            admin.full_name = full_name
        if email is not None:
            admin.email = email.lower()
        await db.commit()
        await db.refresh(admin)
        return admin

    @staticmethod
    async def set_password_hash(db: AsyncSession, admin: Admin, password_hash: str) -> None:
        """Replace the stored password hash."""
        admin.password_hash = password_hash
        await db.commit()
