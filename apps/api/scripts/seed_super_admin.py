"""
Seed Super Admin

Creates the initial super_admin account. Run once after migrating.

Credentials come from the environment:
    SEED_ADMIN_USERNAME, SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD,
    SEED_ADMIN_FULL_NAME (optional)

Usage:
    cd apps/api
    python scripts/seed_super_admin.py
"""

import asyncio
import os

from sqlalchemy import or_, select

from admissions.core.database import async_session_maker, engine
from admissions.core.security import hash_password
from admissions.modules.admins.models import DEFAULT_ROLE_PERMISSIONS, Admin, AdminRole


async def seed_super_admin() -> None:
    """Create the super_admin account if it doesn't exist."""
    username = os.environ["SEED_ADMIN_USERNAME"]
    email = os.environ["SEED_ADMIN_EMAIL"].lower()
    password = os.environ["SEED_ADMIN_PASSWORD"]
    full_name = os.environ.get("SEED_ADMIN_FULL_NAME", "Super Admin")

    async with async_session_maker() as db:
        result = await db.execute(
            select(Admin).where(or_(Admin.username == username, Admin.email == email))
        )
        existing = result.scalar_one_or_none()

        if existing:
            print(f"Admin already exists: {existing.username}")
            print(f"  ID: {existing.id}")
            print(f"  Role: {existing.role.value}")
            return

        admin = Admin(
            username=username,
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=AdminRole.SUPER_ADMIN,
            permissions=[p.value for p in DEFAULT_ROLE_PERMISSIONS[AdminRole.SUPER_ADMIN]],
            is_active=True,
        )
        db.add(admin)
        await db.commit()
        await db.refresh(admin)

        print("Super admin created successfully!")
        print(f"  Username: {admin.username}")
        print(f"  Email: {admin.email}")
        print(f"  ID: {admin.id}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_super_admin())
