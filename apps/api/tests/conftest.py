"""
Shared fixtures: mock database session and admin accounts.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from admissions.modules.admins.models import DEFAULT_ROLE_PERMISSIONS, Admin, AdminRole


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


def build_admin(
    role: AdminRole = AdminRole.ADMIN,
    permissions: list | None = None,
    is_active: bool = True,
    username: str | None = None,
) -> Admin:
    """Build a detached Admin; permissions default to the role's standard set."""
    if permissions is None:
        permissions = [p.value for p in DEFAULT_ROLE_PERMISSIONS[role]]
    return Admin(
        id=uuid4(),
        username=username or f"{role.value}_user",
        email=f"{username or role.value}@sekolah.sch.id",
        password_hash="not-a-real-hash",
        full_name=f"{role.value.title()} User",
        role=role,
        permissions=permissions,
        is_active=is_active,
        created_at=datetime.now(UTC),
        updated_at=datetime.now(UTC),
    )


@pytest.fixture
def approver_admin():
    """Active admin with the standard admin capabilities (includes approve)."""
    return build_admin(AdminRole.ADMIN)


@pytest.fixture
def reviewer_admin():
    """Active reviewer: view only."""
    return build_admin(AdminRole.REVIEWER)


@pytest.fixture
def super_admin():
    return build_admin(AdminRole.SUPER_ADMIN)


@pytest.fixture
def inactive_approver():
    """Deactivated admin that still carries approve_registrations."""
    return build_admin(AdminRole.ADMIN, is_active=False)


@pytest.fixture
def make_admin():
    """Factory fixture for admins with custom role/permissions/activity."""
    return build_admin
