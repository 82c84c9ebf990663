"""
Tests for admin account management.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from admissions.modules.admins.models import AdminRole, Permission
from admissions.modules.admins.schemas import AdminCreate
from admissions.modules.admins.service import create_admin, list_admins
from admissions.modules.shared.errors import DuplicateAdminError, ForbiddenError

REPOSITORY = "admissions.modules.admins.service.AdminRepository"


@pytest.fixture
def new_admin_data():
    return AdminCreate(
        username="reviewer1",
        email="Reviewer1@Sekolah.sch.id",
        password="s3cret!",
        full_name="First Reviewer",
        role=AdminRole.REVIEWER,
    )


class TestCreateAdmin:
    """Tests for create_admin."""

    @pytest.mark.asyncio
    async def test_super_admin_creates_with_role_defaults(
        self, mock_db, super_admin, new_admin_data, make_admin
    ):
        created = make_admin(AdminRole.REVIEWER, username="reviewer1")

        with patch(REPOSITORY) as mock_repo:
            mock_repo.exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=created)

            result = await create_admin(mock_db, super_admin, new_admin_data)

            kwargs = mock_repo.create.call_args.kwargs

        assert result is created
        assert kwargs["permissions"] == [Permission.VIEW_REGISTRATIONS.value]
        assert kwargs["role"] == AdminRole.REVIEWER
        # Stored as a bcrypt hash, never the plain password
        assert kwargs["password_hash"].startswith("$2")
        assert kwargs["password_hash"] != "s3cret!"

    @pytest.mark.asyncio
    async def test_explicit_permissions_kept(self, mock_db, super_admin, make_admin):
        data = AdminCreate(
            username="approver",
            email="approver@sekolah.sch.id",
            password="s3cret!",
            full_name="Approver",
            role=AdminRole.REVIEWER,
            permissions=[Permission.VIEW_REGISTRATIONS, Permission.APPROVE_REGISTRATIONS],
        )

        with patch(REPOSITORY) as mock_repo:
            mock_repo.exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=make_admin(AdminRole.REVIEWER))

            await create_admin(mock_db, super_admin, data)

            kwargs = mock_repo.create.call_args.kwargs

        assert kwargs["permissions"] == ["view_registrations", "approve_registrations"]

    @pytest.mark.asyncio
    async def test_admin_role_cannot_create(self, mock_db, approver_admin, new_admin_data):
        """Admin creation requires the super_admin role, whatever the capabilities."""
        with patch(REPOSITORY) as mock_repo:
            mock_repo.create = AsyncMock()

            with pytest.raises(ForbiddenError):
                await create_admin(mock_db, approver_admin, new_admin_data)

            mock_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_username_or_email(self, mock_db, super_admin, new_admin_data):
        with patch(REPOSITORY) as mock_repo:
            mock_repo.exists = AsyncMock(return_value=True)
            mock_repo.create = AsyncMock()

            with pytest.raises(DuplicateAdminError):
                await create_admin(mock_db, super_admin, new_admin_data)

            mock_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_race_on_insert(self, mock_db, super_admin, new_admin_data):
        with patch(REPOSITORY) as mock_repo:
            mock_repo.exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(
                side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
            )

            with pytest.raises(DuplicateAdminError):
                await create_admin(mock_db, super_admin, new_admin_data)

        mock_db.rollback.assert_awaited_once()


class TestListAdmins:
    """Tests for list_admins."""

    @pytest.mark.asyncio
    async def test_super_admin_lists(self, mock_db, super_admin):
        with patch(REPOSITORY) as mock_repo:
            mock_repo.list_all = AsyncMock(return_value=[super_admin])

            assert await list_admins(mock_db, super_admin) == [super_admin]

    @pytest.mark.asyncio
    async def test_reviewer_cannot_list(self, mock_db, reviewer_admin):
        with patch(REPOSITORY) as mock_repo:
            mock_repo.list_all = AsyncMock()

            with pytest.raises(ForbiddenError):
                await list_admins(mock_db, reviewer_admin)

            mock_repo.list_all.assert_not_called()
