"""
Tests for admin registration service functions.

These tests verify the business logic for admin operations including:
- Listing registrations with filters and pagination caps
- Registration detail
- Status decisions (authorization before lookup, validation, conflicts)
- Dashboard statistics
- Manually triggered draft reminders
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from admissions.modules.admins.models import AdminRole
from admissions.modules.registrations.events import EventKind
from admissions.modules.registrations.models import RegistrationStatus
from admissions.modules.registrations.service import (
    admin_get_dashboard,
    admin_get_registration_detail,
    admin_get_registrations_list,
    admin_send_reminders,
    admin_update_status,
)
from admissions.modules.shared.errors import (
    ConcurrentUpdateError,
    ForbiddenError,
    InvalidStatusArgumentError,
    InvalidTransitionError,
    RegistrationNotFoundError,
)

SERVICE = "admissions.modules.registrations.service"


@pytest.fixture
def mock_dispatcher():
    with patch(f"{SERVICE}.get_dispatcher") as mock_get:
        dispatcher = MagicMock()
        mock_get.return_value = dispatcher
        yield dispatcher


# ============================================
# Test admin_get_registrations_list
# ============================================


@pytest.mark.asyncio
async def test_admin_get_registrations_list_success(mock_db, reviewer_admin, make_registration):
    """Reviewers can list registrations."""
    registration = make_registration(status=RegistrationStatus.SUBMITTED)

    with patch(f"{SERVICE}.repository") as mock_repo:
        mock_repo.get_registrations_for_admin = AsyncMock(return_value=([registration], 1))

        result = await admin_get_registrations_list(
            mock_db,
            reviewer_admin,
            status=RegistrationStatus.SUBMITTED,
            search="Ahmad",
            sort_by="submitted_at",
            sort_order="asc",
            skip=10,
            limit=50,
        )

        assert result["total"] == 1
        assert result["registrations"] == [registration]
        mock_repo.get_registrations_for_admin.assert_called_once_with(
            mock_db,
            status=RegistrationStatus.SUBMITTED,
            search="Ahmad",
            sort_by="submitted_at",
            sort_order="asc",
            skip=10,
            limit=50,
        )


@pytest.mark.asyncio
async def test_admin_get_registrations_list_limit_cap(mock_db, reviewer_admin):
    """Limit is capped at 100 and skip floored at 0."""
    with patch(f"{SERVICE}.repository") as mock_repo:
        mock_repo.get_registrations_for_admin = AsyncMock(return_value=([], 0))

        result = await admin_get_registrations_list(mock_db, reviewer_admin, skip=-5, limit=500)

        assert result["limit"] == 100
        assert result["skip"] == 0


@pytest.mark.asyncio
async def test_admin_get_registrations_list_requires_view(mock_db, make_admin):
    """An admin without view_registrations cannot list."""
    admin = make_admin(AdminRole.REVIEWER, permissions=[])

    with patch(f"{SERVICE}.repository") as mock_repo:
        mock_repo.get_registrations_for_admin = AsyncMock()

        with pytest.raises(ForbiddenError):
            await admin_get_registrations_list(mock_db, admin)

        mock_repo.get_registrations_for_admin.assert_not_called()


# ============================================
# Test admin_get_registration_detail
# ============================================


@pytest.mark.asyncio
async def test_admin_get_registration_detail_not_found(mock_db, reviewer_admin):
    with patch(f"{SERVICE}.repository") as mock_repo:
        mock_repo.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(RegistrationNotFoundError):
            await admin_get_registration_detail(mock_db, reviewer_admin, uuid4())


# ============================================
# Test admin_update_status
# ============================================


class TestAdminUpdateStatus:
    """Tests for admin_update_status."""

    @pytest.mark.asyncio
    async def test_approve_success(
        self, mock_db, approver_admin, make_registration, mock_dispatcher
    ):
        registration = make_registration(status=RegistrationStatus.SUBMITTED)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=registration)
            mock_repo.save = AsyncMock(return_value=registration)

            result = await admin_update_status(
                mock_db, approver_admin, registration.id, "Approved", "See you in July"
            )

            mock_repo.save.assert_awaited_once_with(mock_db, registration)

        assert result.status == RegistrationStatus.APPROVED
        assert result.reviewed_by == approver_admin.id
        assert result.notes == "See you in July"

        event = mock_dispatcher.dispatch.call_args.args[0]
        assert event.kind == EventKind.STATUS_CHANGED
        assert event.status_label == "Approved"
        assert event.notes == "See you in July"

    @pytest.mark.asyncio
    async def test_forbidden_before_lookup(self, mock_db, reviewer_admin, mock_dispatcher):
        """Authorization runs before the registration is even loaded."""
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock()

            with pytest.raises(ForbiddenError) as exc_info:
                await admin_update_status(mock_db, reviewer_admin, uuid4(), "Approved")

            mock_repo.get_by_id.assert_not_called()

        assert exc_info.value.status_code == 403
        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_inactive_admin_forbidden(self, mock_db, inactive_approver, mock_dispatcher):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock()

            with pytest.raises(ForbiddenError):
                await admin_update_status(mock_db, inactive_approver, uuid4(), "Approved")

    @pytest.mark.asyncio
    async def test_invalid_status_value(
        self, mock_db, approver_admin, make_registration, mock_dispatcher
    ):
        registration = make_registration(status=RegistrationStatus.SUBMITTED)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=registration)
            mock_repo.save = AsyncMock()

            with pytest.raises(InvalidStatusArgumentError):
                await admin_update_status(mock_db, approver_admin, registration.id, "Enrolled")

            mock_repo.save.assert_not_called()

        assert registration.status == RegistrationStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_draft_cannot_be_decided(
        self, mock_db, approver_admin, make_registration, mock_dispatcher
    ):
        registration = make_registration(status=RegistrationStatus.DRAFT)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=registration)
            mock_repo.save = AsyncMock()

            with pytest.raises(InvalidTransitionError):
                await admin_update_status(mock_db, approver_admin, registration.id, "Approved")

            mock_repo.save.assert_not_called()

        mock_dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_decision_rejected(
        self, mock_db, approver_admin, make_registration, mock_dispatcher
    ):
        """The second of two concurrent decisions fails the version check."""
        registration = make_registration(status=RegistrationStatus.SUBMITTED)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=registration)
            mock_repo.save = AsyncMock(side_effect=StaleDataError("version mismatch"))

            with pytest.raises(ConcurrentUpdateError):
                await admin_update_status(mock_db, approver_admin, registration.id, "Rejected")

        mock_db.rollback.assert_awaited_once()
        mock_dispatcher.dispatch.assert_not_called()


# ============================================
# Test admin_get_dashboard
# ============================================


@pytest.mark.asyncio
async def test_admin_get_dashboard_zero_fills_statuses(mock_db, reviewer_admin, make_registration):
    recent = [make_registration()]

    with patch(f"{SERVICE}.repository") as mock_repo:
        mock_repo.count_by_status = AsyncMock(
            return_value={RegistrationStatus.DRAFT: 2, RegistrationStatus.SUBMITTED: 3}
        )
        mock_repo.get_recent = AsyncMock(return_value=recent)

        result = await admin_get_dashboard(mock_db, reviewer_admin)

        mock_repo.get_recent.assert_awaited_once_with(mock_db, 5)

    assert result["total"] == 5
    assert result["recent"] == recent
    assert result["by_status"] == {
        "Draft": 2,
        "Submitted": 3,
        "Under Review": 0,
        "Approved": 0,
        "Rejected": 0,
        "Waitlisted": 0,
    }


# ============================================
# Test admin_send_reminders
# ============================================


@pytest.mark.asyncio
async def test_admin_send_reminders_runs_job(approver_admin):
    summary = {"total": 2, "success": 2, "errors": 0, "skipped": 0}

    with patch(
        "admissions.modules.registrations.jobs.send_draft_reminders",
        AsyncMock(return_value=summary),
    ) as mock_job:
        result = await admin_send_reminders(approver_admin)

    assert result == summary
    mock_job.assert_awaited_once()


@pytest.mark.asyncio
async def test_admin_send_reminders_reviewer_forbidden(reviewer_admin):
    with patch(
        "admissions.modules.registrations.jobs.send_draft_reminders", AsyncMock()
    ) as mock_job:
        with pytest.raises(ForbiddenError):
            await admin_send_reminders(reviewer_admin)

    mock_job.assert_not_called()
