"""
Registrations Admin Router

API endpoints for school administrators to review registrations.
All endpoints require a valid admin access token.

Endpoints:
- GET /admin/registrations - List registrations with filters and pagination
- GET /admin/registrations/{id} - Get registration details
- PUT /admin/registrations/{id}/status - Decide a registration
- GET /admin/dashboard - Dashboard statistics
- POST /admin/send-reminders - Send draft reminders now

Security:
- Capability checks (view_registrations, approve_registrations) in the service layer
- Reminder sweep restricted to admin and super_admin roles
- Rate limiting on the decision endpoint
- Audit logging for all admin actions
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import get_current_admin
from admissions.core.database import get_db
from admissions.core.rate_limit import rate_limit
from admissions.modules.admins.models import Admin
from admissions.modules.registrations import service
from admissions.modules.registrations.models import Registration, RegistrationStatus
from admissions.modules.registrations.schemas import (
    AdminRegistrationResponse,
    DashboardStats,
    RegistrationListItem,
    RegistrationListResponse,
    ReminderResult,
    StatusUpdateRequest,
)
from admissions.modules.shared.errors import ServiceError, internal_error, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()

# 30 decisions per minute per admin
RATE_LIMIT_STATUS_UPDATE = (30, 60)


# ============================================
# Helper Functions
# ============================================


def _registration_to_list_item(registration: Registration) -> RegistrationListItem:
    """Convert Registration model to RegistrationListItem schema."""
    return RegistrationListItem(
        id=registration.id,
        registration_number=registration.registration_number,
        full_name=(registration.personal_data or {}).get("full_name", ""),
        applicant_email=registration.applicant_email,
        applicant_phone=registration.applicant_phone,
        status=registration.status,
        submitted_at=registration.submitted_at,
        reviewed_at=registration.reviewed_at,
        created_at=registration.created_at,
    )


# ============================================
# List, Detail & Stats Endpoints
# ============================================


@router.get(
    "/registrations",
    response_model=RegistrationListResponse,
    summary="List Registrations",
    description="""
Get a paginated list of registrations.

**Filters:**
- `status`: exact status match
- `search`: matches registration number, email, phone or applicant name

**Sorting:** `sort_by` is one of created_at, submitted_at, registration_number.
""",
)
async def list_registrations(
    status: RegistrationStatus | None = Query(None),
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> RegistrationListResponse:
    try:
        result = await service.admin_get_registrations_list(
            db,
            admin,
            status=status,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )
        return RegistrationListResponse(
            registrations=[_registration_to_list_item(r) for r in result["registrations"]],
            total=result["total"],
            skip=result["skip"],
            limit=result["limit"],
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error listing registrations: {e}")
        raise internal_error() from e


@router.get(
    "/registrations/{registration_id}",
    response_model=AdminRegistrationResponse,
    summary="Get Registration Details",
)
async def get_registration_detail(
    registration_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminRegistrationResponse:
    try:
        registration = await service.admin_get_registration_detail(db, admin, registration_id)
        return AdminRegistrationResponse.model_validate(registration)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error getting registration {registration_id}: {e}")
        raise internal_error() from e


@router.get(
    "/dashboard",
    response_model=DashboardStats,
    summary="Dashboard Statistics",
)
async def get_dashboard(
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> DashboardStats:
    """Counts for every status, total, and the five most recent registrations."""
    try:
        stats = await service.admin_get_dashboard(db, admin)
        return DashboardStats(
            total=stats["total"],
            by_status=stats["by_status"],
            recent=[_registration_to_list_item(r) for r in stats["recent"]],
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error getting dashboard stats: {e}")
        raise internal_error() from e


# ============================================
# Action Endpoints
# ============================================


@router.put(
    "/registrations/{registration_id}/status",
    response_model=AdminRegistrationResponse,
    summary="Update Registration Status",
    description="""
Record an admin decision on a registration.

**Allowed targets:** Under Review, Approved, Rejected, Waitlisted.
Draft registrations cannot be decided; they must be submitted first.

**Errors:**
- `FORBIDDEN` (403): missing approve_registrations capability
- `INVALID_STATUS` (400): status is not a decision target
- `INVALID_TRANSITION` (400): decision not allowed from the current status
- `CONCURRENT_UPDATE` (409): the registration changed meanwhile; reload and retry
""",
)
async def update_registration_status(
    registration_id: UUID,
    data: StatusUpdateRequest,
    admin: Admin = Depends(get_current_admin),
    _: None = Depends(rate_limit("registration_status", *RATE_LIMIT_STATUS_UPDATE)),
    db: AsyncSession = Depends(get_db),
) -> AdminRegistrationResponse:
    try:
        registration = await service.admin_update_status(
            db, admin, registration_id, data.status, data.notes
        )
        return AdminRegistrationResponse.model_validate(registration)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error updating status of registration {registration_id}: {e}")
        raise internal_error() from e


@router.post(
    "/send-reminders",
    response_model=ReminderResult,
    summary="Send Draft Reminders",
    description="Run the draft reminder sweep immediately. "
    "Drafts that were already reminded are skipped.",
)
async def send_reminders(
    admin: Admin = Depends(get_current_admin),
) -> ReminderResult:
    try:
        result = await service.admin_send_reminders(admin)
        return ReminderResult(**result)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error sending draft reminders: {e}")
        raise internal_error() from e
