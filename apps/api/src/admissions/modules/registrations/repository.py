"""
Registrations Repository

Database operations for registrations. No business rules live here:
status changes and section edits are applied by the workflow and simply
persisted through `save`.

Design Principles:
- All queries are parameterized
- ORM writes go through the optimistic version check on Registration
- Bookkeeping writes (reminders) use plain UPDATEs that skip the version
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import asc, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Registration, RegistrationStatus


async def add(db: AsyncSession, registration: Registration) -> Registration:
    """Insert a new registration."""
    db.add(registration)
    await db.commit()
    await db.refresh(registration)
    return registration


async def save(db: AsyncSession, registration: Registration) -> Registration:
    """
    Persist changes made to a loaded registration.

    Raises:
        sqlalchemy.orm.exc.StaleDataError: If the row changed since it was loaded
    """
    await db.commit()
    await db.refresh(registration)
    return registration


async def get_by_id(db: AsyncSession, id: UUID) -> Registration | None:
    """Get registration by ID."""
    return await db.get(Registration, id)


async def get_by_registration_number(
    db: AsyncSession, registration_number: str
) -> Registration | None:
    """Get registration by its registration number."""
    result = await db.execute(
        select(Registration).where(Registration.registration_number == registration_number)
    )
    return result.scalar_one_or_none()


async def email_taken(db: AsyncSession, email: str, exclude_id: UUID | None = None) -> bool:
    """Check whether another registration already uses this applicant email."""
    query = select(Registration.id).where(Registration.applicant_email == email.lower())
    if exclude_id is not None:
        query = query.where(Registration.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


async def get_registrations_for_admin(
    db: AsyncSession,
    *,
    status: RegistrationStatus | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Registration], int]:
    """
    Get registrations with filters, sorting, and pagination.

    Args:
        db: Database session
        status: Filter by status (optional)
        search: Case-insensitive match on registration number, applicant
                email, phone or full name (optional)
        sort_by: created_at, submitted_at or registration_number
        sort_order: asc or desc
        skip: Number of records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (registrations, total count matching filters)
    """
    query = select(Registration)

    if status:
        query = query.where(Registration.status == status)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                Registration.registration_number.ilike(search_pattern),
                Registration.applicant_email.ilike(search_pattern),
                Registration.applicant_phone.ilike(search_pattern),
                Registration.personal_data["full_name"].as_string().ilike(search_pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    valid_sort_columns = {"created_at", "submitted_at", "registration_number"}
    if sort_by not in valid_sort_columns:
        sort_by = "created_at"

    sort_column = getattr(Registration, sort_by)
    if sort_order.lower() == "asc":
        query = query.order_by(asc(sort_column))
    else:
        query = query.order_by(desc(sort_column))

    query = query.offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total


async def count_by_status(db: AsyncSession) -> dict[RegistrationStatus, int]:
    """Count registrations per status (statuses with no rows are omitted)."""
    result = await db.execute(
        select(Registration.status, func.count()).group_by(Registration.status)
    )
    return {status: count for status, count in result.all()}


async def get_recent(db: AsyncSession, limit: int = 5) -> list[Registration]:
    """Most recently created registrations."""
    result = await db.execute(
        select(Registration).order_by(desc(Registration.created_at)).limit(limit)
    )
    return list(result.scalars().all())


# ============================================
# Reminder Repository Methods
# ============================================


async def get_drafts_needing_reminder(
    db: AsyncSession,
    created_before: datetime,
) -> list[Registration]:
    """
    Drafts created before `created_before` that have not been reminded yet.

    Idempotent: once claim_reminder succeeds for a registration it is no
    longer returned.
    """
    result = await db.execute(
        select(Registration).where(
            Registration.status == RegistrationStatus.DRAFT,
            Registration.created_at < created_before,
            Registration.reminder_sent_at.is_(None),
        )
    )
    return list(result.scalars().all())


async def claim_reminder(
    db: AsyncSession,
    registration_id: UUID,
    sent_at: datetime | None = None,
) -> bool:
    """
    Mark a Draft as reminded unless another run already did.

    The conditional UPDATE is the claim: of two overlapping sweeps only one
    gets the row back. Skips the row version.

    Returns:
        True if this caller claimed the reminder
    """
    result = await db.execute(
        update(Registration)
        .where(
            Registration.id == registration_id,
            Registration.reminder_sent_at.is_(None),
        )
        .values(
            reminder_sent_at=sent_at or datetime.now(UTC),
            updated_at=Registration.updated_at,
        )
        .returning(Registration.id)
        .execution_options(synchronize_session=False)
    )
    claimed = result.first() is not None
    await db.commit()
    return claimed
