"""
Registrations Service Layer

Orchestrates the registration lifecycle:

1. Creation (two-phase):
   - Validate personal data and reject duplicate applicant emails
   - Allocate a registration number from the atomic per-year counter
   - Insert the Draft registration
2. Draft editing:
   - Parent, academic and bulk section updates, all behind the Draft gate
   - Document uploads, validated per type and stored in the blob store
3. Submission:
   - Draft -> Submitted once the required documents are present
4. Admin decisions:
   - Capability check, target validation and graph check in the workflow
   - Status and review tracking written in a single versioned UPDATE

Every operation loads the registration, lets the workflow validate and
mutate it, commits, and only then hands the resulting event to the
notification dispatcher. Nothing is written when a check fails, and a
notification failure never affects the result of the operation.

Concurrency:
- Registration rows carry a version column; a write based on a stale read
  raises ConcurrentUpdateError (409) instead of silently overwriting
- Registration numbers come from a single atomic upsert, never from a
  count of existing rows
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from admissions.core.config import settings
from admissions.modules.admins.authorization import ensure_capability, ensure_role
from admissions.modules.admins.models import Admin, AdminRole, Permission
from admissions.modules.registrations import allocator, repository, workflow
from admissions.modules.registrations.checklist import parse_document_type, validate_upload
from admissions.modules.registrations.events import EventKind, NotificationEvent
from admissions.modules.registrations.models import Registration, RegistrationStatus
from admissions.modules.registrations.notifications import get_dispatcher
from admissions.modules.registrations.schemas import PersonalData, RegistrationUpdate
from admissions.modules.registrations.storage import LocalBlobStore
from admissions.modules.shared.errors import (
    ConcurrentUpdateError,
    DuplicateEmailError,
    RegistrationNotFoundError,
    RegistrationValidationError,
)

logger = logging.getLogger(__name__)

DECISION_TRANSITIONS = workflow.build_decision_transitions(settings.allow_decision_reversal)

REMINDER_ROLES = (AdminRole.ADMIN, AdminRole.SUPER_ADMIN)

RECENT_REGISTRATIONS_LIMIT = 5


@dataclass(frozen=True)
class UploadedFile:
    """One file from a multipart upload, keyed by its form field name."""

    field_name: str
    filename: str
    content_type: str | None
    content: bytes


# ============================================
# Helpers
# ============================================


def _notify(event: NotificationEvent) -> None:
    """Hand an event to the dispatcher. Called only after a successful commit."""
    try:
        get_dispatcher().dispatch(event)
    except Exception as e:
        logger.error(
            f"Failed to schedule {event.kind.value} notification for "
            f"{event.registration_number}: {e}",
            exc_info=True,
        )


async def _load(db: AsyncSession, registration_number: str) -> Registration:
    registration = await repository.get_by_registration_number(db, registration_number)
    if not registration:
        logger.warning(f"Registration not found: {registration_number}")
        raise RegistrationNotFoundError(registration_number)
    return registration


async def _load_by_id(db: AsyncSession, registration_id: UUID) -> Registration:
    registration = await repository.get_by_id(db, registration_id)
    if not registration:
        logger.warning(f"Registration not found: {registration_id}")
        raise RegistrationNotFoundError(registration_id)
    return registration


async def _persist(db: AsyncSession, registration: Registration) -> Registration:
    """
    Commit workflow changes with the optimistic version check.

    Raises:
        ConcurrentUpdateError: If another request modified the row first
        DuplicateEmailError: If the applicant email collides with another registration
    """
    # Captured up front: attributes expire on rollback
    registration_number = registration.registration_number
    applicant_email = registration.applicant_email

    try:
        return await repository.save(db, registration)
    except StaleDataError as e:
        await db.rollback()
        logger.warning(f"Concurrent update detected on {registration_number}")
        raise ConcurrentUpdateError(registration_number) from e
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Duplicate applicant email on update of {registration_number}")
        raise DuplicateEmailError(applicant_email) from e


async def _ensure_email_available(
    db: AsyncSession, email: str, exclude_id: UUID | None = None
) -> None:
    if await repository.email_taken(db, email, exclude_id=exclude_id):
        logger.warning(f"Duplicate registration email: {email}")
        raise DuplicateEmailError(email)


async def _check_personal_email(
    db: AsyncSession, registration: Registration, sections: dict[str, Any]
) -> None:
    """
    Gate, validate and uniqueness-check a personal_data change.

    Must run before the registration is mutated: the uniqueness query would
    otherwise autoflush the pending edit and hit the unique constraint
    outside of `_persist`.
    """
    if "personal_data" not in sections:
        return
    workflow.ensure_draft(registration, "update personal_data of")
    personal = workflow.validate_section("personal_data", sections["personal_data"])
    await _ensure_email_available(db, personal["email"], registration.id)


# ============================================
# Public Registration Flow
# ============================================


async def create_registration(
    db: AsyncSession,
    personal_data: PersonalData | dict[str, Any],
) -> Registration:
    """
    Create a Draft registration from personal data.

    Creation is two-phase: the registration number is allocated (and its
    counter committed) first, then the record is inserted. A failed insert
    leaves a gap in the sequence, never a duplicate.

    Raises:
        RegistrationValidationError: If personal data is invalid
        DuplicateEmailError: If the email is already registered
    """
    personal = workflow.validate_section("personal_data", personal_data)
    email = personal["email"]

    await _ensure_email_available(db, email)

    registration_number = await allocator.next_registration_number(db)
    registration = workflow.new_registration(registration_number, personal)

    try:
        registration = await repository.add(db, registration)
    except IntegrityError as e:
        # Another request registered the same email between check and insert
        await db.rollback()
        logger.warning(f"Duplicate email on insert for {registration_number}: {email}")
        raise DuplicateEmailError(email) from e

    logger.info(f"Created registration {registration.registration_number}")

    _notify(NotificationEvent.for_registration(EventKind.REGISTRATION_CREATED, registration))
    return registration


async def get_registration(db: AsyncSession, registration_number: str) -> Registration:
    """Get a registration by number, or raise RegistrationNotFoundError."""
    return await _load(db, registration_number)


async def update_section(
    db: AsyncSession,
    registration_number: str,
    section: str,
    data: Any,
) -> Registration:
    """
    Replace one data section of a Draft registration.

    Raises:
        RegistrationNotFoundError: Unknown registration number
        InvalidStateError: Registration is no longer a Draft
        RegistrationValidationError: Invalid section data
        DuplicateEmailError: New personal email belongs to another registration
    """
    registration = await _load(db, registration_number)
    await _check_personal_email(db, registration, {section: data})
    workflow.update_section(registration, section, data)

    registration = await _persist(db, registration)
    logger.info(f"Updated {section} of {registration_number}")
    return registration


async def update_registration(
    db: AsyncSession,
    registration_number: str,
    data: RegistrationUpdate,
) -> Registration:
    """Bulk edit of the data sections; same Draft gate as update_section."""
    sections = {
        name: value
        for name, value in (
            ("personal_data", data.personal_data),
            ("parent_data", data.parent_data),
            ("academic_data", data.academic_data),
        )
        if value is not None
    }
    if not sections:
        raise RegistrationValidationError("No sections provided.")

    registration = await _load(db, registration_number)
    await _check_personal_email(db, registration, sections)
    workflow.update_sections(registration, sections)

    registration = await _persist(db, registration)
    logger.info(f"Updated {sorted(sections)} of {registration_number}")
    return registration


async def upload_documents(
    db: AsyncSession,
    store: LocalBlobStore,
    registration_number: str,
    files: list[UploadedFile],
) -> tuple[Registration, list[str]]:
    """
    Validate, store and record uploaded documents.

    Every file is checked before anything is written. Blobs that end up
    unreferenced (replaced uploads, or new uploads whose commit failed)
    are removed.

    Returns:
        The updated registration and the list of uploaded document types

    Raises:
        RegistrationNotFoundError: Unknown registration number
        RegistrationValidationError: No files, too many files, duplicate
            field, unknown type, disallowed MIME type or oversized file
    """
    if not files:
        raise RegistrationValidationError("No files uploaded.")
    if len(files) > settings.max_files_per_request:
        raise RegistrationValidationError(
            f"At most {settings.max_files_per_request} files can be uploaded per request."
        )

    seen: set[str] = set()
    typed_files = []
    for f in files:
        document_type = parse_document_type(f.field_name)
        if document_type.value in seen:
            raise RegistrationValidationError(
                f"Document {document_type.value} was uploaded more than once."
            )
        seen.add(document_type.value)
        validate_upload(
            document_type, f.content_type, len(f.content), settings.max_upload_size_bytes
        )
        typed_files.append((document_type, f))

    registration = await _load(db, registration_number)
    previous = dict(registration.documents or {})

    stored_refs: list[str] = []
    uploaded: list[str] = []
    try:
        for document_type, f in typed_files:
            descriptor = await store.save(
                registration_number, document_type, f.content, f.filename, f.content_type
            )
            stored_refs.append(descriptor["storage_ref"])
            workflow.record_document(registration, document_type.value, descriptor)
            uploaded.append(document_type.value)

        registration = await _persist(db, registration)
    except Exception:
        for ref in stored_refs:
            await store.delete(ref)
        raise

    for doc_key in uploaded:
        old = previous.get(doc_key)
        if old and old.get("storage_ref"):
            try:
                await store.delete(old["storage_ref"])
            except OSError as e:
                logger.warning(f"Could not remove replaced blob {old['storage_ref']}: {e}")

    logger.info(f"Uploaded {uploaded} for {registration_number}")
    return registration, uploaded


async def submit_registration(db: AsyncSession, registration_number: str) -> Registration:
    """
    Submit a Draft registration for review.

    Raises:
        RegistrationNotFoundError: Unknown registration number
        InvalidTransitionError: Registration is not a Draft
        IncompleteDocumentsError: Required documents are missing
    """
    registration = await _load(db, registration_number)
    event = workflow.submit(registration)
    registration = await _persist(db, registration)

    logger.info(f"Registration {registration_number} submitted")
    _notify(event)
    return registration


async def resend_confirmation(db: AsyncSession, registration_number: str) -> Registration:
    """Re-send the creation confirmation on the enabled channels."""
    registration = await _load(db, registration_number)
    _notify(NotificationEvent.for_registration(EventKind.REGISTRATION_CREATED, registration))
    logger.info(f"Confirmation re-sent for {registration_number}")
    return registration


# ============================================
# Admin Service Functions
# ============================================


async def admin_get_registrations_list(
    db: AsyncSession,
    admin: Admin,
    *,
    status: RegistrationStatus | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """
    Paginated registration list for the admin dashboard.

    Returns:
        Dict with registrations, total, skip and limit
    """
    ensure_capability(admin, Permission.VIEW_REGISTRATIONS)

    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    registrations, total = await repository.get_registrations_for_admin(
        db,
        status=status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )

    logger.info(f"Admin {admin.id} listed registrations: total={total}")
    return {
        "registrations": registrations,
        "total": total,
        "skip": skip,
        "limit": limit,
    }


async def admin_get_registration_detail(
    db: AsyncSession,
    admin: Admin,
    registration_id: UUID,
) -> Registration:
    ensure_capability(admin, Permission.VIEW_REGISTRATIONS)
    return await _load_by_id(db, registration_id)


async def admin_update_status(
    db: AsyncSession,
    admin: Admin,
    registration_id: UUID,
    target_status: str,
    notes: str | None = None,
) -> Registration:
    """
    Apply an admin decision to a registration.

    Raises:
        ForbiddenError: Admin inactive or lacking approve_registrations
        RegistrationNotFoundError: Unknown registration
        InvalidStatusArgumentError: Status is not a decision target
        InvalidTransitionError: Decision not allowed from the current status
        ConcurrentUpdateError: The registration changed since it was loaded
    """
    # Authorization before anything else, including the lookup
    ensure_capability(admin, Permission.APPROVE_REGISTRATIONS)

    registration = await _load_by_id(db, registration_id)
    previous_status = registration.status

    event = workflow.decide(registration, admin, target_status, notes, DECISION_TRANSITIONS)
    registration = await _persist(db, registration)

    logger.info(
        f"Admin {admin.id} changed {registration.registration_number} "
        f"from '{previous_status.value}' to '{registration.status.value}'"
    )
    _notify(event)
    return registration


async def admin_get_dashboard(db: AsyncSession, admin: Admin) -> dict:
    """
    Counts per status (every status present, zero-filled), total, and the
    most recent registrations.
    """
    ensure_capability(admin, Permission.VIEW_REGISTRATIONS)

    counts = await repository.count_by_status(db)
    by_status = {status.value: counts.get(status, 0) for status in RegistrationStatus}
    recent = await repository.get_recent(db, RECENT_REGISTRATIONS_LIMIT)

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "recent": recent,
    }


async def admin_send_reminders(admin: Admin) -> dict:
    """
    Run the draft reminder sweep on demand.

    Shares its implementation (and idempotency marker) with the scheduled job.
    """
    from admissions.modules.registrations.jobs import send_draft_reminders

    ensure_role(admin, REMINDER_ROLES)
    logger.info(f"Admin {admin.id} triggered draft reminders")
    return await send_draft_reminders()
