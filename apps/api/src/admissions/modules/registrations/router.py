"""
Registrations Router

Public API endpoints for the applicant registration flow. Applicants have
no account; the registration number returned at creation identifies the
record for every following step.

Endpoints:
- POST /registration/personal-data - Start a registration (Draft)
- PUT /registration/{registration_number}/parent-data - Update parent data
- PUT /registration/{registration_number}/academic-data - Update academic data
- POST /registration/{registration_number}/documents - Upload documents
- POST /registration/{registration_number}/submit - Submit for review
- GET /registration/{registration_number} - Get registration
- PUT /registration/{registration_number} - Bulk update of data sections
- POST /registration/{registration_number}/resend-confirmation - Re-send confirmation

Security:
- Rate limiting on creation, upload and resend endpoints
- Input validation via Pydantic schemas
- Upload type and size validated before anything is stored
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.config import settings
from admissions.core.database import get_db
from admissions.core.rate_limit import rate_limit
from admissions.modules.registrations import service
from admissions.modules.registrations.models import DocumentType
from admissions.modules.registrations.schemas import (
    AcademicData,
    DocumentUploadResponse,
    ParentData,
    PersonalData,
    RegistrationCreatedResponse,
    RegistrationResponse,
    RegistrationUpdate,
    ResendConfirmationResponse,
    SubmitResponse,
)
from admissions.modules.registrations.service import UploadedFile
from admissions.modules.registrations.storage import LocalBlobStore, get_blob_store
from admissions.modules.shared.errors import ServiceError, internal_error, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Helper Functions
# ============================================


def _unexpected(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Unexpected error during {action}: {e}")
    return internal_error()


async def _read_upload(field_name: str, upload: UploadFile) -> UploadedFile:
    # Read one byte past the limit so oversized files are detected without
    # buffering the whole body
    content = await upload.read(settings.max_upload_size_bytes + 1)
    return UploadedFile(
        field_name=field_name,
        filename=upload.filename or field_name,
        content_type=upload.content_type,
        content=content,
    )


# ============================================
# Registration Endpoints
# ============================================


@router.post(
    "/personal-data",
    response_model=RegistrationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start Registration",
    description="""
Create a new registration in Draft status from the applicant's personal data.

Returns the registration number (`MTS-{year}-{sequence}`) used in every
following step. A confirmation is sent on the enabled notification channels.

**Errors:**
- `VALIDATION_ERROR` (400): invalid personal data
- `DUPLICATE_EMAIL` (400): the email is already registered
""",
    dependencies=[Depends(rate_limit("registration_create", limit=10, window_seconds=60))],
)
async def create_registration(
    data: PersonalData,
    db: AsyncSession = Depends(get_db),
) -> RegistrationCreatedResponse:
    try:
        registration = await service.create_registration(db, data)
        return RegistrationCreatedResponse(
            registration_number=registration.registration_number,
            status=registration.status,
            message="Registration created. Keep your registration number to continue.",
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("registration creation", e) from e


@router.put(
    "/{registration_number}/parent-data",
    response_model=RegistrationResponse,
    summary="Update Parent Data",
)
async def update_parent_data(
    registration_number: str,
    data: ParentData,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """Replace the parent/guardian section. Draft registrations only."""
    try:
        registration = await service.update_section(
            db, registration_number, "parent_data", data
        )
        return RegistrationResponse.model_validate(registration)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("parent data update", e) from e


@router.put(
    "/{registration_number}/academic-data",
    response_model=RegistrationResponse,
    summary="Update Academic Data",
)
async def update_academic_data(
    registration_number: str,
    data: AcademicData,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """Replace the academic section. Draft registrations only."""
    try:
        registration = await service.update_section(
            db, registration_number, "academic_data", data
        )
        return RegistrationResponse.model_validate(registration)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("academic data update", e) from e


@router.post(
    "/{registration_number}/documents",
    response_model=DocumentUploadResponse,
    summary="Upload Documents",
    description="""
Upload one or more documents as multipart form fields named after the
document type. Uploading a type again replaces the earlier file.

**Accepted fields:**
- `birth_certificate`, `family_card`, `previous_diploma`: PDF, JPEG or PNG
- `photo`: JPEG or PNG
- `health_certificate` (optional): PDF, JPEG or PNG

Each file is limited to 5 MB by default.
""",
    dependencies=[Depends(rate_limit("registration_upload", limit=20, window_seconds=60))],
)
async def upload_documents(
    registration_number: str,
    birth_certificate: UploadFile | None = File(None),
    family_card: UploadFile | None = File(None),
    previous_diploma: UploadFile | None = File(None),
    photo: UploadFile | None = File(None),
    health_certificate: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
) -> DocumentUploadResponse:
    fields = {
        DocumentType.BIRTH_CERTIFICATE.value: birth_certificate,
        DocumentType.FAMILY_CARD.value: family_card,
        DocumentType.PREVIOUS_DIPLOMA.value: previous_diploma,
        DocumentType.PHOTO.value: photo,
        DocumentType.HEALTH_CERTIFICATE.value: health_certificate,
    }

    try:
        files = [
            await _read_upload(name, upload)
            for name, upload in fields.items()
            if upload is not None
        ]
        registration, uploaded = await service.upload_documents(
            db, store, registration_number, files
        )
        return DocumentUploadResponse(
            registration_number=registration.registration_number,
            uploaded=uploaded,
            documents=registration.documents,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("document upload", e) from e


@router.post(
    "/{registration_number}/submit",
    response_model=SubmitResponse,
    summary="Submit Registration",
    description="""
Submit a Draft registration for review.

**Errors:**
- `INVALID_TRANSITION` (400): the registration is not a Draft
- `INCOMPLETE_DOCUMENTS` (400): required documents are missing; the
  response lists them in `missing_documents`
""",
)
async def submit_registration(
    registration_number: str,
    db: AsyncSession = Depends(get_db),
) -> SubmitResponse:
    try:
        registration = await service.submit_registration(db, registration_number)
        return SubmitResponse(
            registration_number=registration.registration_number,
            status=registration.status,
            submitted_at=registration.submitted_at,
            message="Registration submitted for review.",
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("registration submit", e) from e


@router.get(
    "/{registration_number}",
    response_model=RegistrationResponse,
    summary="Get Registration",
)
async def get_registration(
    registration_number: str,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    try:
        registration = await service.get_registration(db, registration_number)
        return RegistrationResponse.model_validate(registration)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("registration lookup", e) from e


@router.put(
    "/{registration_number}",
    response_model=RegistrationResponse,
    summary="Update Registration",
    description="Replace any combination of personal, parent and academic data. "
    "All provided sections are validated before any is saved. Draft registrations only.",
)
async def update_registration(
    registration_number: str,
    data: RegistrationUpdate,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    try:
        registration = await service.update_registration(db, registration_number, data)
        return RegistrationResponse.model_validate(registration)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("registration update", e) from e


@router.post(
    "/{registration_number}/resend-confirmation",
    response_model=ResendConfirmationResponse,
    summary="Resend Confirmation",
    dependencies=[Depends(rate_limit("registration_resend", limit=3, window_seconds=300))],
)
async def resend_confirmation(
    registration_number: str,
    db: AsyncSession = Depends(get_db),
) -> ResendConfirmationResponse:
    """Re-send the registration confirmation. Limited to 3 requests per 5 minutes."""
    try:
        registration = await service.resend_confirmation(db, registration_number)
        return ResendConfirmationResponse(
            registration_number=registration.registration_number,
            message="Confirmation re-sent on the enabled channels.",
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise _unexpected("confirmation resend", e) from e
