"""
Registration Schemas

Pydantic schemas for request validation and response serialization.
The section models (PersonalData, ParentData, AcademicData) are also the
shape stored in the registration's JSON columns.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from admissions.modules.registrations.models import Gender, RegistrationStatus

# ============================================
# Data Sections
# ============================================


class Address(BaseModel):
    street: str = Field(..., min_length=1, max_length=300)
    village: str | None = Field(None, max_length=100)
    district: str | None = Field(None, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str | None = Field(None, max_length=10)


class PersonalData(BaseModel):
    """Applicant's personal data section."""

    full_name: str = Field(..., min_length=1, max_length=200)
    nick_name: str | None = Field(None, max_length=100)
    gender: Gender
    birth_place: str = Field(..., min_length=1, max_length=100)
    birth_date: date
    religion: str = Field("Islam", max_length=50)
    address: Address
    phone_number: str = Field(..., min_length=6, max_length=30)
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("birth_date")
    @classmethod
    def birth_date_not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("birth_date cannot be in the future")
        return v


class ParentInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    occupation: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=30)
    education: str | None = Field(None, max_length=100)


class GuardianInfo(BaseModel):
    name: str | None = Field(None, max_length=200)
    relationship: str | None = Field(None, max_length=50)
    phone_number: str | None = Field(None, max_length=30)


class ParentData(BaseModel):
    """Parent and guardian section."""

    father: ParentInfo
    mother: ParentInfo
    guardian: GuardianInfo | None = None


class PreviousSchool(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: str | None = Field(None, max_length=300)
    graduation_year: int | None = Field(None, ge=1900, le=2100)


class Achievement(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    level: str | None = Field(None, max_length=50)
    year: int | None = Field(None, ge=1900, le=2100)


class AcademicData(BaseModel):
    """Academic history section."""

    previous_school: PreviousSchool
    last_grade: str = Field(..., min_length=1, max_length=20)
    achievements: list[Achievement] = Field(default_factory=list)


class RegistrationUpdate(BaseModel):
    """Request body for the bulk PUT /registration/{registration_number}."""

    personal_data: PersonalData | None = None
    parent_data: ParentData | None = None
    academic_data: AcademicData | None = None


# ============================================
# Documents
# ============================================


class DocumentDescriptor(BaseModel):
    """Stored-file descriptor recorded for one document type."""

    filename: str
    original_name: str
    storage_ref: str
    content_type: str | None = None
    size: int | None = None
    uploaded_at: datetime


class DocumentUploadResponse(BaseModel):
    registration_number: str
    uploaded: list[str]
    documents: dict[str, DocumentDescriptor]


# ============================================
# Public Responses
# ============================================


class RegistrationCreatedResponse(BaseModel):
    """Response for POST /registration/personal-data."""

    registration_number: str
    status: RegistrationStatus
    message: str


class RegistrationResponse(BaseModel):
    """Full applicant-facing view of a registration."""

    model_config = ConfigDict(from_attributes=True)

    registration_number: str
    personal_data: dict
    parent_data: dict | None = None
    academic_data: dict | None = None
    documents: dict[str, DocumentDescriptor]
    status: RegistrationStatus
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class SubmitResponse(BaseModel):
    registration_number: str
    status: RegistrationStatus
    submitted_at: datetime
    message: str


class ResendConfirmationResponse(BaseModel):
    registration_number: str
    message: str


# ============================================
# Admin Schemas
# ============================================


class StatusUpdateRequest(BaseModel):
    """
    Request body for PUT /admin/registrations/{id}/status.

    `status` is deliberately a plain string: the workflow rejects values
    outside the decision targets with a structured INVALID_STATUS error.
    """

    status: str = Field(..., min_length=1, max_length=50)
    notes: str | None = Field(None, max_length=2000)


class AdminRegistrationResponse(RegistrationResponse):
    """Admin view; adds identifiers and delivery bookkeeping."""

    id: UUID
    reviewed_by: UUID | None = None
    email_sent: bool
    sms_sent: bool
    last_notification_sent_at: datetime | None = None
    reminder_sent_at: datetime | None = None
    version: int


class RegistrationListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    registration_number: str
    full_name: str
    applicant_email: str
    applicant_phone: str
    status: RegistrationStatus
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    created_at: datetime


class RegistrationListResponse(BaseModel):
    registrations: list[RegistrationListItem]
    total: int
    skip: int
    limit: int


class DashboardStats(BaseModel):
    """Counts per status plus the most recent registrations."""

    total: int
    by_status: dict[str, int]
    recent: list[RegistrationListItem]


class ReminderResult(BaseModel):
    total: int
    success: int
    errors: int
    skipped: int
