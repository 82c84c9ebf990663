"""
Registration Models

Database models for student registrations and the per-year counter that
backs registration number allocation.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from admissions.core.database import Base


class RegistrationStatus(str, enum.Enum):
    """Lifecycle status of a registration. Values are the human-readable labels."""

    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    WAITLISTED = "Waitlisted"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class DocumentType(str, enum.Enum):
    """Uploadable document kinds, used as keys of Registration.documents."""

    BIRTH_CERTIFICATE = "birth_certificate"
    FAMILY_CARD = "family_card"
    PREVIOUS_DIPLOMA = "previous_diploma"
    PHOTO = "photo"
    HEALTH_CERTIFICATE = "health_certificate"


class Registration(Base):
    """
    One applicant's registration.

    The three data sections are JSON documents validated by the Pydantic
    section schemas. `applicant_email` and `applicant_phone` mirror
    personal_data so that email uniqueness is enforced by the database and
    notifications can be addressed without parsing JSON.

    `version` is SQLAlchemy's optimistic lock: every ORM flush issues
    `UPDATE ... WHERE version = :loaded` and raises StaleDataError when
    another request changed the row first.
    """

    __tablename__ = "registrations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    registration_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # Data sections
    personal_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    parent_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    academic_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Contact mirror of personal_data
    applicant_email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    applicant_phone: Mapped[str] = mapped_column(String(30), nullable=False)

    # {document_type: descriptor}; keys absent until uploaded
    documents: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Status tracking
    status: Mapped[RegistrationStatus] = mapped_column(
        Enum(
            RegistrationStatus,
            name="registration_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=RegistrationStatus.DRAFT,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("admins.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Delivery bookkeeping (informational only)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sms_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_notification_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Audit timestamps; updated_at doubles as the "last updated" tracking field
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_registrations_status", "status"),
        Index("ix_registrations_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Registration({self.registration_number}, status={self.status.value})>"


class RegistrationCounter(Base):
    """Last allocated registration sequence number per year."""

    __tablename__ = "registration_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
