"""
Notification events produced by workflow transitions.

Events carry a snapshot of the recipient details taken at transition time,
so delivery never needs to reload the registration.
"""

import enum
from dataclasses import dataclass
from uuid import UUID

from admissions.modules.registrations.models import Registration


class EventKind(str, enum.Enum):
    REGISTRATION_CREATED = "registration_created"
    STATUS_CHANGED = "status_changed"
    DRAFT_REMINDER = "draft_reminder"


@dataclass(frozen=True)
class NotificationEvent:
    kind: EventKind
    registration_id: UUID
    registration_number: str
    full_name: str
    email: str
    phone: str
    status_label: str | None = None
    notes: str | None = None

    @classmethod
    def for_registration(
        cls,
        kind: EventKind,
        registration: Registration,
        *,
        notes: str | None = None,
    ) -> "NotificationEvent":
        personal = registration.personal_data or {}
        return cls(
            kind=kind,
            registration_id=registration.id,
            registration_number=registration.registration_number,
            full_name=personal.get("full_name", ""),
            email=registration.applicant_email,
            phone=registration.applicant_phone,
            status_label=registration.status.value if registration.status else None,
            notes=notes,
        )
