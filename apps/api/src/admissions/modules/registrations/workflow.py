"""
Registration Workflow

The registration state machine. Every write to `status` happens here.
Functions operate on an already-loaded Registration in memory, perform all
checks before mutating anything, and return the NotificationEvent to be
dispatched once the caller has committed.

    Draft --submit--> Submitted --decide--> Under Review | Approved | Rejected | Waitlisted

Decisions may also move a registration between decision statuses. Whether
Approved and Rejected can be revisited is controlled by the
`allow_reversal` flag passed to build_decision_transitions.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from admissions.modules.admins.authorization import ensure_capability
from admissions.modules.admins.models import Admin, Permission
from admissions.modules.registrations.checklist import check_documents, parse_document_type
from admissions.modules.registrations.events import EventKind, NotificationEvent
from admissions.modules.registrations.models import Registration, RegistrationStatus
from admissions.modules.registrations.schemas import AcademicData, ParentData, PersonalData
from admissions.modules.shared.errors import (
    IncompleteDocumentsError,
    InvalidStateError,
    InvalidStatusArgumentError,
    InvalidTransitionError,
    RegistrationValidationError,
)

logger = logging.getLogger(__name__)

DECISION_TARGETS: frozenset[RegistrationStatus] = frozenset(
    {
        RegistrationStatus.UNDER_REVIEW,
        RegistrationStatus.APPROVED,
        RegistrationStatus.REJECTED,
        RegistrationStatus.WAITLISTED,
    }
)

DECIDABLE_SOURCES: frozenset[RegistrationStatus] = frozenset(
    {
        RegistrationStatus.SUBMITTED,
        RegistrationStatus.UNDER_REVIEW,
        RegistrationStatus.APPROVED,
        RegistrationStatus.REJECTED,
        RegistrationStatus.WAITLISTED,
    }
)

# Final when reversal is disabled
FINAL_DECISIONS: frozenset[RegistrationStatus] = frozenset(
    {RegistrationStatus.APPROVED, RegistrationStatus.REJECTED}
)

SECTION_SCHEMAS: dict[str, type[BaseModel]] = {
    "personal_data": PersonalData,
    "parent_data": ParentData,
    "academic_data": AcademicData,
}

# Ordered for error messages
_DECISION_TARGET_ORDER = [
    RegistrationStatus.UNDER_REVIEW,
    RegistrationStatus.APPROVED,
    RegistrationStatus.REJECTED,
    RegistrationStatus.WAITLISTED,
]


def build_decision_transitions(
    allow_reversal: bool = True,
) -> dict[RegistrationStatus, frozenset[RegistrationStatus]]:
    """
    Build the admin decision graph.

    Every status maps to the set of statuses an admin decision may move it
    to. Draft never has outgoing decision edges; it leaves only via submit.
    """
    transitions: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {}
    for source in RegistrationStatus:
        if source not in DECIDABLE_SOURCES:
            transitions[source] = frozenset()
        elif not allow_reversal and source in FINAL_DECISIONS:
            transitions[source] = frozenset()
        else:
            transitions[source] = DECISION_TARGETS
    return transitions


def _normalize(value: str) -> str:
    return value.replace(" ", "").replace("_", "").replace("-", "").lower()


_DECISION_LOOKUP = {_normalize(s.value): s for s in DECISION_TARGETS}


def parse_decision_target(value: str) -> RegistrationStatus:
    """
    Resolve a requested decision status.

    Accepts the display label ("Under Review") as well as snake_case or
    CamelCase spellings ("under_review", "UnderReview").

    Raises:
        InvalidStatusArgumentError: If the value is not a decision target
    """
    target = _DECISION_LOOKUP.get(_normalize(value or ""))
    if target is None:
        raise InvalidStatusArgumentError(value, [s.value for s in _DECISION_TARGET_ORDER])
    return target


def _now() -> datetime:
    return datetime.now(UTC)


def ensure_draft(registration: Registration, action: str = "edit") -> None:
    if registration.status != RegistrationStatus.DRAFT:
        raise InvalidStateError(
            f"Cannot {action} registration {registration.registration_number}: "
            f"status is '{registration.status.value}', expected 'Draft'."
        )


def validate_section(section: str, data: Any) -> dict[str, Any]:
    """
    Validate a data section and return its JSON-ready form.

    Raises:
        RegistrationValidationError: On an unknown section or invalid data,
            with one entry per failing field
    """
    schema = SECTION_SCHEMAS.get(section)
    if schema is None:
        raise RegistrationValidationError(f"Unknown section '{section}'.")

    try:
        if isinstance(data, schema):
            model = data
        else:
            payload = data.model_dump() if isinstance(data, BaseModel) else data
            model = schema.model_validate(payload)
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        raise RegistrationValidationError(f"Invalid {section}.", errors=errors) from e

    return model.model_dump(mode="json")


def new_registration(registration_number: str, personal_data: Any) -> Registration:
    """Build a fresh Draft registration around validated personal data."""
    personal = validate_section("personal_data", personal_data)
    return Registration(
        registration_number=registration_number,
        personal_data=personal,
        applicant_email=personal["email"],
        applicant_phone=personal["phone_number"],
        documents={},
        status=RegistrationStatus.DRAFT,
        email_sent=False,
        sms_sent=False,
    )


def update_section(registration: Registration, section: str, data: Any) -> None:
    """
    Replace one data section. Allowed only while the registration is a Draft.

    Updating personal_data also refreshes the applicant contact columns.

    Raises:
        InvalidStateError: If the registration is no longer a Draft
        RegistrationValidationError: If the data is invalid
    """
    ensure_draft(registration, f"update {section} of")
    validated = validate_section(section, data)

    setattr(registration, section, validated)
    if section == "personal_data":
        registration.applicant_email = validated["email"]
        registration.applicant_phone = validated["phone_number"]


def update_sections(registration: Registration, sections: dict[str, Any]) -> None:
    """
    Replace several sections at once; all are validated before any is written.
    """
    ensure_draft(registration, "update")
    validated = {name: validate_section(name, data) for name, data in sections.items()}
    for name, value in validated.items():
        setattr(registration, name, value)
    if "personal_data" in validated:
        registration.applicant_email = validated["personal_data"]["email"]
        registration.applicant_phone = validated["personal_data"]["phone_number"]


def record_document(
    registration: Registration,
    document_type: str,
    descriptor: dict[str, Any],
) -> None:
    """
    Store a document descriptor, replacing any earlier upload of the same type.

    No status gate applies; only submit reads the documents.
    """
    doc_type = parse_document_type(document_type)
    documents = dict(registration.documents or {})
    documents[doc_type.value] = descriptor
    # New dict so the JSON column is flagged as changed
    registration.documents = documents


def submit(registration: Registration) -> NotificationEvent:
    """
    Move a Draft with a complete document checklist to Submitted.

    Raises:
        InvalidTransitionError: If the registration is not a Draft
        IncompleteDocumentsError: If required documents are missing
    """
    if registration.status != RegistrationStatus.DRAFT:
        raise InvalidTransitionError(
            registration.status.value, RegistrationStatus.SUBMITTED.value
        )

    result = check_documents(registration.documents)
    if not result.complete:
        logger.info(
            f"Submit rejected for {registration.registration_number}: missing {result.missing}"
        )
        raise IncompleteDocumentsError(result.missing)

    registration.status = RegistrationStatus.SUBMITTED
    registration.submitted_at = _now()

    return NotificationEvent.for_registration(EventKind.STATUS_CHANGED, registration)


def decide(
    registration: Registration,
    admin: Admin,
    target: str,
    notes: str | None,
    transitions: dict[RegistrationStatus, frozenset[RegistrationStatus]],
) -> NotificationEvent:
    """
    Apply an admin decision.

    Checks run in order: capability, target value, graph edge. Status and
    the review tracking fields are then written together.

    Raises:
        ForbiddenError: If the admin is inactive or lacks approve_registrations
        InvalidStatusArgumentError: If `target` is not a decision status
        InvalidTransitionError: If the current status has no edge to `target`
    """
    ensure_capability(admin, Permission.APPROVE_REGISTRATIONS)
    target_status = parse_decision_target(target)

    allowed = transitions.get(registration.status, frozenset())
    if target_status not in allowed:
        raise InvalidTransitionError(registration.status.value, target_status.value)

    registration.status = target_status
    registration.reviewed_at = _now()
    registration.reviewed_by = admin.id
    if notes is not None:
        registration.notes = notes

    return NotificationEvent.for_registration(
        EventKind.STATUS_CHANGED, registration, notes=notes
    )
